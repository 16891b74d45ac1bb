"""Prescriber and pharmacist catalogs share one set of views."""
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..models import Pharmacist, Prescriber
from ..serializers.catalog import SearchQuerySerializer, StaffUpsertSerializer
from ..services.catalog import delete_staff, format_staff, search_staff, upsert_staff


def _list_or_upsert(request, model):
    if request.method == 'GET':
        q = SearchQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        return Response([format_staff(s) for s in search_staff(model, q.validated_data['query'].strip())])
    s = StaffUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    row = upsert_staff(model, **s.validated_data)
    return Response({'id': str(row.id)})


@api_view(['GET', 'POST'])
def prescribers(request):
    return _list_or_upsert(request, Prescriber)


@api_view(['GET', 'POST'])
def pharmacists(request):
    return _list_or_upsert(request, Pharmacist)


@api_view(['DELETE'])
def prescriber_detail(request, pk):
    delete_staff(Prescriber, pk)
    return Response({'ok': True})


@api_view(['DELETE'])
def pharmacist_detail(request, pk):
    delete_staff(Pharmacist, pk)
    return Response({'ok': True})
