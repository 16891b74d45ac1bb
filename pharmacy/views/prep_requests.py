from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..serializers.agenda import FinalizeSerializer, PrepRequestListQuerySerializer
from ..services.agenda import delete_prep_request, finalize_prep_request, list_prep_requests, prep_request_detail
from ..services.dates import iso_ts


@api_view(['GET'])
def prep_requests(request):
    """Open agenda requests, or the finalised ones with ``historico=1``."""
    q = PrepRequestListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    rows = list_prep_requests(q.validated_data.get('date'), q.validated_data['historico'])
    return Response({'requests': rows})


@api_view(['GET', 'DELETE'])
def prep_request_item(request, pk):
    if request.method == 'GET':
        return Response(prep_request_detail(pk))
    delete_prep_request(pk)
    return Response({'ok': True})


@api_view(['POST'])
def prep_request_finalize(request, pk):
    s = FinalizeSerializer(data=request.data or {})
    s.is_valid(raise_exception=True)
    req = finalize_prep_request(pk, s.validated_data.get('finalizadoBy'))
    return Response({'id': str(req.id), 'finalizadoAt': iso_ts(req.finalizado_at)})
