"""
Agenda line views.

``POST /api/items`` is the quick-entry form: one submit creates a line
for every application date of the prescription.
"""
from django.utils import timezone
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..exceptions import request_id_of
from ..serializers.agenda import ActorSerializer, ItemCreateSerializer, ItemListQuerySerializer, ItemUpdateSerializer
from ..services.agenda import create_items, duplicate_item, list_items, update_item


@api_view(['GET', 'POST'])
def items(request):
    if request.method == 'GET':
        q = ItemListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        data = q.validated_data
        rows = list_items(
            fecha=data.get('date'),
            patient=data['patient'],
            med=data['med'],
            statuses=data['status'],
        )
        return Response({
            'requestId': request_id_of(request),
            'items': rows,
            'serverTime': timezone.now().isoformat(),
        })
    s = ItemCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response({'ids': create_items(s.validated_data)})


@api_view(['PATCH'])
def item_detail(request, pk):
    s = ItemUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    item = update_item(pk, s.validated_data)
    return Response({'id': str(item.id)})


@api_view(['POST'])
def item_duplicate(request, pk):
    s = ActorSerializer(data=request.data or {})
    s.is_valid(raise_exception=True)
    item = duplicate_item(pk, s.validated_data.get('createdBy'))
    return Response({'id': str(item.id)})
