from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..exceptions import request_id_of
from ..serializers.records import RecentRecordsQuerySerializer, RecordReconcileSerializer
from ..services.dates import clamp_int, parse_month
from ..services.records import recent_records, reconcile_application_dates


@api_view(['GET'])
def recent(request):
    q = RecentRecordsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    month = parse_month(q.validated_data.get('month'))
    take_raw = request.query_params.get('take')
    take = clamp_int(take_raw, 5, 1, 5000) if take_raw else None
    return Response({'requestId': request_id_of(request), 'rows': recent_records(month=month, take=take)})


@api_view(['PATCH'])
def recent_record_detail(request, pk):
    """Rewrite a prescription line and reconcile its application dates.

    ``pk`` only names the row the user clicked; the affected items are the
    ``itemIds`` in the body.
    """
    s = RecordReconcileSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(reconcile_application_dates(s.validated_data))
