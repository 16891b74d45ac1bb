import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..exceptions import request_id_of
from ..serializers.records import ClientErrorSerializer

logger = logging.getLogger('pharmacy.client')


@api_view(['POST'])
def client_error_log(request):
    """Browser-side error report, written to the server log."""
    s = ClientErrorSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    logger.warning({'requestId': request_id_of(request), 'event': 'client_error', **s.validated_data})
    return Response({'ok': True})
