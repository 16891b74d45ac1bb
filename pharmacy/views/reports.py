"""
Reporting endpoints: statistics dashboard and medication consolidations.
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.exceptions import APIException
from rest_framework.response import Response

from ..exceptions import error_response, request_id_of
from ..services.dates import clamp_int
from ..services.reports import medication_range, medication_summary, resolve_range
from ..services.statistics import DEFAULT_RANGE_DAYS, get_statistics

logger = logging.getLogger(__name__)


@api_view(['GET'])
def statistics(request):
    """Dashboard figures for the prescriptions received in ``from``..``to`` (cached briefly)."""
    start, end = resolve_range(
        request.query_params.get('from', '').strip(),
        request.query_params.get('to', '').strip(),
        default_days=DEFAULT_RANGE_DAYS,
    )
    try:
        payload = get_statistics(start, end)
    except APIException:
        raise
    except Exception as e:
        logger.exception({'requestId': request_id_of(request), 'route': 'GET /api/estadistica'})
        return error_response(
            request,
            'No se pudo calcular la estadística. Intenta de nuevo.',
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=str(e),
        )
    return Response({'requestId': request_id_of(request), **payload})


@api_view(['GET'])
def medications_range(request):
    start, end = resolve_range(request.query_params.get('from'), request.query_params.get('to'))
    return Response({'requestId': request_id_of(request), **medication_range(start, end)})


@api_view(['GET'])
def medications_summary(request):
    take = clamp_int(request.query_params.get('take'), 300, 1, 500)
    rows = medication_summary(request.query_params.get('q', ''), take)
    return Response({'requestId': request_id_of(request), 'medications': rows})
