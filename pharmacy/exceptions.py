import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError
from django.db.models import ProtectedError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

POOL_EXHAUSTED_MARKERS = ('maxclientsinsessionmode', 'max clients reached', 'too many clients', 'remaining connection slots')
POOL_EXHAUSTED_MESSAGE = (
    'CONEXIONES MAXIMAS ALCANZADAS EN LA BASE DE DATOS. '
    'USE EL POOLER EN MODO TRANSACTION O AUMENTE EL POOL SIZE.'
)


class BadRequest(APIException):
    """A request that passed schema validation but breaks a domain rule."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Solicitud inválida'
    default_code = 'bad_request'


def request_id_of(request) -> str:
    return getattr(request, 'request_id', None) or ''


def error_response(request, message, *, status_code: int, details=None) -> Response:
    body = {'error': message, 'requestId': request_id_of(request)}
    if details is not None:
        body['details'] = details
    return Response(body, status=status_code)


def is_pool_exhausted(exc: Exception) -> bool:
    lower = str(exc).lower()
    return any(marker in lower for marker in POOL_EXHAUSTED_MARKERS)


def api_exception_handler(exc, context):
    request = context.get('request')
    view = context.get('view')
    route = f"{getattr(request, 'method', '')} {getattr(request, 'path', '')}".strip()

    if isinstance(exc, ProtectedError):
        return error_response(
            request, 'El registro está en uso y no se puede eliminar', status_code=status.HTTP_409_CONFLICT
        )
    if isinstance(exc, ObjectDoesNotExist):
        return error_response(request, 'No encontrado', status_code=status.HTTP_404_NOT_FOUND)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception({'requestId': request_id_of(request), 'route': route, 'view': getattr(view, '__name__', None)})
        if isinstance(exc, DatabaseError) and is_pool_exhausted(exc):
            return error_response(
                request, POOL_EXHAUSTED_MESSAGE, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=str(exc)
            )
        return error_response(request, str(exc) or 'Error', status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    # normalize response
    if isinstance(exc, ValidationError):
        return error_response(request, 'Datos inválidos', status_code=resp.status_code, details=resp.data)
    detail = resp.data.get('detail') if isinstance(resp.data, dict) else resp.data
    if isinstance(exc, Http404):
        detail = 'No encontrado'
    return error_response(request, str(detail), status_code=resp.status_code)
