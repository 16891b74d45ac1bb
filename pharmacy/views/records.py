"""
Patient application register (``registro-pacientes``).

Nurses tick off each application date of a prescription line here; the
grouping mirrors the printed register sheet.
"""
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..exceptions import error_response, request_id_of
from ..serializers.records import ApplicationToggleSerializer, RegisterQuerySerializer
from ..services.dates import clamp_int
from ..services.records import application_register, delete_patient_records, set_application


@api_view(['GET'])
def register(request):
    q = RegisterQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    payload = application_register(
        historico=q.validated_data['historico'],
        q=q.validated_data['q'],
        take=clamp_int(request.query_params.get('take'), 50, 1, 200),
        offset=clamp_int(request.query_params.get('offset'), 0, 0),
    )
    return Response({'requestId': request_id_of(request), **payload})


@api_view(['PATCH'])
def register_application(request):
    s = ApplicationToggleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = s.validated_data
    applied = set_application(
        patient_id=data['patientId'],
        medication_id=data['medicationId'],
        dosis_texto=data['dosisTexto'],
        fecha_aplicacion=data['fechaAplicacion'],
        aplicado=data.get('aplicado'),
    )
    if applied is None:
        return error_response(
            request, 'No se encontró el registro de aplicación', status_code=status.HTTP_404_NOT_FOUND
        )
    return Response({'requestId': request_id_of(request), 'applied': applied})


@api_view(['DELETE'])
def register_patient(request, pk):
    return Response({'ok': True, **delete_patient_records(pk)})
