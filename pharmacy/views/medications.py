import uuid

from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..exceptions import BadRequest, request_id_of
from ..serializers.agenda import PrepRequestListQuerySerializer
from ..serializers.catalog import MedicationUpsertSerializer, SearchQuerySerializer
from ..services.catalog import delete_medication, format_medication, search_medications, upsert_medication
from ..services.dates import clamp_int
from ..services.reports import medication_patients


@api_view(['GET', 'POST'])
def medications(request):
    if request.method == 'GET':
        q = SearchQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        return Response([format_medication(m) for m in search_medications(q.validated_data['query'].strip())])
    s = MedicationUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = s.validated_data
    med = upsert_medication(
        nombre=data['nombre'],
        codigo=data.get('codigoInstitucional'),
        concentracion=data.get('concentracion'),
        via_administracion=data.get('viaAdministracion'),
        presentacion=data.get('presentacion'),
    )
    return Response({'id': str(med.id)})


@api_view(['DELETE'])
def medication_detail(request, pk):
    delete_medication(pk)
    return Response({'ok': True})


def _parse_ids(raw: str) -> list[str]:
    ids = [s.strip() for s in raw.split(',') if s.strip()]
    try:
        return [str(uuid.UUID(s)) for s in ids]
    except ValueError:
        raise BadRequest('Identificador de medicamento inválido')


@api_view(['GET'])
def medication_patients_view(request, ids: str):
    """Patients with agenda lines for one medication or a merged group of them."""
    medication_ids = _parse_ids(ids)
    if not medication_ids:
        raise BadRequest('Identificador de medicamento inválido')
    q = PrepRequestListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    payload = medication_patients(
        medication_ids,
        fecha=q.validated_data.get('date'),
        historico=q.validated_data['historico'],
        take=clamp_int(request.query_params.get('take'), 50, 1, 200),
        offset=clamp_int(request.query_params.get('offset'), 0, 0),
    )
    return Response({**payload, 'requestId': request_id_of(request)})
