import logging
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from pharmacy.exceptions import BadRequest
from pharmacy.models import Medication, Pharmacist, PrepRequest, PrepRequestItem, Prescriber
from pharmacy.services.catalog import upsert_patient
from pharmacy.services.dates import iso_day, iso_ts

logger = logging.getLogger(__name__)

PREP_REQUEST_LIST_LIMIT = 300
ITEM_LIST_LIMIT = 500


def blank_to_none(value: Optional[str]) -> Optional[str]:
    return value if value else None


# -----------------------------------------------------------------------------
# Preparation requests
# -----------------------------------------------------------------------------
def list_prep_requests(fecha=None, historico: bool = False) -> list[dict]:
    qs = PrepRequest.objects.select_related('patient').annotate(items_count=Count('items'))
    if fecha:
        qs = qs.filter(fecha_aplicacion=fecha)
    qs = qs.filter(finalizado_at__isnull=not historico)
    rows = qs.order_by('-fecha_aplicacion', '-updated_at')[:PREP_REQUEST_LIST_LIMIT]
    return [
        {
            'id': str(r.id),
            'fechaAplicacion': iso_day(r.fecha_aplicacion),
            'patientId': str(r.patient_id),
            'identificacion': r.patient.identificacion,
            'nombre': r.patient.nombre,
            'finalizadoAt': iso_ts(r.finalizado_at),
            'itemsCount': r.items_count,
        }
        for r in rows
    ]


def prep_request_detail(pk) -> dict:
    req = PrepRequest.objects.select_related('patient').get(pk=pk)
    items = req.items.select_related('medication').order_by('-updated_at')
    return {
        'id': str(req.id),
        'fechaAplicacion': iso_day(req.fecha_aplicacion),
        'identificacion': req.patient.identificacion,
        'nombre': req.patient.nombre,
        'finalizadoAt': iso_ts(req.finalizado_at),
        'items': [
            {
                'id': str(it.id),
                'estado': it.estado,
                'medicamento': it.medication.label,
                'dosisTexto': it.dosis_texto,
                'unidadesRequeridas': float(it.unidades_requeridas),
                'observaciones': it.observaciones,
                'entregadoAt': iso_ts(it.entregado_at),
                'canceladoMotivo': it.cancelado_motivo,
            }
            for it in items
        ],
    }


@transaction.atomic
def delete_prep_request(pk) -> None:
    req = PrepRequest.objects.select_for_update().get(pk=pk)
    PrepRequestItem.objects.filter(prep_request=req).delete()
    req.delete()


def finalize_prep_request(pk, finalizado_by: Optional[str] = None) -> PrepRequest:
    req = PrepRequest.objects.get(pk=pk)
    req.finalizado_at = timezone.now()
    req.finalizado_by = finalizado_by or 'farmacia'
    req.save(update_fields=['finalizado_at', 'finalizado_by', 'updated_at'])
    return req


# -----------------------------------------------------------------------------
# Items
# -----------------------------------------------------------------------------
def item_payload(it: PrepRequestItem) -> dict:
    pr = it.prep_request
    med = it.medication
    return {
        'id': str(it.id),
        'prepRequestId': str(pr.id),
        'patientId': str(pr.patient_id),
        'fechaAplicacion': iso_day(pr.fecha_aplicacion),
        'numeroReceta': pr.numero_receta,
        'estado': it.estado,
        'identificacion': pr.patient.identificacion,
        'nombre': pr.patient.nombre,
        'prescriberCodigo': pr.prescriber.codigo if pr.prescriber else None,
        'pharmacistCodigo': pr.pharmacist.codigo if pr.pharmacist else None,
        'medicationId': str(med.id),
        'medicationCodigo': med.codigo_institucional,
        'medicationNombre': med.nombre,
        'medicationViaAdministracion': med.via_administracion,
        'medicamento': med.label,
        'dosisTexto': it.dosis_texto,
        'unidadesRequeridas': float(it.unidades_requeridas),
        'frecuencia': it.frecuencia,
        'adquisicion': it.adquisicion,
        'observaciones': it.observaciones,
        'entregadoAt': iso_ts(it.entregado_at),
        'canceladoMotivo': it.cancelado_motivo,
        'createdBy': it.created_by,
        'createdAt': iso_ts(it.created_at),
        'updatedBy': it.updated_by,
        'updatedAt': iso_ts(it.updated_at),
        'idRegistro': str(it.id),
    }


def list_items(*, fecha=None, patient: str = '', med: str = '', statuses: Optional[list[str]] = None) -> list[dict]:
    """Open agenda lines, most recently touched first."""
    qs = PrepRequestItem.objects.select_related(
        'medication', 'prep_request__patient', 'prep_request__prescriber', 'prep_request__pharmacist'
    ).filter(prep_request__finalizado_at__isnull=True)
    if statuses:
        qs = qs.filter(estado__in=statuses)
    if fecha:
        qs = qs.filter(prep_request__fecha_aplicacion=fecha)
    patient = patient.strip()
    if patient:
        qs = qs.filter(
            Q(prep_request__patient__identificacion__icontains=patient)
            | Q(prep_request__patient__nombre__icontains=patient)
        )
    med = med.strip()
    if med:
        qs = qs.filter(Q(medication__nombre__icontains=med) | Q(medication__codigo_institucional__icontains=med))
    return [item_payload(it) for it in qs.order_by('-updated_at')[:ITEM_LIST_LIMIT]]


def create_items(data: dict) -> list[str]:
    """Create one line per application date and return the item ids.

    ``data`` is the validated payload of ``ItemCreateSerializer``. The
    (date, patient) request is upserted with the prescription metadata;
    an identical line created within ``DUPLICATE_WINDOW_SECONDS`` is
    returned instead of creating a second one.
    """
    if not Prescriber.objects.filter(pk=data['prescriberId']).exists():
        raise BadRequest('Prescriptor no encontrado')
    if not Pharmacist.objects.filter(pk=data['pharmacistId']).exists():
        raise BadRequest('Farmacéutico no encontrado')
    medication_id = data['medication']['id']
    if not Medication.objects.filter(pk=medication_id).exists():
        raise BadRequest('Medicamento no encontrado')

    created_by = data.get('createdBy') or None
    dosis = data['dosisTexto'].upper()
    frecuencia = data['frecuencia'].upper()
    adquisicion = data['adquisicion']
    observaciones = blank_to_none(data.get('observaciones'))
    unidades = data['unidadesRequeridas']
    prescription = {
        'fecha_recepcion': data['fechaRecepcion'],
        'numero_receta': data['numeroReceta'],
        'prescriber_id': data['prescriberId'],
        'pharmacist_id': data['pharmacistId'],
    }
    update_fields = dict(prescription)
    if created_by:
        update_fields['updated_by'] = created_by

    duplicate_since = timezone.now() - timedelta(seconds=settings.DUPLICATE_WINDOW_SECONDS)

    ids = []
    with transaction.atomic():
        patient = upsert_patient(data['patient']['identificacion'], data['patient']['nombre'])
        for fecha in data['fechas']:
            req, _ = PrepRequest.objects.update_or_create(
                fecha_aplicacion=fecha,
                patient=patient,
                defaults=update_fields,
                create_defaults={**prescription, 'created_by': created_by, 'updated_by': created_by},
            )
            existing = (
                PrepRequestItem.objects.filter(
                    prep_request=req,
                    medication_id=medication_id,
                    dosis_texto=dosis,
                    unidades_requeridas=unidades,
                    frecuencia=frecuencia,
                    adquisicion=adquisicion,
                    observaciones=observaciones,
                    created_at__gte=duplicate_since,
                )
                .order_by('-created_at')
                .first()
            )
            if existing:
                logger.info({'event': 'item_double_submit', 'itemId': str(existing.id)})
                ids.append(str(existing.id))
                continue
            item = PrepRequestItem.objects.create(
                prep_request=req,
                medication_id=medication_id,
                dosis_texto=dosis,
                unidades_requeridas=unidades,
                estado='pendiente',
                frecuencia=frecuencia,
                adquisicion=adquisicion,
                observaciones=observaciones,
                created_by=created_by,
                updated_by=created_by,
            )
            ids.append(str(item.id))
    return ids


def update_item(pk, data: dict) -> PrepRequestItem:
    item = PrepRequestItem.objects.get(pk=pk)
    if data.get('estado'):
        item.estado = data['estado']
    if data.get('dosisTexto'):
        item.dosis_texto = data['dosisTexto'].upper()
    if data.get('unidadesRequeridas') is not None:
        item.unidades_requeridas = data['unidadesRequeridas']
    if 'observaciones' in data:
        item.observaciones = blank_to_none(data['observaciones'])
    if 'updatedBy' in data:
        item.updated_by = data['updatedBy']
    if 'entregadoAt' in data:
        item.entregado_at = data['entregadoAt']
    if 'canceladoMotivo' in data:
        item.cancelado_motivo = blank_to_none(data['canceladoMotivo'])
    item.save()
    return item


def duplicate_item(pk, created_by: Optional[str] = None) -> PrepRequestItem:
    item = PrepRequestItem.objects.get(pk=pk)
    return PrepRequestItem.objects.create(
        prep_request_id=item.prep_request_id,
        medication_id=item.medication_id,
        dosis_texto=item.dosis_texto,
        unidades_requeridas=item.unidades_requeridas,
        estado='pendiente',
        frecuencia=item.frecuencia,
        adquisicion=item.adquisicion,
        observaciones=item.observaciones,
        created_by=created_by,
        updated_by=created_by,
    )
