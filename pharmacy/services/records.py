"""Historical views over the agenda and the date reconciliation routine.

Rows in both views are built by grouping item lines in Python: a row is
one prescription line for one patient, spread over several application
dates.
"""
import logging
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from pharmacy.exceptions import BadRequest
from pharmacy.models import Patient, Pharmacist, PrepRequest, PrepRequestItem, Prescriber
from pharmacy.services.catalog import parse_medication_input, resolve_medication, upper_or_none
from pharmacy.services.dates import day_start, iso_day

logger = logging.getLogger(__name__)

REGISTER_SCAN_LIMIT = 20000
RECENT_SCAN_LIMIT = 250
RECENT_DEFAULT_ROWS = 5


def paginate(rows: list, offset: int, take: int) -> dict:
    total = len(rows)
    return {
        'rows': rows[offset:offset + take],
        'total': total,
        'offset': offset,
        'take': take,
        'hasMore': offset + take < total,
    }


# -----------------------------------------------------------------------------
# Patient application register
# -----------------------------------------------------------------------------
def register_filter(q: str) -> Q:
    return (
        Q(dosis_texto__icontains=q)
        | Q(medication__nombre__icontains=q)
        | Q(medication__codigo_institucional__icontains=q)
        | Q(prep_request__numero_receta__icontains=q)
        | Q(prep_request__patient__identificacion__icontains=q)
        | Q(prep_request__patient__nombre__icontains=q)
        | Q(prep_request__pharmacist__codigo__icontains=q)
        | Q(prep_request__pharmacist__nombres__icontains=q)
        | Q(prep_request__pharmacist__apellidos__icontains=q)
    )


def application_register(*, historico: bool = False, q: str = '', offset: int = 0, take: int = 50) -> dict:
    """Prescription lines with their application dates and which were applied."""
    qs = PrepRequestItem.objects.select_related(
        'medication', 'prep_request__patient', 'prep_request__pharmacist'
    )
    if not historico:
        qs = qs.filter(prep_request__finalizado_at__isnull=True)
    q = q.strip()
    if q:
        qs = qs.filter(register_filter(q))

    grouped: dict[tuple, dict] = {}
    for it in qs.order_by('-updated_at')[:REGISTER_SCAN_LIMIT]:
        pr = it.prep_request
        fecha_recepcion = iso_day(pr.fecha_recepcion)
        key = (
            pr.patient_id, it.medication_id, pr.numero_receta or '',
            fecha_recepcion or '', pr.pharmacist_id or '', it.dosis_texto,
        )
        row = grouped.get(key)
        if row is None:
            row = grouped[key] = {
                'patientId': str(pr.patient_id),
                'medicationId': str(it.medication_id),
                'fechaRecepcion': fecha_recepcion,
                'numeroReceta': pr.numero_receta,
                'cedula': pr.patient.identificacion,
                'nombre': pr.patient.nombre,
                'medicamento': it.medication.label,
                'dosis': it.dosis_texto,
                'fechasAplicacion': set(),
                'fechasAplicacionCumplidas': set(),
                'farmaceutico': pr.pharmacist.label if pr.pharmacist else None,
            }
        fecha = iso_day(pr.fecha_aplicacion)
        row['fechasAplicacion'].add(fecha)
        if it.aplicado_at:
            row['fechasAplicacionCumplidas'].add(fecha)

    rows = []
    for row in grouped.values():
        row['fechasAplicacion'] = sorted(row['fechasAplicacion'])
        row['fechasAplicacionCumplidas'] = sorted(row['fechasAplicacionCumplidas'])
        rows.append(row)

    # Stable sorts, least significant key first.
    rows.sort(key=lambda r: r['cedula'])
    rows.sort(key=lambda r: r['fechasAplicacion'][-1] if r['fechasAplicacion'] else '', reverse=True)
    rows.sort(key=lambda r: r['fechaRecepcion'] or '', reverse=True)
    return paginate(rows, offset, take)


@transaction.atomic
def set_application(*, patient_id, medication_id, dosis_texto: str, fecha_aplicacion,
                    aplicado: Optional[bool] = None) -> Optional[bool]:
    """Mark (or toggle) the matching lines as applied.

    Returns the new state, or ``None`` when no line matches.
    """
    items = PrepRequestItem.objects.filter(
        medication_id=medication_id,
        dosis_texto=dosis_texto,
        prep_request__patient_id=patient_id,
        prep_request__fecha_aplicacion=fecha_aplicacion,
    )
    locked = list(items.select_for_update(of=('self',)).order_by('id').only('id', 'aplicado_at'))
    if not locked:
        return None
    all_applied = all(it.aplicado_at is not None for it in locked)
    applied = aplicado if aplicado is not None else not all_applied
    PrepRequestItem.objects.filter(id__in=[it.id for it in locked]).update(
        aplicado_at=timezone.now() if applied else None,
        updated_at=timezone.now(),
    )
    return applied


@transaction.atomic
def delete_patient_records(patient_id) -> dict:
    patient = Patient.objects.select_for_update().get(pk=patient_id)
    deleted_items, _ = PrepRequestItem.objects.filter(prep_request__patient=patient).delete()
    deleted_requests, _ = PrepRequest.objects.filter(patient=patient).delete()
    patient.delete()
    logger.info({'event': 'patient_records_deleted', 'patientId': str(patient_id),
                 'items': deleted_items, 'requests': deleted_requests})
    return {'deletedItems': deleted_items, 'deletedPrepRequests': deleted_requests}


# -----------------------------------------------------------------------------
# Latest registrations
# -----------------------------------------------------------------------------
def recent_records(*, month: Optional[tuple] = None, take: Optional[int] = None) -> list[dict]:
    """Latest prescription lines, grouped the way the quick-entry form edits them.

    ``month`` is a ``(first day, first day of next month)`` pair. Without
    it only the newest items are scanned.
    """
    qs = PrepRequestItem.objects.select_related('medication', 'prep_request__patient')
    if month:
        start, end = month
        qs = qs.filter(
            Q(prep_request__fecha_recepcion__gte=start, prep_request__fecha_recepcion__lt=end)
            | Q(
                prep_request__fecha_recepcion__isnull=True,
                prep_request__created_at__gte=day_start(start),
                prep_request__created_at__lt=day_start(end),
            )
        )
    qs = qs.order_by('-created_at')
    if not month:
        qs = qs[:RECENT_SCAN_LIMIT]

    grouped: dict[tuple, dict] = {}
    for it in qs:
        pr = it.prep_request
        fecha_recepcion = iso_day(pr.fecha_recepcion)
        key = (
            pr.patient_id, it.medication_id, it.dosis_texto, it.frecuencia or '',
            pr.numero_receta or '', fecha_recepcion or '', pr.pharmacist_id or '',
            pr.prescriber_id or '', it.adquisicion,
        )
        row = grouped.get(key)
        if row is None:
            row = grouped[key] = {
                'id': str(it.id),
                'patientId': str(pr.patient_id),
                'fecha': fecha_recepcion,
                'fechaRecepcion': fecha_recepcion,
                'numeroReceta': pr.numero_receta,
                'prescriberId': str(pr.prescriber_id) if pr.prescriber_id else None,
                'pharmacistId': str(pr.pharmacist_id) if pr.pharmacist_id else None,
                'cedula': pr.patient.identificacion,
                'nombre': pr.patient.nombre,
                'medicationId': str(it.medication_id),
                'medicamento': it.medication.label,
                'dosisTexto': it.dosis_texto,
                'unidadesRequeridas': float(it.unidades_requeridas),
                'frecuencia': it.frecuencia,
                'adquisicion': it.adquisicion,
                'observaciones': it.observaciones,
                'fechasAplicacion': set(),
                'itemIds': [],
                '_sort_at': it.created_at,
            }
        row['fechasAplicacion'].add(iso_day(pr.fecha_aplicacion))
        if str(it.id) not in row['itemIds']:
            row['itemIds'].append(str(it.id))
        if it.created_at > row['_sort_at']:
            row['_sort_at'] = it.created_at

    rows = sorted(grouped.values(), key=lambda r: r['_sort_at'], reverse=True)
    for row in rows:
        del row['_sort_at']
        row['fechasAplicacion'] = sorted(row['fechasAplicacion'])

    limit = take if take is not None else (None if month else RECENT_DEFAULT_ROWS)
    return rows[:limit] if limit else rows


def _prescription_changes(data: dict) -> dict:
    changes = {}
    if data.get('fechaRecepcion') is not None:
        changes['fecha_recepcion'] = data['fechaRecepcion']
    if 'numeroReceta' in data:
        changes['numero_receta'] = data['numeroReceta']
    if 'prescriberId' in data:
        changes['prescriber_id'] = data['prescriberId']
    if 'pharmacistId' in data:
        changes['pharmacist_id'] = data['pharmacistId']
    return changes


@transaction.atomic
def reconcile_application_dates(data: dict) -> dict:
    """Bring a prescription line to exactly the requested application dates.

    ``data`` is the validated payload of ``RecordReconcileSerializer``.
    Items listed in ``itemIds`` that belong to another patient are left
    alone. Surviving items keep their ``estado``; dates no longer wanted
    lose their item, and new dates get a fresh ``pendiente`` item on the
    (date, patient) request.
    """
    if data.get('prescriberId') and not Prescriber.objects.filter(pk=data['prescriberId']).exists():
        raise BadRequest('Prescriptor no encontrado')
    if data.get('pharmacistId') and not Pharmacist.objects.filter(pk=data['pharmacistId']).exists():
        raise BadRequest('Farmacéutico no encontrado')

    med_in = data['medication']
    medication = resolve_medication(parse_medication_input(
        id=med_in.get('id'), codigo=med_in.get('codigoInstitucional'), nombre=med_in['nombre'],
    ))

    patient = Patient.objects.select_for_update().get(pk=data['patientId'])
    identificacion = data['identificacion'].upper()
    if Patient.objects.filter(identificacion=identificacion).exclude(pk=patient.pk).exists():
        raise BadRequest('Ya existe otro paciente con esa identificación')
    patient.identificacion = identificacion
    if 'nombre' in data:
        patient.nombre = upper_or_none(data['nombre'])
    patient.save()

    targets = list(dict.fromkeys(data['fechasAplicacion']))
    items = list(
        PrepRequestItem.objects.select_related('prep_request')
        .filter(id__in=data['itemIds'], prep_request__patient=patient)
    )
    existing_by_date: dict = {}
    request_ids = set()
    for it in items:
        existing_by_date.setdefault(it.prep_request.fecha_aplicacion, []).append(it.id)
        request_ids.add(it.prep_request_id)

    changes = _prescription_changes(data)
    if changes and request_ids:
        PrepRequest.objects.filter(id__in=request_ids).update(updated_at=timezone.now(), **changes)

    line = {
        'medication': medication,
        'dosis_texto': data['dosisTexto'].upper(),
        'unidades_requeridas': data['unidadesRequeridas'],
        'frecuencia': upper_or_none(data.get('frecuencia')),
        'adquisicion': data.get('adquisicion') or 'almacenable',
        'observaciones': data.get('observaciones') or None,
    }
    PrepRequestItem.objects.filter(id__in=[it.id for it in items]).update(updated_at=timezone.now(), **line)

    to_delete = [pk for fecha, ids in existing_by_date.items() if fecha not in targets for pk in ids]
    if to_delete:
        PrepRequestItem.objects.filter(id__in=to_delete).delete()
        # Requests that lost their last line would linger as empty agenda rows.
        PrepRequest.objects.filter(id__in=request_ids, items__isnull=True).delete()

    created = 0
    for fecha in targets:
        if fecha in existing_by_date:
            continue
        req, _ = PrepRequest.objects.update_or_create(
            fecha_aplicacion=fecha,
            patient=patient,
            defaults=changes,
            create_defaults={
                'fecha_recepcion': data.get('fechaRecepcion'),
                'numero_receta': data.get('numeroReceta'),
                'prescriber_id': data.get('prescriberId'),
                'pharmacist_id': data.get('pharmacistId'),
            },
        )
        PrepRequestItem.objects.create(prep_request=req, estado='pendiente', **line)
        created += 1

    logger.info({'event': 'application_dates_reconciled', 'patientId': str(patient.id),
                 'updated': len(items), 'created': created, 'deleted': len(to_delete)})
    return {'ok': True, 'updated': len(items), 'created': created, 'deleted': len(to_delete)}
