import re
import unicodedata
from typing import Optional

from django.conf import settings
from django.db.models import Count, Q, Sum

from pharmacy.exceptions import BadRequest
from pharmacy.models import Medication, PrepRequestItem
from pharmacy.services.dates import add_days, iso_day, parse_iso_date, today

ZERO_WIDTH_RE = re.compile('[\u200b-\u200d\ufeff]')
DASHES_RE = re.compile('[\u2010-\u2015]')
WHITESPACE_RE = re.compile(r'\s+')

PATIENT_SCAN_LIMIT = 5000
SUMMARY_SCAN_LIMIT = 2000


def normalize_medication_key(value: str) -> str:
    """Key under which visually identical catalog labels collapse.

    >>> normalize_medication_key('1-10-44-1234 \u2013  paracetamol\u200b')
    '1-10-44-1234 - PARACETAMOL'
    """
    value = unicodedata.normalize('NFKC', value)
    value = ZERO_WIDTH_RE.sub('', value)
    value = DASHES_RE.sub('-', value)
    value = WHITESPACE_RE.sub(' ', value)
    return value.strip().upper()


def resolve_range(from_raw: Optional[str], to_raw: Optional[str], *, default_days: Optional[int] = None):
    """Parse and check a ``from``/``to`` pair of calendar days.

    With ``default_days`` missing bounds default to the ``default_days``
    days ending today; otherwise both bounds are required.
    """
    if default_days is not None:
        end_default = today()
        to_raw = to_raw or iso_day(end_default)
        from_raw = from_raw or iso_day(add_days(end_default, -(default_days - 1)))
    start = parse_iso_date(from_raw)
    end = parse_iso_date(to_raw)
    if not start or not end:
        raise BadRequest('Rango de fechas inválido')
    if end < start:
        raise BadRequest('La fecha final no puede ser menor a la inicial')
    max_days = settings.STATS_MAX_RANGE_DAYS
    if (end - start).days > max_days:
        raise BadRequest(f'El rango máximo permitido es de {max_days} días')
    return start, end


def medication_range(start, end) -> dict:
    """Units and lines per medication still to prepare in ``[start, end]``."""
    grouped = (
        PrepRequestItem.objects.exclude(estado='cancelado')
        .filter(
            prep_request__fecha_aplicacion__gte=start,
            prep_request__fecha_aplicacion__lte=end,
            prep_request__finalizado_at__isnull=True,
        )
        .values('medication_id')
        .annotate(lineas=Count('id'), unidades=Sum('unidades_requeridas'))
        .order_by('-unidades')
    )
    groups = list(grouped)
    meds = Medication.objects.in_bulk([g['medication_id'] for g in groups])
    rows = []
    for g in groups:
        med = meds.get(g['medication_id'])
        rows.append({
            'medicationId': str(g['medication_id']),
            'medicamento': med.label if med else str(g['medication_id']),
            'lineas': g['lineas'],
            'unidades': float(g['unidades'] or 0),
        })
    return {
        'range': {'from': iso_day(start), 'to': iso_day(end)},
        'totals': {
            'lineas': sum(r['lineas'] for r in rows),
            'unidades': sum(r['unidades'] for r in rows),
        },
        'rows': rows,
    }


def medication_summary(q: str = '', take: int = 300) -> list[dict]:
    """Catalog entries merged by normalised label, most used first."""
    qs = Medication.objects.annotate(items_count=Count('items'))
    q = q.strip()
    if q:
        qs = qs.filter(Q(nombre__icontains=q) | Q(codigo_institucional__icontains=q))
    meds = qs.order_by('-items_count', 'nombre')[:min(SUMMARY_SCAN_LIMIT, take * 4)]

    grouped: dict[str, dict] = {}
    for m in meds:
        label = m.label
        key = normalize_medication_key(label)
        group = grouped.setdefault(key, {'key': key, 'nombre': label, 'ids': [], 'count': 0})
        if str(m.id) not in group['ids']:
            group['ids'].append(str(m.id))
        group['count'] += m.items_count

    rows = sorted(grouped.values(), key=lambda g: (-g['count'], g['nombre']))
    return rows[:take]


def medication_patients(medication_ids: list[str], *, fecha=None, historico: bool = False,
                        offset: int = 0, take: int = 50) -> dict:
    """Patients with lines for any of ``medication_ids``, by identificacion."""
    qs = PrepRequestItem.objects.filter(medication_id__in=medication_ids)
    if fecha:
        qs = qs.filter(prep_request__fecha_aplicacion=fecha)
    if not historico:
        qs = qs.filter(prep_request__finalizado_at__isnull=True)
    values = qs.order_by('-updated_at').values_list(
        'prep_request__patient_id',
        'prep_request__patient__identificacion',
        'prep_request__patient__nombre',
        'prep_request__fecha_aplicacion',
    )[:PATIENT_SCAN_LIMIT]

    by_patient: dict = {}
    for patient_id, identificacion, nombre, fecha_aplicacion in values:
        row = by_patient.setdefault(patient_id, {
            'patientId': str(patient_id),
            'identificacion': identificacion,
            'nombre': nombre,
            'fechasAplicacion': set(),
            'lineas': 0,
        })
        row['fechasAplicacion'].add(iso_day(fecha_aplicacion))
        row['lineas'] += 1

    patients = sorted(by_patient.values(), key=lambda r: r['identificacion'])
    for row in patients:
        row['fechasAplicacion'] = sorted(row['fechasAplicacion'])
    total = len(patients)
    return {
        'patients': patients[offset:offset + take],
        'total': total,
        'offset': offset,
        'take': take,
        'hasMore': offset + take < total,
    }
