"""Statistics report over the prescriptions received in a date range.

Aggregates are computed with the ORM (``values().annotate()``) so the
report runs on both PostgreSQL and SQLite; delivery percentiles are
interpolated in Python.
"""
from datetime import date
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Sum

from pharmacy.models import Medication, Pharmacist, PrepRequest, PrepRequestItem, Prescriber
from pharmacy.services.dates import add_days, iso_day, today


DEFAULT_RANGE_DAYS = 30
UPCOMING_DAYS = 31
SLA_HOURS = 4


def cache_key(start: date, end: date) -> str:
    return f'stats:{iso_day(start)}:{iso_day(end)}'


def percentile(sorted_values: list[float], fraction: float) -> Optional[float]:
    """Linear interpolation between closest ranks, like ``percentile_cont``."""
    if not sorted_values:
        return None
    pos = (len(sorted_values) - 1) * fraction
    lo = int(pos)
    hi = min(lo + 1, len(sorted_values) - 1)
    return sorted_values[lo] + (sorted_values[hi] - sorted_values[lo]) * (pos - lo)


def _staff_workload(items, field: str, model, id_key: str) -> list[dict]:
    groups = list(
        items.values(f'prep_request__{field}_id').annotate(lineas=Count('id')).order_by('-lineas')[:15]
    )
    ids = [g[f'prep_request__{field}_id'] for g in groups if g[f'prep_request__{field}_id']]
    staff = model.objects.in_bulk(ids)
    rows = []
    for g in groups:
        pk = g[f'prep_request__{field}_id']
        if pk is None:
            nombre = 'SIN ASIGNAR'
        else:
            nombre = staff[pk].label if pk in staff else str(pk)
        rows.append({id_key: str(pk) if pk else None, 'nombre': nombre, 'lineas': g['lineas']})
    return rows


def delivery_times(items) -> dict:
    hours = sorted(
        (entregado - creado).total_seconds() / 3600.0
        for creado, entregado in items.filter(entregado_at__isnull=False).values_list('created_at', 'entregado_at')
    )
    if not hours:
        return {'n': 0, 'avgHours': None, 'p50Hours': None, 'p90Hours': None, 'sla4hPct': None}
    within = sum(1 for h in hours if h <= SLA_HOURS)
    return {
        'n': len(hours),
        'avgHours': sum(hours) / len(hours),
        'p50Hours': percentile(hours, 0.5),
        'p90Hours': percentile(hours, 0.9),
        'sla4hPct': round(within * 1000 / len(hours)) / 10,
    }


def build_statistics(start: date, end: date) -> dict:
    requests = PrepRequest.objects.filter(fecha_recepcion__gte=start, fecha_recepcion__lte=end)
    items = PrepRequestItem.objects.filter(
        prep_request__fecha_recepcion__gte=start, prep_request__fecha_recepcion__lte=end
    )

    item_totals = items.aggregate(lineas=Count('id'), unidades=Sum('unidades_requeridas'))
    status_groups = list(items.values('estado').annotate(count=Count('id')).order_by('-count'))
    by_status = {g['estado']: g['count'] for g in status_groups}

    daily_recetas = {
        g['fecha_recepcion']: g for g in
        requests.values('fecha_recepcion').annotate(recetas=Count('id'), pacientes=Count('patient_id', distinct=True))
    }
    daily_lineas = {
        g['prep_request__fecha_recepcion']: g['lineas']
        for g in items.values('prep_request__fecha_recepcion').annotate(lineas=Count('id'))
    }
    daily = [
        {
            'fecha': iso_day(day),
            'recetas': g['recetas'],
            'pacientes': g['pacientes'],
            'lineas': daily_lineas.get(day, 0),
        }
        for day, g in sorted(daily_recetas.items())
    ]

    top_meds = list(
        items.values('medication_id')
        .annotate(lineas=Count('id'), unidades=Sum('unidades_requeridas'))
        .order_by('-lineas')[:10]
    )
    meds = Medication.objects.in_bulk([g['medication_id'] for g in top_meds])

    cancel_groups = (
        items.filter(estado='cancelado').values('cancelado_motivo').annotate(count=Count('id')).order_by('-count')[:10]
    )

    horizon = today()
    upcoming = (
        PrepRequestItem.objects.filter(
            prep_request__finalizado_at__isnull=True,
            prep_request__fecha_aplicacion__gte=horizon,
            prep_request__fecha_aplicacion__lt=add_days(horizon, UPCOMING_DAYS),
        )
        .values('prep_request__fecha_aplicacion')
        .annotate(pacientes=Count('prep_request__patient_id', distinct=True), lineas=Count('id'))
        .order_by('prep_request__fecha_aplicacion')
    )

    return {
        'range': {'from': iso_day(start), 'to': iso_day(end)},
        'totals': {
            'recetas': requests.count(),
            'pacientes': requests.values('patient_id').distinct().count(),
            'lineas': item_totals['lineas'],
            'unidades': float(item_totals['unidades'] or 0),
            'entregados': by_status.get('entregado', 0),
            'cancelados': by_status.get('cancelado', 0),
        },
        'daily': daily,
        'status': [{'estado': g['estado'], 'count': g['count']} for g in status_groups],
        'adquisicion': [
            {'adquisicion': g['adquisicion'], 'count': g['count']}
            for g in items.values('adquisicion').annotate(count=Count('id')).order_by('-count')
        ],
        'frecuencias': [
            {'frecuencia': g['frecuencia'] or 'SIN DEFINIR', 'count': g['count']}
            for g in items.values('frecuencia').annotate(count=Count('id')).order_by('-count')[:12]
        ],
        'topMedicamentos': [
            {
                'medicationId': str(g['medication_id']),
                'medicamento': meds[g['medication_id']].label if g['medication_id'] in meds else str(g['medication_id']),
                'lineas': g['lineas'],
                'unidades': float(g['unidades'] or 0),
            }
            for g in top_meds
        ],
        'cancelMotivos': [
            {'motivo': g['cancelado_motivo'] or 'SIN MOTIVO', 'count': g['count']} for g in cancel_groups
        ],
        'cargaFarmaceuticos': _staff_workload(items, 'pharmacist', Pharmacist, 'pharmacistId'),
        'cargaPrescriptores': _staff_workload(items, 'prescriber', Prescriber, 'prescriberId'),
        'tiemposEntrega': delivery_times(items),
        'upcoming': [
            {
                'fechaAplicacion': iso_day(g['prep_request__fecha_aplicacion']),
                'pacientes': g['pacientes'],
                'lineas': g['lineas'],
            }
            for g in upcoming
        ],
    }


def get_statistics(start: date, end: date, *, refresh: bool = False) -> dict:
    """Cached :func:`build_statistics`; ``refresh`` recomputes and re-caches."""
    key = cache_key(start, end)
    if not refresh:
        cached = cache.get(key)
        if cached is not None:
            return cached
    payload = build_statistics(start, end)
    cache.set(key, payload, settings.STATS_CACHE_SECONDS)
    return payload


def default_range() -> tuple[date, date]:
    end = today()
    return add_days(end, -(DEFAULT_RANGE_DAYS - 1)), end
