from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone

from pharmacy.models import Medication, Patient, PrepRequest, PrepRequestItem
from pharmacy.services.reports import normalize_medication_key
from pharmacy.services.statistics import cache_key, percentile

pytestmark = pytest.mark.django_db


def add_item(patient, med, fecha, *, recepcion='2025-03-01', unidades='1', **fields):
    req, _ = PrepRequest.objects.get_or_create(
        fecha_aplicacion=fecha, patient=patient, defaults={'fecha_recepcion': recepcion},
    )
    return PrepRequestItem.objects.create(
        prep_request=req, medication=med, dosis_texto='1', unidades_requeridas=Decimal(unidades), **fields,
    )


def test_normalize_medication_key():
    assert normalize_medication_key('1-10-44-1234 \u2013  paracetamol\u200b') == '1-10-44-1234 - PARACETAMOL'
    assert normalize_medication_key('\uff30\uff21\uff32\uff21') == 'PARA'
    assert normalize_medication_key('  suero\tfisiologico ') == 'SUERO FISIOLOGICO'


def test_medication_summary_merges_duplicates(api):
    a = Medication.objects.create(nombre='SUERO FISIOLOGICO')
    b = Medication.objects.create(nombre='suero  fisiologico')
    c = Medication.objects.create(codigo_institucional='1-10-44-0001', nombre='PARACETAMOL')
    patient = Patient.objects.create(identificacion='1')
    add_item(patient, a, '2025-03-10')
    add_item(patient, b, '2025-03-11')
    add_item(patient, b, '2025-03-12')
    add_item(patient, c, '2025-03-12')

    r = api.get('/api/medicamentos-resumen')
    assert r.status_code == 200
    groups = r.data['medications']
    assert len(groups) == 2
    assert groups[0]['key'] == 'SUERO FISIOLOGICO'
    assert sorted(groups[0]['ids']) == sorted([str(a.id), str(b.id)])
    assert groups[0]['count'] == 3
    assert groups[1]['nombre'] == '1-10-44-0001 - PARACETAMOL'

    r = api.get('/api/medicamentos-resumen', {'q': 'para', 'take': '9999'})
    assert [g['count'] for g in r.data['medications']] == [1]


def test_medication_range(api):
    med_a = Medication.objects.create(nombre='A')
    med_b = Medication.objects.create(nombre='B')
    p1 = Patient.objects.create(identificacion='1')
    p2 = Patient.objects.create(identificacion='2')
    add_item(p1, med_a, '2025-03-10', unidades='2')
    add_item(p2, med_a, '2025-03-10', unidades='3')
    add_item(p1, med_b, '2025-03-11', unidades='10')
    add_item(p2, med_b, '2025-03-11', unidades='7', estado='cancelado')
    add_item(p1, med_b, '2025-04-01', unidades='50')
    closed = add_item(p2, med_a, '2025-03-12', unidades='100')
    PrepRequest.objects.filter(id=closed.prep_request_id).update(finalizado_at=timezone.now())

    r = api.get('/api/medicamentos-rango', {'from': '2025-03-10', 'to': '2025-03-31'})
    assert r.status_code == 200
    assert [(row['medicamento'], row['lineas'], row['unidades']) for row in r.data['rows']] == [
        ('B', 1, 10.0), ('A', 2, 5.0),
    ]
    assert r.data['totals'] == {'lineas': 3, 'unidades': 15.0}


@pytest.mark.parametrize('params', [
    {},
    {'from': '2025-03-10'},
    {'from': '2025-03-10', 'to': '2025-03-01'},
    {'from': '2025-01-01', 'to': '2025-12-31'},
    {'from': '10/03/2025', 'to': '2025-03-31'},
])
def test_medication_range_rejects_bad_ranges(api, params):
    r = api.get('/api/medicamentos-rango', params)
    assert r.status_code == 400
    assert r.data['requestId']


def test_percentile_interpolates():
    assert percentile([], 0.5) is None
    assert percentile([1.0], 0.9) == 1.0
    assert percentile([1.0, 2.0, 3.0, 4.0], 0.5) == 2.5
    assert percentile([0.0, 10.0], 0.9) == 9.0


def test_statistics_report(api, catalog):
    med = catalog['medication']
    p1 = Patient.objects.create(identificacion='1')
    p2 = Patient.objects.create(identificacion='2')
    delivered = add_item(p1, med, '2025-03-10', recepcion='2025-03-05', unidades='2', estado='entregado',
                         frecuencia='C/8H')
    PrepRequestItem.objects.filter(id=delivered.id).update(entregado_at=delivered.created_at + timedelta(hours=2))
    add_item(p1, med, '2025-03-10', recepcion='2025-03-05', unidades='1', estado='cancelado')
    add_item(p2, med, '2025-03-11', recepcion='2025-03-06', unidades='4')
    PrepRequest.objects.filter(patient=p1).update(pharmacist=catalog['pharmacist'])
    # Outside the range.
    add_item(p2, med, '2025-05-11', recepcion='2025-05-06', unidades='4')

    r = api.get('/api/estadistica', {'from': '2025-03-01', 'to': '2025-03-31'})
    assert r.status_code == 200
    data = r.data
    assert data['range'] == {'from': '2025-03-01', 'to': '2025-03-31'}
    assert data['totals'] == {
        'recetas': 2, 'pacientes': 2, 'lineas': 3, 'unidades': 7.0, 'entregados': 1, 'cancelados': 1,
    }
    assert data['daily'] == [
        {'fecha': '2025-03-05', 'recetas': 1, 'pacientes': 1, 'lineas': 2},
        {'fecha': '2025-03-06', 'recetas': 1, 'pacientes': 1, 'lineas': 1},
    ]
    assert {s['estado']: s['count'] for s in data['status']} == {'entregado': 1, 'cancelado': 1, 'pendiente': 1}
    assert data['adquisicion'] == [{'adquisicion': 'almacenable', 'count': 3}]
    assert {f['frecuencia'] for f in data['frecuencias']} == {'C/8H', 'SIN DEFINIR'}
    assert data['topMedicamentos'][0]['medicamento'] == '1-10-44-0001 - PARACETAMOL'
    assert data['cancelMotivos'] == [{'motivo': 'SIN MOTIVO', 'count': 1}]
    carga = {row['nombre']: row['lineas'] for row in data['cargaFarmaceuticos']}
    assert carga == {'FAR001 - LUCIA VARGAS': 2, 'SIN ASIGNAR': 1}
    assert data['cargaPrescriptores'] == [{'prescriberId': None, 'nombre': 'SIN ASIGNAR', 'lineas': 3}]
    tiempos = data['tiemposEntrega']
    assert tiempos['n'] == 1
    assert tiempos['p50Hours'] == pytest.approx(2.0)
    assert tiempos['sla4hPct'] == 100.0


def test_statistics_upcoming_and_default_range(api, catalog):
    patient = Patient.objects.create(identificacion='1')
    tomorrow = timezone.localdate() + timedelta(days=1)
    add_item(patient, catalog['medication'], tomorrow, recepcion=timezone.localdate())

    r = api.get('/api/estadistica')
    assert r.status_code == 200
    assert r.data['range']['to'] == timezone.localdate().isoformat()
    assert r.data['totals']['recetas'] == 1
    assert r.data['upcoming'] == [{'fechaAplicacion': tomorrow.isoformat(), 'pacientes': 1, 'lineas': 1}]


def test_statistics_are_cached(api):
    r1 = api.get('/api/estadistica', {'from': '2025-03-01', 'to': '2025-03-31'})
    assert r1.data['totals']['recetas'] == 0
    assert cache.get(cache_key(date(2025, 3, 1), date(2025, 3, 31))) is not None
    Patient.objects.create(identificacion='1')
    PrepRequest.objects.create(fecha_aplicacion='2025-03-10', fecha_recepcion='2025-03-05',
                               patient=Patient.objects.get())
    r2 = api.get('/api/estadistica', {'from': '2025-03-01', 'to': '2025-03-31'})
    assert r2.data['totals']['recetas'] == 0


def test_statistics_rejects_long_range(api):
    r = api.get('/api/estadistica', {'from': '2025-01-01', 'to': '2025-12-31'})
    assert r.status_code == 400


def test_statistics_failure_is_reported(api, monkeypatch):
    def boom(start, end):
        raise RuntimeError('db exploded')

    monkeypatch.setattr('pharmacy.services.statistics.build_statistics', boom)
    r = api.get('/api/estadistica', {'from': '2025-03-01', 'to': '2025-03-02'})
    assert r.status_code == 500
    assert r.data['error'] == 'No se pudo calcular la estadística. Intenta de nuevo.'
    assert r.data['details'] == 'db exploded'
