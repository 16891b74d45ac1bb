import json
import logging
import sys

import pytest
from django.core.cache import cache
from django.core.management import call_command
from django.db import OperationalError

from hospital_pharmacy.logging_utils import JsonFormatter
from pharmacy.exceptions import POOL_EXHAUSTED_MESSAGE
from pharmacy.models import Medication, Pharmacist, Prescriber
from pharmacy.services.statistics import cache_key, default_range

pytestmark = pytest.mark.django_db


def test_healthz(api):
    r = api.get('/healthz')
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'db': True}


def test_request_id_is_echoed(api):
    r = api.get('/api/patients', HTTP_X_REQUEST_ID='abc-123')
    assert r['x-request-id'] == 'abc-123'
    r = api.get('/api/patients')
    assert r['x-request-id']


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_client_error_log(api):
    handler = ListHandler()
    client_logger = logging.getLogger('pharmacy.client')
    client_logger.addHandler(handler)
    try:
        r = api.post('/api/error-log', {'source': 'AgendaDia', 'message': 'boom'}, format='json',
                     HTTP_X_REQUEST_ID='req-1')
    finally:
        client_logger.removeHandler(handler)
    assert r.status_code == 200
    assert r.data == {'ok': True}
    (record,) = handler.records
    assert record.levelno == logging.WARNING
    assert record.msg['requestId'] == 'req-1'
    assert record.msg['message'] == 'boom'


def test_client_error_log_requires_message(api):
    r = api.post('/api/error-log', {'source': 'AgendaDia'}, format='json')
    assert r.status_code == 400


def test_seed_catalog_is_idempotent():
    call_command('seed_catalog')
    call_command('seed_catalog')
    assert Prescriber.objects.count() == 2
    assert Pharmacist.objects.count() == 2
    assert Medication.objects.count() == 3
    assert Medication.objects.get(codigo_institucional='1-10-44-0001').via_administracion == 'ORAL'


def test_refresh_caches_warms_statistics():
    call_command('refresh_caches')
    start, end = default_range()
    assert cache.get(cache_key(start, end))['totals']['recetas'] == 0


def test_json_formatter_renders_dict_messages():
    record = logging.LogRecord('pharmacy', logging.INFO, __file__, 1, {'event': 'x', 'n': 1}, None, None)
    data = json.loads(JsonFormatter().format(record))
    assert data['event'] == 'x'
    assert data['level'] == 'INFO'
    assert data['logger'] == 'pharmacy'


def test_json_formatter_adds_request_id_and_stack():
    try:
        raise ValueError('bad')
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.LogRecord('pharmacy', logging.ERROR, __file__, 1, 'failed', None, exc_info)
    record.requestId = 'req-9'
    data = json.loads(JsonFormatter().format(record))
    assert data['message'] == 'failed'
    assert data['requestId'] == 'req-9'
    assert 'ValueError: bad' in data['stack']
    assert data['ts'].endswith('+00:00')


def test_metrics_endpoint(api):
    r = api.get('/metrics')
    assert r.status_code == 200
    assert r['Content-Type'].startswith('text/plain')


def test_pool_exhaustion_returns_503(api, monkeypatch):
    def exhausted(query, limit=20):
        raise OperationalError('FATAL: (EMAXCONNSESSION) MaxClientsInSessionMode: max clients reached')

    monkeypatch.setattr('pharmacy.views.patients.search_patients', exhausted)
    r = api.get('/api/patients', {'query': 'juan'}, HTTP_X_REQUEST_ID='req-503')
    assert r.status_code == 503
    assert r.data['error'] == POOL_EXHAUSTED_MESSAGE
    assert 'MaxClientsInSessionMode' in r.data['details']
    assert r.data['requestId'] == 'req-503'


def test_unhandled_error_returns_500(api, monkeypatch):
    def broken(query, limit=20):
        raise RuntimeError('índice dañado')

    monkeypatch.setattr('pharmacy.views.patients.search_patients', broken)
    r = api.get('/api/patients', HTTP_X_REQUEST_ID='req-500')
    assert r.status_code == 500
    assert r.data == {'error': 'índice dañado', 'requestId': 'req-500'}


def test_other_database_errors_are_not_reported_as_pool_exhaustion(api, monkeypatch):
    def broken(query, limit=20):
        raise OperationalError('no such table: pharmacy_patient')

    monkeypatch.setattr('pharmacy.views.patients.search_patients', broken)
    r = api.get('/api/patients')
    assert r.status_code == 500
    assert 'details' not in r.data


def test_access_log_line(api):
    handler = ListHandler()
    request_logger = logging.getLogger('pharmacy.request')
    request_logger.addHandler(handler)
    try:
        api.get('/api/patients', {'query': 'x'}, HTTP_X_REQUEST_ID='req-2')
        api.get('/healthz')
    finally:
        request_logger.removeHandler(handler)
    (record,) = handler.records
    assert record.levelno == logging.INFO
    assert record.msg['requestId'] == 'req-2'
    assert record.msg['method'] == 'GET'
    assert record.msg['path'] == '/api/patients?query=x'
    assert record.msg['status'] == 200
