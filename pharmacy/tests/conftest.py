import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from pharmacy.models import Medication, Pharmacist, Prescriber


@pytest.fixture(autouse=True)
def _clear_cache():
    # Throttle counters and the statistics report both live in the cache.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api():
    return APIClient()


@pytest.fixture
def catalog(db):
    return {
        'prescriber': Prescriber.objects.create(codigo='MED001', nombres='ANA', apellidos='ROJAS'),
        'pharmacist': Pharmacist.objects.create(codigo='FAR001', nombres='LUCIA', apellidos='VARGAS'),
        'medication': Medication.objects.create(codigo_institucional='1-10-44-0001', nombre='PARACETAMOL'),
    }


@pytest.fixture
def item_body(catalog):
    """Build a valid ``POST /api/items`` body; keyword arguments override fields."""
    def build(**overrides):
        body = {
            'fechasAplicacion': ['2025-03-10', '2025-03-11'],
            'fechaRecepcion': '2025-03-09',
            'numeroReceta': '123456',
            'prescriberId': str(catalog['prescriber'].id),
            'pharmacistId': str(catalog['pharmacist'].id),
            'patient': {'identificacion': '1-1111-1111', 'nombre': 'juan perez'},
            'medication': {'id': str(catalog['medication'].id), 'nombre': 'PARACETAMOL'},
            'dosisTexto': '500 mg',
            'unidadesRequeridas': 2,
            'frecuencia': 'c/8h',
            'adquisicion': 'almacenable',
        }
        body.update(overrides)
        return body
    return build
