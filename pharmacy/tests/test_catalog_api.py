"""
API tests for the patient, medication and staff catalogs.

To run the tests:

```
pytest -q pharmacy/tests
```
"""
from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from ..models import Medication, Patient, Pharmacist, PrepRequest, PrepRequestItem, Prescriber
from ..services.catalog import parse_medication_input, resolve_medication


class PatientCatalogTests(APITestCase):
    def test_upsert_is_keyed_on_identificacion(self):
        r1 = self.client.post('/api/patients', {'identificacion': '1-1111-1111', 'nombre': 'juan perez'}, format='json')
        self.assertEqual(r1.status_code, status.HTTP_200_OK)
        r2 = self.client.post('/api/patients', {'identificacion': '1-1111-1111'}, format='json')
        self.assertEqual(r2.status_code, status.HTTP_200_OK)
        self.assertEqual(r1.data['id'], r2.data['id'])
        self.assertEqual(Patient.objects.count(), 1)
        # An omitted name does not erase the stored one.
        self.assertEqual(Patient.objects.get().nombre, 'JUAN PEREZ')

    def test_search_matches_id_or_name(self):
        Patient.objects.create(identificacion='1-1111-1111', nombre='JUAN PEREZ')
        Patient.objects.create(identificacion='2-2222-2222', nombre='MARIA SOTO')
        r = self.client.get('/api/patients', {'query': 'soto'})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([p['identificacion'] for p in r.data], ['2-2222-2222'])
        r = self.client.get('/api/patients', {'query': '1111'})
        self.assertEqual([p['nombre'] for p in r.data], ['JUAN PEREZ'])

    def test_detail_and_patch(self):
        p = Patient.objects.create(identificacion='1-1111-1111', nombre='JUAN')
        r = self.client.get(f'/api/patients/{p.id}')
        self.assertEqual(r.data['identificacion'], '1-1111-1111')
        r = self.client.patch(f'/api/patients/{p.id}', {'nombre': None}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        p.refresh_from_db()
        self.assertIsNone(p.nombre)

    def test_missing_patient_is_404(self):
        r = self.client.get('/api/patients/00000000-0000-0000-0000-000000000000')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['error'], 'No encontrado')
        self.assertIn('requestId', r.data)
        self.assertTrue(r['x-request-id'])

    def test_markup_is_stripped(self):
        r = self.client.post(
            '/api/patients', {'identificacion': '<b>3-3333-3333</b>', 'nombre': 'ana & co'}, format='json'
        )
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['identificacion'], '3-3333-3333')
        self.assertEqual(r.data['nombre'], 'ANA & CO')


class MedicationCatalogTests(APITestCase):
    def test_upsert_with_code_keeps_extras(self):
        self.client.post('/api/medications', {
            'codigoInstitucional': '1-10-44-0001', 'nombre': 'paracetamol', 'concentracion': '500 mg',
        }, format='json')
        r = self.client.post('/api/medications', {'codigoInstitucional': '1-10-44-0001', 'nombre': 'paracetamol'},
                             format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(Medication.objects.count(), 1)
        med = Medication.objects.get()
        self.assertEqual(med.concentracion, '500 MG')
        self.assertEqual(str(med.id), r.data['id'])

    def test_without_code_always_creates(self):
        self.client.post('/api/medications', {'nombre': 'suero'}, format='json')
        self.client.post('/api/medications', {'nombre': 'suero'}, format='json')
        self.assertEqual(Medication.objects.filter(nombre='SUERO').count(), 2)

    def test_search_returns_label(self):
        Medication.objects.create(codigo_institucional='1-10-44-0001', nombre='PARACETAMOL')
        Medication.objects.create(nombre='SUERO FISIOLOGICO')
        r = self.client.get('/api/medications', {'query': 'para'})
        self.assertEqual(len(r.data), 1)
        self.assertEqual(r.data[0]['label'], '1-10-44-0001 - PARACETAMOL')
        r = self.client.get('/api/medications', {'query': 'suero'})
        self.assertEqual(r.data[0]['label'], 'SUERO FISIOLOGICO')

    def test_delete(self):
        med = Medication.objects.create(nombre='SUERO')
        r = self.client.delete(f'/api/medications/{med.id}')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(Medication.objects.exists())
        r = self.client.delete(f'/api/medications/{med.id}')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_referenced_is_conflict(self):
        med = Medication.objects.create(nombre='SUERO')
        patient = Patient.objects.create(identificacion='1')
        req = PrepRequest.objects.create(fecha_aplicacion='2025-03-10', patient=patient)
        PrepRequestItem.objects.create(prep_request=req, medication=med, dosis_texto='1', unidades_requeridas=Decimal('1'))
        r = self.client.delete(f'/api/medications/{med.id}')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Medication.objects.filter(id=med.id).exists())

    def test_patients_of_medication_group(self):
        med_a = Medication.objects.create(nombre='SUERO')
        med_b = Medication.objects.create(nombre='SUERO ')
        p1 = Patient.objects.create(identificacion='B-2')
        p2 = Patient.objects.create(identificacion='A-1')
        for patient, med, day in ((p1, med_a, '2025-03-10'), (p1, med_b, '2025-03-11'), (p2, med_a, '2025-03-10')):
            req, _ = PrepRequest.objects.get_or_create(fecha_aplicacion=day, patient=patient)
            PrepRequestItem.objects.create(prep_request=req, medication=med, dosis_texto='1',
                                           unidades_requeridas=Decimal('1'))
        r = self.client.get(f'/api/medications/{med_a.id},{med_b.id}/patients')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['total'], 2)
        self.assertFalse(r.data['hasMore'])
        first, second = r.data['patients']
        self.assertEqual(first['identificacion'], 'A-1')
        self.assertEqual(second['fechasAplicacion'], ['2025-03-10', '2025-03-11'])
        self.assertEqual(second['lineas'], 2)

    def test_patients_of_medication_rejects_bad_ids(self):
        r = self.client.get('/api/medications/not-a-uuid/patients')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)


class StaffCatalogTests(APITestCase):
    def test_upsert_by_codigo(self):
        r1 = self.client.post('/api/prescribers', {'codigo': 'med001', 'nombres': 'ana', 'apellidos': 'rojas'},
                              format='json')
        r2 = self.client.post('/api/prescribers', {'codigo': 'MED001', 'nombres': 'ana maria', 'apellidos': 'rojas'},
                              format='json')
        self.assertEqual(r1.data['id'], r2.data['id'])
        self.assertEqual(Prescriber.objects.get().nombres, 'ANA MARIA')

    def test_all_fields_required(self):
        r = self.client.post('/api/pharmacists', {'codigo': 'FAR001'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error'], 'Datos inválidos')
        self.assertIn('nombres', r.data['details'])

    def test_search_and_delete_keeps_requests(self):
        ph = Pharmacist.objects.create(codigo='FAR001', nombres='LUCIA', apellidos='VARGAS')
        Pharmacist.objects.create(codigo='FAR002', nombres='DIEGO', apellidos='SOLIS')
        r = self.client.get('/api/pharmacists', {'query': 'varg'})
        self.assertEqual([s['codigo'] for s in r.data], ['FAR001'])

        patient = Patient.objects.create(identificacion='1')
        req = PrepRequest.objects.create(fecha_aplicacion='2025-03-10', patient=patient, pharmacist=ph)
        r = self.client.delete(f'/api/pharmacists/{ph.id}')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        req.refresh_from_db()
        self.assertIsNone(req.pharmacist_id)


class MedicationInputParsingTests(APITestCase):
    def test_code_prefix_in_name_is_split(self):
        parsed = parse_medication_input(nombre='1-10-44-1234 - paracetamol')
        self.assertEqual(parsed, {'id': None, 'codigo': '1-10-44-1234', 'nombre': 'PARACETAMOL'})

    def test_non_code_prefix_is_kept(self):
        parsed = parse_medication_input(nombre='ACETAMINOFEN - JARABE')
        self.assertEqual(parsed['codigo'], None)
        self.assertEqual(parsed['nombre'], 'ACETAMINOFEN - JARABE')

    def test_repeated_code_is_removed_from_name(self):
        parsed = parse_medication_input(codigo='1-10-44-1234', nombre='1-10-44-1234 - Paracetamol')
        self.assertEqual(parsed['nombre'], 'PARACETAMOL')

    def test_resolve_reuses_codeless_entry(self):
        existing = Medication.objects.create(nombre='SUERO')
        med = resolve_medication(parse_medication_input(nombre='suero'))
        self.assertEqual(med.id, existing.id)
        med = resolve_medication(parse_medication_input(nombre='1-10-44-1234 - suero'))
        self.assertEqual(med.codigo_institucional, '1-10-44-1234')
        self.assertEqual(Medication.objects.count(), 2)
