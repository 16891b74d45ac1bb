import re
from typing import Optional, Type, Union

from django.db import transaction
from django.db.models import Q

from pharmacy.exceptions import BadRequest
from pharmacy.models import Medication, Patient, Pharmacist, Prescriber

StaffModel = Union[Type[Prescriber], Type[Pharmacist]]

# Institutional medication codes look like ``1-10-44-1234``.
MED_CODE_RE = re.compile(r'^\d-\d{2}-\d{2}-\d{4}$')


def upper_or_none(value: Optional[str]) -> Optional[str]:
    return value.upper() if value else None


# -----------------------------------------------------------------------------
# Patients
# -----------------------------------------------------------------------------
def format_patient(p: Patient) -> dict:
    return {
        'id': str(p.id),
        'identificacion': p.identificacion,
        'nombre': p.nombre,
    }


def search_patients(query: str = '', limit: int = 20) -> list[Patient]:
    qs = Patient.objects.all()
    if query:
        qs = qs.filter(Q(identificacion__icontains=query) | Q(nombre__icontains=query))
    return list(qs.order_by('-updated_at')[:limit])


def upsert_patient(identificacion: str, nombre: Optional[str] = None) -> Patient:
    """Create or update a patient keyed on national ID.

    A missing ``nombre`` never erases the stored one.
    """
    defaults = {'nombre': nombre.upper()} if nombre else {}
    patient, _ = Patient.objects.update_or_create(identificacion=identificacion.upper(), defaults=defaults)
    return patient


def update_patient(patient: Patient, data: dict) -> Patient:
    if data.get('identificacion'):
        identificacion = data['identificacion'].upper()
        if Patient.objects.filter(identificacion=identificacion).exclude(id=patient.id).exists():
            raise BadRequest('Ya existe otro paciente con esa identificación')
        patient.identificacion = identificacion
    if 'nombre' in data:
        patient.nombre = upper_or_none(data['nombre'])
    patient.save()
    return patient


# -----------------------------------------------------------------------------
# Medications
# -----------------------------------------------------------------------------
def format_medication(m: Medication) -> dict:
    return {
        'id': str(m.id),
        'codigoInstitucional': m.codigo_institucional,
        'nombre': m.nombre,
        'concentracion': m.concentracion,
        'viaAdministracion': m.via_administracion,
        'label': m.label,
    }


def search_medications(query: str = '', limit: int = 20) -> list[Medication]:
    qs = Medication.objects.all()
    if query:
        qs = qs.filter(Q(nombre__icontains=query) | Q(codigo_institucional__icontains=query))
    return list(qs.order_by('-updated_at')[:limit])


def upsert_medication(*, nombre: str, codigo: Optional[str] = None, concentracion: Optional[str] = None,
                      via_administracion: Optional[str] = None, presentacion: Optional[str] = None) -> Medication:
    """Upsert on the institutional code; code-less entries are always created."""
    extras = {
        'concentracion': upper_or_none(concentracion),
        'via_administracion': upper_or_none(via_administracion),
        'presentacion': upper_or_none(presentacion),
    }
    if not codigo:
        return Medication.objects.create(nombre=nombre.upper(), **extras)
    defaults = {'nombre': nombre.upper()}
    defaults.update({k: v for k, v in extras.items() if v is not None})
    med, _ = Medication.objects.update_or_create(
        codigo_institucional=codigo.upper(),
        defaults=defaults,
        create_defaults={'nombre': nombre.upper(), **extras},
    )
    return med


def delete_medication(pk) -> None:
    Medication.objects.get(pk=pk).delete()


def parse_medication_input(*, id=None, codigo: Optional[str] = None, nombre: str) -> dict:
    """Split free-text medication input into id, code and name.

    The UI may send ``"1-10-44-1234 - PARACETAMOL"`` as the name, or repeat
    the code as a prefix of the name; both are reduced to code + bare name.
    """
    raw_code = (codigo or '').strip() or None
    raw_name = nombre.strip()

    if not id and not raw_code:
        parts = [p.strip() for p in raw_name.split(' - ') if p.strip()]
        if len(parts) >= 2 and MED_CODE_RE.match(parts[0]):
            return {'id': None, 'codigo': parts[0].upper(), 'nombre': ' - '.join(parts[1:]).upper()}

    if raw_code:
        prefix = f"{raw_code} - ".upper()
        if raw_name.upper().startswith(prefix):
            raw_name = raw_name[len(prefix):].strip()

    return {
        'id': id or None,
        'codigo': raw_code.upper() if raw_code else None,
        'nombre': raw_name.upper(),
    }


def resolve_medication(parsed: dict) -> Medication:
    """Find or create the medication described by :func:`parse_medication_input`."""
    if parsed['id']:
        med = Medication.objects.filter(pk=parsed['id']).first()
        if med is None:
            raise BadRequest('Medicamento no encontrado')
        return med
    if parsed['codigo']:
        med, _ = Medication.objects.update_or_create(
            codigo_institucional=parsed['codigo'], defaults={'nombre': parsed['nombre']}
        )
        return med
    with transaction.atomic():
        existing = Medication.objects.filter(nombre=parsed['nombre'], codigo_institucional__isnull=True).first()
        if existing:
            return existing
        return Medication.objects.create(nombre=parsed['nombre'], codigo_institucional=None)


# -----------------------------------------------------------------------------
# Staff (prescribers / pharmacists)
# -----------------------------------------------------------------------------
def format_staff(s) -> dict:
    return {
        'id': str(s.id),
        'codigo': s.codigo,
        'nombres': s.nombres,
        'apellidos': s.apellidos,
    }


def search_staff(model: StaffModel, query: str = '', limit: int = 50) -> list:
    qs = model.objects.all()
    if query:
        qs = qs.filter(
            Q(codigo__icontains=query) | Q(nombres__icontains=query) | Q(apellidos__icontains=query)
        )
    return list(qs.order_by('-updated_at')[:limit])


def upsert_staff(model: StaffModel, *, codigo: str, nombres: str, apellidos: str):
    row, _ = model.objects.update_or_create(
        codigo=codigo.upper(),
        defaults={'nombres': nombres.upper(), 'apellidos': apellidos.upper()},
    )
    return row


def delete_staff(model: StaffModel, pk) -> None:
    # Requests keep their history; the FK is nulled.
    model.objects.get(pk=pk).delete()
