from django.core.management.base import BaseCommand

from pharmacy.models import Pharmacist, Prescriber
from pharmacy.services.catalog import upsert_medication, upsert_staff

PRESCRIBERS = [
    ("MED001", "ANA", "ROJAS"),
    ("MED002", "CARLOS", "MORA"),
]
PHARMACISTS = [
    ("FAR001", "LUCIA", "VARGAS"),
    ("FAR002", "DIEGO", "SOLIS"),
]
MEDICATIONS = [
    ("1-10-44-0001", "PARACETAMOL", "500 MG", "ORAL", "TABLETA"),
    ("1-10-44-0002", "CEFTRIAXONA", "1 G", "INTRAVENOSA", "FRASCO AMPOLLA"),
    ("1-10-44-0003", "ENOXAPARINA", "40 MG", "SUBCUTANEA", "JERINGA PRELLENADA"),
]


class Command(BaseCommand):
    help = "Ensure demo prescribers, pharmacists and medications exist (idempotent)."

    def handle(self, *args, **opts):
        for model, rows in ((Prescriber, PRESCRIBERS), (Pharmacist, PHARMACISTS)):
            for codigo, nombres, apellidos in rows:
                upsert_staff(model, codigo=codigo, nombres=nombres, apellidos=apellidos)
                self.stdout.write(self.style.SUCCESS(f"ok: {model.__name__} {codigo}"))
        for codigo, nombre, concentracion, via, presentacion in MEDICATIONS:
            upsert_medication(
                nombre=nombre,
                codigo=codigo,
                concentracion=concentracion,
                via_administracion=via,
                presentacion=presentacion,
            )
            self.stdout.write(self.style.SUCCESS(f"ok: medication {codigo}"))
        self.stdout.write(self.style.SUCCESS("Catalog seeded."))
