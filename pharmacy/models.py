"""
Database models for the hospital pharmacy service.

These models capture the catalogs (patients, medications, prescribers,
pharmacists) and the daily preparation agenda: one :class:`PrepRequest`
per patient and application date, holding the medication lines
(:class:`PrepRequestItem`) the pharmacy has to prepare. Field names
mirror the keys exposed to the front-end so the JSON mapping stays
obvious.
"""
from __future__ import annotations

import uuid

from django.core.validators import MinValueValidator
from django.db import models


class TimestampedModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True


class Patient(TimestampedModel):
    """A patient identified by national ID (``identificacion``)."""
    identificacion = models.CharField(max_length=64, unique=True)
    nombre = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = 'patients'

    def __str__(self) -> str:
        return f"{self.identificacion} ({self.nombre or '-'})"


class Medication(TimestampedModel):
    """A medication in the institutional catalog.

    ``codigo_institucional`` is optional; entries without a code are
    identified by name only, which is how duplicate entries creep in
    (see :func:`pharmacy.services.reports.normalize_medication_key`).
    """
    codigo_institucional = models.CharField(max_length=32, unique=True, null=True, blank=True)
    nombre = models.CharField(max_length=255)
    concentracion = models.CharField(max_length=120, null=True, blank=True)
    via_administracion = models.CharField(max_length=120, null=True, blank=True)
    presentacion = models.CharField(max_length=120, null=True, blank=True)

    class Meta:
        db_table = 'medications'

    @property
    def label(self) -> str:
        if self.codigo_institucional:
            return f"{self.codigo_institucional} - {self.nombre}"
        return self.nombre

    def __str__(self) -> str:
        return self.label


class StaffMember(TimestampedModel):
    codigo = models.CharField(max_length=32, unique=True)
    nombres = models.CharField(max_length=120)
    apellidos = models.CharField(max_length=120)

    class Meta:
        abstract = True

    @property
    def label(self) -> str:
        return f"{self.codigo} - {self.nombres} {self.apellidos}".strip()

    def __str__(self) -> str:
        return self.label


class Prescriber(StaffMember):
    class Meta:
        db_table = 'prescribers'


class Pharmacist(StaffMember):
    class Meta:
        db_table = 'pharmacists'


class PrepRequest(TimestampedModel):
    """All medication lines of one patient for one application date.

    A request stays on the agenda until the pharmacy finalises it, after
    which it only shows up in the historical views.
    """
    fecha_aplicacion = models.DateField(db_index=True)
    fecha_recepcion = models.DateField(null=True, blank=True, db_index=True)
    numero_receta = models.CharField(max_length=6, null=True, blank=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prep_requests')
    prescriber = models.ForeignKey(
        Prescriber, null=True, blank=True, on_delete=models.SET_NULL, related_name='prep_requests'
    )
    pharmacist = models.ForeignKey(
        Pharmacist, null=True, blank=True, on_delete=models.SET_NULL, related_name='prep_requests'
    )
    finalizado_at = models.DateTimeField(null=True, blank=True, db_index=True)
    finalizado_by = models.CharField(max_length=120, null=True, blank=True)
    created_by = models.CharField(max_length=120, null=True, blank=True)
    updated_by = models.CharField(max_length=120, null=True, blank=True)

    class Meta:
        db_table = 'prep_requests'
        constraints = [
            models.UniqueConstraint(fields=['fecha_aplicacion', 'patient'], name='uniq_prep_request_day_patient'),
        ]

    def __str__(self) -> str:
        return f"{self.patient_id} @ {self.fecha_aplicacion}"


class PrepRequestItem(TimestampedModel):
    """A single medication line to prepare."""
    STATUS_CHOICES = [
        ('pendiente', 'Pendiente'),
        ('en_preparacion', 'En preparación'),
        ('listo', 'Listo'),
        ('entregado', 'Entregado'),
        ('cancelado', 'Cancelado'),
    ]
    ACQUISITION_CHOICES = [
        ('almacenable', 'Almacenable'),
        ('compra_local', 'Compra local'),
    ]

    prep_request = models.ForeignKey(PrepRequest, on_delete=models.CASCADE, related_name='items')
    medication = models.ForeignKey(Medication, on_delete=models.PROTECT, related_name='items')
    dosis_texto = models.CharField(max_length=255)
    unidades_requeridas = models.DecimalField(
        max_digits=14, decimal_places=4, validators=[MinValueValidator(0)]
    )
    estado = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pendiente', db_index=True)
    frecuencia = models.CharField(max_length=50, null=True, blank=True)
    adquisicion = models.CharField(max_length=20, choices=ACQUISITION_CHOICES, default='almacenable')
    observaciones = models.CharField(max_length=300, null=True, blank=True)
    entregado_at = models.DateTimeField(null=True, blank=True)
    cancelado_motivo = models.CharField(max_length=200, null=True, blank=True)
    aplicado_at = models.DateTimeField(null=True, blank=True)
    created_by = models.CharField(max_length=120, null=True, blank=True)
    updated_by = models.CharField(max_length=120, null=True, blank=True)

    class Meta:
        db_table = 'prep_request_items'

    def __str__(self) -> str:
        return f"{self.medication_id} x {self.unidades_requeridas} ({self.estado})"
