from django.conf import settings
from rest_framework import serializers

from .agenda import ACQUISITION_VALUES
from .fields import CleanCharField, IsoDateField, UnitsField


class RegisterQuerySerializer(serializers.Serializer):
    historico = serializers.BooleanField(required=False, default=False)
    q = serializers.CharField(required=False, allow_blank=True, max_length=120, default='')


class ApplicationToggleSerializer(serializers.Serializer):
    patientId = serializers.UUIDField()
    medicationId = serializers.UUIDField()
    dosisTexto = serializers.CharField(max_length=255)
    fechaAplicacion = IsoDateField()
    aplicado = serializers.BooleanField(required=False)


class RecentRecordsQuerySerializer(serializers.Serializer):
    month = serializers.RegexField(r'^\d{4}-(0[1-9]|1[0-2])$', required=False)


class MedicationInputSerializer(serializers.Serializer):
    id = serializers.UUIDField(required=False, allow_null=True)
    codigoInstitucional = CleanCharField(max_length=32, required=False, allow_null=True)
    nombre = CleanCharField(max_length=255)


class RecordReconcileSerializer(serializers.Serializer):
    patientId = serializers.UUIDField()
    identificacion = CleanCharField(max_length=64)
    nombre = CleanCharField(max_length=255, required=False, allow_null=True)

    medication = MedicationInputSerializer()

    dosisTexto = CleanCharField(max_length=255)
    unidadesRequeridas = UnitsField()
    frecuencia = CleanCharField(max_length=50, required=False, allow_null=True, allow_blank=True)
    adquisicion = serializers.ChoiceField(choices=ACQUISITION_VALUES, required=False, allow_null=True)
    observaciones = CleanCharField(max_length=300, required=False, allow_null=True, allow_blank=True)

    fechaRecepcion = IsoDateField(required=False, allow_null=True)
    numeroReceta = serializers.RegexField(r'^\d{6}$', required=False, allow_null=True)
    prescriberId = serializers.UUIDField(required=False, allow_null=True)
    pharmacistId = serializers.UUIDField(required=False, allow_null=True)

    fechasAplicacion = serializers.ListField(
        child=IsoDateField(), min_length=1, max_length=settings.MAX_APPLY_DATES
    )
    itemIds = serializers.ListField(child=serializers.UUIDField(), min_length=1)


class ClientErrorSerializer(serializers.Serializer):
    source = serializers.CharField(max_length=120)
    message = serializers.CharField(max_length=2000)
    details = serializers.CharField(max_length=4000, required=False, allow_blank=True, allow_null=True)
    stack = serializers.CharField(max_length=8000, required=False, allow_blank=True, allow_null=True)
