from django.conf import settings
from rest_framework import serializers

from ..models import PrepRequestItem
from .fields import CleanCharField, CommaListField, IsoDateField, UnitsField

STATUS_VALUES = [value for value, _ in PrepRequestItem.STATUS_CHOICES]
ACQUISITION_VALUES = [value for value, _ in PrepRequestItem.ACQUISITION_CHOICES]


class PrepRequestListQuerySerializer(serializers.Serializer):
    date = IsoDateField(required=False)
    historico = serializers.BooleanField(required=False, default=False)


class ItemListQuerySerializer(serializers.Serializer):
    date = IsoDateField(required=False)
    patient = serializers.CharField(required=False, allow_blank=True, max_length=120, default='')
    med = serializers.CharField(required=False, allow_blank=True, max_length=120, default='')
    status = CommaListField(choices=STATUS_VALUES, default=list)


class PatientRefSerializer(serializers.Serializer):
    identificacion = CleanCharField(max_length=64)
    nombre = CleanCharField(max_length=255)


class MedicationRefSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    codigoInstitucional = CleanCharField(max_length=32, required=False, allow_null=True)
    nombre = CleanCharField(max_length=255)


class ItemCreateSerializer(serializers.Serializer):
    fechaAplicacion = IsoDateField(required=False)
    fechasAplicacion = serializers.ListField(
        child=IsoDateField(), required=False, max_length=settings.MAX_APPLY_DATES
    )
    fechaRecepcion = IsoDateField()
    numeroReceta = serializers.RegexField(r'^\d{6}$', error_messages={'invalid': 'Debe ser de 6 dígitos'})
    prescriberId = serializers.UUIDField()
    pharmacistId = serializers.UUIDField()
    patient = PatientRefSerializer()
    medication = MedicationRefSerializer()
    dosisTexto = CleanCharField(max_length=255)
    unidadesRequeridas = UnitsField()
    frecuencia = CleanCharField(max_length=50)
    adquisicion = serializers.ChoiceField(choices=ACQUISITION_VALUES)
    observaciones = CleanCharField(max_length=300, required=False, allow_null=True, allow_blank=True)
    createdBy = CleanCharField(max_length=120, required=False, allow_null=True)
    # Accepted from the quick-entry form but not persisted.
    recursoAmparo = serializers.BooleanField(required=False)

    def validate(self, attrs):
        raw_dates = attrs.get('fechasAplicacion') or (
            [attrs['fechaAplicacion']] if attrs.get('fechaAplicacion') else []
        )
        dates = list(dict.fromkeys(raw_dates))
        if not dates:
            raise serializers.ValidationError({'fechasAplicacion': 'Debe indicar al menos una fecha de aplicación'})
        attrs['fechas'] = dates
        return attrs


class ItemUpdateSerializer(serializers.Serializer):
    estado = serializers.ChoiceField(choices=STATUS_VALUES, required=False)
    dosisTexto = CleanCharField(max_length=255, required=False)
    unidadesRequeridas = UnitsField(required=False)
    observaciones = CleanCharField(max_length=300, required=False, allow_null=True, allow_blank=True)
    updatedBy = CleanCharField(max_length=120, required=False, allow_null=True)
    entregadoAt = serializers.DateTimeField(required=False, allow_null=True)
    canceladoMotivo = CleanCharField(max_length=200, required=False, allow_null=True, allow_blank=True)


class ActorSerializer(serializers.Serializer):
    createdBy = CleanCharField(max_length=120, required=False, allow_null=True)


class FinalizeSerializer(serializers.Serializer):
    finalizadoBy = CleanCharField(max_length=120, required=False, allow_null=True)
