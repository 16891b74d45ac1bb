from rest_framework import serializers

from .fields import CleanCharField


class SearchQuerySerializer(serializers.Serializer):
    query = serializers.CharField(required=False, allow_blank=True, max_length=120, default='')


class PatientUpsertSerializer(serializers.Serializer):
    identificacion = CleanCharField(max_length=64)
    nombre = CleanCharField(max_length=255, required=False, allow_null=True)


class PatientUpdateSerializer(serializers.Serializer):
    identificacion = CleanCharField(max_length=64, required=False)
    nombre = CleanCharField(max_length=255, required=False, allow_null=True)


class MedicationUpsertSerializer(serializers.Serializer):
    codigoInstitucional = CleanCharField(max_length=32, required=False, allow_null=True)
    nombre = CleanCharField(max_length=255)
    concentracion = CleanCharField(max_length=120, required=False, allow_null=True)
    viaAdministracion = CleanCharField(max_length=120, required=False, allow_null=True)
    presentacion = CleanCharField(max_length=120, required=False, allow_null=True)


class StaffUpsertSerializer(serializers.Serializer):
    codigo = CleanCharField(max_length=32)
    nombres = CleanCharField(max_length=120)
    apellidos = CleanCharField(max_length=120)
