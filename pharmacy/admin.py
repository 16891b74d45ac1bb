"""
Django admin registrations for the pharmacy models.

Pharmacy staff maintain the catalogs from the UI; the admin is there
for superusers to inspect the agenda and fix records by hand.
"""

from django.contrib import admin

from .models import Medication, Patient, Pharmacist, PrepRequest, PrepRequestItem, Prescriber


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('identificacion', 'nombre', 'updated_at')
    search_fields = ('identificacion', 'nombre')


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ('codigo_institucional', 'nombre', 'concentracion', 'via_administracion', 'presentacion')
    search_fields = ('codigo_institucional', 'nombre')


@admin.register(Prescriber, Pharmacist)
class StaffAdmin(admin.ModelAdmin):
    list_display = ('codigo', 'nombres', 'apellidos')
    search_fields = ('codigo', 'nombres', 'apellidos')


class PrepRequestItemInline(admin.TabularInline):
    model = PrepRequestItem
    extra = 0
    autocomplete_fields = ('medication',)
    fields = ('medication', 'dosis_texto', 'unidades_requeridas', 'estado', 'frecuencia', 'adquisicion', 'aplicado_at')


@admin.register(PrepRequest)
class PrepRequestAdmin(admin.ModelAdmin):
    list_display = ('fecha_aplicacion', 'patient', 'numero_receta', 'fecha_recepcion', 'finalizado_at')
    list_filter = ('fecha_aplicacion', 'finalizado_at')
    search_fields = ('patient__identificacion', 'patient__nombre', 'numero_receta')
    raw_id_fields = ('patient', 'prescriber', 'pharmacist')
    inlines = [PrepRequestItemInline]


@admin.register(PrepRequestItem)
class PrepRequestItemAdmin(admin.ModelAdmin):
    list_display = ('prep_request', 'medication', 'dosis_texto', 'unidades_requeridas', 'estado', 'adquisicion')
    list_filter = ('estado', 'adquisicion')
    search_fields = ('dosis_texto', 'medication__nombre', 'prep_request__patient__identificacion')
    raw_id_fields = ('prep_request', 'medication')
