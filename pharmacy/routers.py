"""
URL mappings for the pharmacy API.

Paths mirror the ones the browser UI calls and have no trailing
slash.
"""
from django.urls import include, path

from .views import health
from .views.client_log import client_error_log
from .views.items import item_detail, item_duplicate, items
from .views.medications import medication_detail, medication_patients_view, medications
from .views.patients import patient_detail, patients
from .views.prep_requests import prep_request_finalize, prep_request_item, prep_requests
from .views.recent_records import recent, recent_record_detail
from .views.records import register, register_application, register_patient
from .views.reports import medications_range, medications_summary, statistics
from .views.staff import pharmacist_detail, pharmacists, prescriber_detail, prescribers

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Catalogs
    path('api/patients', patients),
    path('api/patients/<uuid:pk>', patient_detail),
    path('api/medications', medications),
    path('api/medications/<uuid:pk>', medication_detail),
    path('api/medications/<str:ids>/patients', medication_patients_view),
    path('api/prescribers', prescribers),
    path('api/prescribers/<uuid:pk>', prescriber_detail),
    path('api/pharmacists', pharmacists),
    path('api/pharmacists/<uuid:pk>', pharmacist_detail),
    # Agenda
    path('api/prep-requests', prep_requests),
    path('api/prep-requests/<uuid:pk>', prep_request_item),
    path('api/prep-requests/<uuid:pk>/finalize', prep_request_finalize),
    path('api/items', items),
    path('api/items/<uuid:pk>', item_detail),
    path('api/items/<uuid:pk>/duplicate', item_duplicate),
    # Records
    path('api/registro-pacientes', register),
    path('api/registro-pacientes/aplicacion', register_application),
    path('api/registro-pacientes/<uuid:pk>', register_patient),
    path('api/ultimos-registros', recent),
    path('api/ultimos-registros/<str:pk>', recent_record_detail),
    # Reports
    path('api/estadistica', statistics),
    path('api/medicamentos-rango', medications_range),
    path('api/medicamentos-resumen', medications_summary),
    # Client-side error reports
    path('api/error-log', client_error_log),
]
