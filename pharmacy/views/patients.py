"""
Patient catalog views.

Patients are keyed on their national ID; the agenda creates them on the
fly, so these endpoints are mostly used by the search box and by the
records screens to fix a typo in a name or ID.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..models import Patient
from ..serializers.catalog import PatientUpdateSerializer, PatientUpsertSerializer, SearchQuerySerializer
from ..services.catalog import format_patient, search_patients, update_patient, upsert_patient


@api_view(['GET', 'POST'])
def patients(request):
    if request.method == 'GET':
        q = SearchQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        return Response([format_patient(p) for p in search_patients(q.validated_data['query'].strip())])
    # POST
    s = PatientUpsertSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = upsert_patient(s.validated_data['identificacion'], s.validated_data.get('nombre'))
    return Response(format_patient(patient))


@api_view(['GET', 'PATCH'])
def patient_detail(request, pk):
    patient = get_object_or_404(Patient, pk=pk)
    if request.method == 'GET':
        return Response(format_patient(patient))
    s = PatientUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(format_patient(update_patient(patient, s.validated_data)))
