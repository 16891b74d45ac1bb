"""Pharmacy preparation application.

This package contains the models, serializers, services, views and
route registrations behind the pharmacy agenda front-end.
"""
