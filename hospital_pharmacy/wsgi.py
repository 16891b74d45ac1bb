"""
WSGI config for the hospital pharmacy project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

# Set the default settings module for the 'django' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hospital_pharmacy.settings')

# Obtain the WSGI application for use by the server
application = get_wsgi_application()
