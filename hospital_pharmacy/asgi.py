"""
ASGI config for the hospital pharmacy project.

Only HTTP is served; the agenda UI polls the JSON API.
"""
import os

from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospital_pharmacy.settings")

application = get_asgi_application()
