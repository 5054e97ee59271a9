"""WSGI config for the Trendwatch backend."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "trendwatch.settings")

application = get_wsgi_application()
