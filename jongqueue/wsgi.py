"""
WSGI config for the JongQueue booking engine.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'jongqueue.settings.production')

application = get_wsgi_application()
