"""
WSGI config for the StockKeep backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'stockkeep.config.settings')

application = get_wsgi_application()
