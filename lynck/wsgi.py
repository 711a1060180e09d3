"""
WSGI config for Lynck Space calendar backend.
"""
import logging
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lynck.settings')

logger = logging.getLogger(__name__)

# psycopg2 must be made gevent-aware before Django opens connections
if os.environ.get('POSTGRES_DB'):
    from psycogreen.gevent import patch_psycopg
    patch_psycopg()
    logger.info("Patched psycopg2 for gevent compatibility")

application = get_wsgi_application()
