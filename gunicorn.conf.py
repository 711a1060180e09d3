"""
Gunicorn configuration for Lynck Space calendar backend.
"""
import multiprocessing
import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")


def post_fork(server, worker):
    """
    Called after a worker has been forked.
    Patches psycopg2 so calendar syncs waiting on Google do not block
    other greenlets' database queries.
    """
    from psycogreen.gevent import patch_psycopg
    patch_psycopg()
    server.log.info("Patched psycopg2 for gevent compatibility")


workers = int(os.environ.get("GUNICORN_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "gevent"

# A full sync issues one HTTP call per calendar and per exported event
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "180"))

# Logs go to stdout/stderr next to the Django LOGGING output
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
