"""WSGI entrypoint: ``gunicorn -c gunicorn.conf.py wsgi:app`` from ``backend/``."""

from authgate import create_app

app = create_app()
