"""WSGI entrypoint: ``gunicorn access_api.wsgi:app``."""

from access_api.app import create_app

app = create_app()
