"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi create-admin --username admin --email admin@example.com
"""

from sitetrack import create_app

app = create_app()
