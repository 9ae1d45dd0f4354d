"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi reset-company 1
    gunicorn wsgi:app
"""

from poolops import create_app

app = create_app()
