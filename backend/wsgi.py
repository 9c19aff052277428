# backend/wsgi.py
from teebay import create_app

app = create_app()
