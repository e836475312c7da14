"""
asgi.py -- ASGI entry point for AuthGate.

The only module that builds an app from the process environment. Everything
under api/ takes Settings as an argument.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
