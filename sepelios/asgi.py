"""
ASGI entrypoint: expose `app` pour les process managers / déploiements
(ex: `uvicorn sepelios.asgi:app` ou gunicorn avec uvicorn workers).
La configuration FastAPI est centralisée dans sepelios.app.
"""

from sepelios.app import app
