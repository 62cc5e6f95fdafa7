import os

# Avant tout import applicatif: pas de Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Generator, Dict, Any
from fastapi.testclient import TestClient

from sepelios import config as app_config
from sepelios.app import app as fastapi_app
from sepelios.payments import mercadopago_client
from sepelios.utils.security import get_optional_user, require_user
from tests.fakes import CLIENT_ID, PROVIDER_ID, FakeMercadoPago, FakeSupabase

SITE_URL = "https://sepelios.test"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture
def client_user() -> Dict[str, Any]:
    return {"id": CLIENT_ID, "email": "cliente@example.com", "role": "client", "metadata": {}, "token": "tok-client"}

@pytest.fixture
def provider_user() -> Dict[str, Any]:
    return {"id": PROVIDER_ID, "email": "empleado@cocheria.example", "role": "provider", "metadata": {"role": "provider"}, "token": "tok-provider"}

# Base Supabase en mémoire pour tous les tests (aucun accès réseau)
@pytest.fixture(autouse=True)
def db(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()
    monkeypatch.setattr("sepelios.infra.supabase_client.get_service_supabase", lambda: fake)
    return fake

@pytest.fixture(autouse=True)
def _site_url(monkeypatch):
    monkeypatch.setattr(app_config, "SITE_URL", SITE_URL)
    monkeypatch.setattr(app_config, "MP_MARKETPLACE_CLIENT_ID", "")
    monkeypatch.setattr(app_config, "MP_MARKETPLACE_CLIENT_SECRET", "")

# Processeur Mercado Pago simulé via httpx.MockTransport
@pytest.fixture(autouse=True)
def mp(monkeypatch) -> FakeMercadoPago:
    fake = FakeMercadoPago()
    monkeypatch.setattr(mercadopago_client, "_transport", fake.transport())
    return fake

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def login_as(app):
    """Simule la session d'un utilisateur pour require_user et get_optional_user."""
    def _login(user: Dict[str, Any] | None):
        app.dependency_overrides[get_optional_user] = lambda: user
        if user is None:
            # Pas de session: require_user réel (pas de token -> 401)
            app.dependency_overrides.pop(require_user, None)
        else:
            app.dependency_overrides[require_user] = lambda: user
    yield _login
    app.dependency_overrides.pop(require_user, None)
    app.dependency_overrides.pop(get_optional_user, None)
