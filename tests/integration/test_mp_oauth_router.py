from urllib.parse import parse_qs, urlparse

from tests.fakes import PROVIDER_ID, seed_credentials

BASE = "/api/v1/mercadopago"


def _query(location: str):
    return {k: v[0] for k, v in parse_qs(urlparse(location).query).items()}


def test_start_redirects_to_authorization(client, db, login_as, provider_user):
    login_as(provider_user)
    seed_credentials(db, mp_access_token=None)

    r = client.get(f"{BASE}/oauth/start", follow_redirects=False)

    assert r.status_code == 303
    assert r.headers["location"].startswith("https://auth.mercadopago.com.ar/authorization?")
    assert _query(r.headers["location"])["state"] == db.get("provider_mp_credentials", provider_id=PROVIDER_ID)["mp_oauth_state"]


def test_start_without_session_redirects_to_auth(client, login_as):
    login_as(None)
    r = client.get(f"{BASE}/oauth/start", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/auth?error=NotAuthenticated"


def test_start_without_client_credentials(client, login_as, provider_user):
    login_as(provider_user)
    r = client.get(f"{BASE}/oauth/start", follow_redirects=False)
    assert r.headers["location"] == "/provider/dashboard?error=MpClientIdSecretMissing"


def test_callback_success_redirects_to_dashboard(client, db, login_as, provider_user):
    login_as(provider_user)
    seed_credentials(db, mp_access_token=None, mp_oauth_state="custom.abc")

    r = client.get(f"{BASE}/oauth/callback", params={"code": "TG-code", "state": "custom.abc"}, follow_redirects=False)

    assert r.status_code == 303
    assert r.headers["location"] == "/provider/dashboard?success=MercadoPagoConnected"
    assert db.get("provider_mp_credentials", provider_id=PROVIDER_ID)["mp_access_token"] == "APP_USR-new"


def test_callback_error_codes_in_redirect(client, db, mp, login_as, provider_user):
    login_as(provider_user)
    r = client.get(f"{BASE}/oauth/callback", params={"state": "custom.abc"}, follow_redirects=False)
    assert _query(r.headers["location"]) == {"error": "MissingCodeOrState"}

    seed_credentials(db, mp_oauth_state="custom.abc")
    r = client.get(f"{BASE}/oauth/callback", params={"code": "c", "state": "custom.other"}, follow_redirects=False)
    assert _query(r.headers["location"]) == {"error": "InvalidState"}

    mp.token_response = (401, {"message": "invalid_client"})
    r = client.get(f"{BASE}/oauth/callback", params={"code": "c", "state": "custom.abc"}, follow_redirects=False)
    assert _query(r.headers["location"]) == {"error": "MpTokenExchangeFailed"}


def test_put_credentials_and_status(client, db, login_as, provider_user):
    login_as(provider_user)
    seed_credentials(db)

    r = client.put(f"{BASE}/credentials", json={"client_id": " app-999 ", "client_secret": "secret-999"})
    assert r.status_code == 200
    assert r.json() == {"updated": True, "invalidated": True}
    assert db.get("provider_mp_credentials", provider_id=PROVIDER_ID)["mp_client_id"] == "app-999"

    status = client.get(f"{BASE}/credentials/status").json()
    assert status["connected"] is False
    assert "mp_client_secret" not in status


def test_put_credentials_requires_session(client, login_as):
    login_as(None)
    assert client.put(f"{BASE}/credentials", json={"client_id": "a", "client_secret": "b"}).status_code == 401
