import httpx
import pytest

from sepelios.payments import mercadopago_client
from sepelios.payments.mercadopago_client import MercadoPagoError


def test_create_preference_posts_with_bearer(mp):
    result = mercadopago_client.create_preference("APP_USR-x", {"items": []})
    assert result["id"] == "pref-1"
    request = mp.requests[-1]
    assert request.url == "https://api.mercadopago.com/checkout/preferences"
    assert request.headers["Authorization"] == "Bearer APP_USR-x"


def test_get_payment_reads_by_id(mp):
    mp.add_payment("555", "approved", external_reference="o-1")
    payment = mercadopago_client.get_payment("APP_USR-x", "555")
    assert payment["status"] == "approved"
    assert mp.requests[-1].url.path == "/v1/payments/555"


def test_non_2xx_raises_with_status_and_body(mp):
    with pytest.raises(MercadoPagoError) as exc:
        mercadopago_client.get_payment("APP_USR-x", "missing")
    assert exc.value.status_code == 404
    assert "Payment not found" in exc.value.body


def test_transport_error_raises_without_status(monkeypatch):
    def _boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(mercadopago_client, "_transport", httpx.MockTransport(_boom))
    with pytest.raises(MercadoPagoError) as exc:
        mercadopago_client.create_preference("APP_USR-x", {})
    assert exc.value.status_code is None


def test_non_object_json_is_rejected(mp):
    mp.preference_response = (201, ["unexpected"])
    with pytest.raises(MercadoPagoError):
        mercadopago_client.create_preference("APP_USR-x", {})


def test_authorization_url_encodes_redirect():
    url = mercadopago_client.authorization_url(
        client_id="app-1", state="custom.s", redirect_uri="https://sepelios.test/api/v1/mercadopago/oauth/callback",
    )
    assert url.startswith("https://auth.mercadopago.com.ar/authorization?client_id=app-1&response_type=code")
    assert "redirect_uri=https%3A%2F%2Fsepelios.test%2Fapi%2Fv1%2Fmercadopago%2Foauth%2Fcallback" in url
