import json
import pytest

from sepelios.errors import (
    ConfigurationError, Forbidden, InvalidAmount, InvalidState, NotAuthenticated, NotFound,
    PaymentBlocked, ProviderNotConnected, StoreError, UpstreamError, ValidationFailed,
)
from sepelios.payments import checkout
from tests.fakes import PROVIDER_ID, seed_credentials, seed_quotation, seed_service


def _accepted_quotation(db, **overrides):
    fields = dict(status="accepted", proposed_price=15000, payment_enabled=True)
    fields.update(overrides)
    return seed_quotation(db, **fields)


def test_checkout_creates_pending_order_with_fee(db, mp, client_user):
    service = seed_service(db, name="Plan Familiar")
    q = _accepted_quotation(db, service_id=service["id"])
    seed_credentials(db)

    result = checkout.initiate_checkout(client_user, q["id"])

    order = db.get("orders", id=result["order_id"])
    assert result["init_point"].startswith("https://www.mercadopago.com.ar/checkout")
    assert order["status"] == "pending"
    assert order["amount"] == 15000.0
    assert order["platform_fee"] == 1500.0
    assert order["quotation_id"] == q["id"]
    assert order["payment_reference"] == "pref-1"

    sent = mp.requests[-1]
    assert sent.headers["Authorization"] == "Bearer APP_USR-provider-token"
    body = json.loads(sent.content)
    assert body["items"] == [{"title": "Plan Familiar", "quantity": 1, "unit_price": 15000.0, "currency_id": "ARS"}]
    assert body["marketplace_fee"] == 1500.0
    assert body["external_reference"] == order["id"]
    assert body["notification_url"] == (
        f"https://sepelios.test/api/v1/mercadopago/webhook?provider_id={PROVIDER_ID}&order_id={order['id']}"
    )
    assert body["back_urls"]["success"] == "https://sepelios.test/client/dashboard?payment=success"
    assert body["auto_return"] == "approved"
    assert body["metadata"] == {"order_id": order["id"], "quotation_id": q["id"]}


def test_checkout_item_title_fallback(db, mp, client_user):
    q = _accepted_quotation(db, service_id=None)
    seed_credentials(db)
    checkout.initiate_checkout(client_user, q["id"])
    assert json.loads(mp.requests[-1].content)["items"][0]["title"] == "Servicio"


def test_checkout_requires_user(db):
    with pytest.raises(NotAuthenticated):
        checkout.initiate_checkout(None, 1)


@pytest.mark.parametrize("value", ["1", None, True, 1.5, {"id": 1}, 0, -3, 0.0])
def test_checkout_requires_numeric_quotation_id(client_user, value):
    with pytest.raises(ValidationFailed):
        checkout.initiate_checkout(client_user, value)


def test_checkout_unknown_quotation(client_user):
    with pytest.raises(NotFound):
        checkout.initiate_checkout(client_user, 404)


def test_checkout_foreign_quotation(db, client_user):
    q = _accepted_quotation(db, client_id="otro-cliente")
    with pytest.raises(Forbidden):
        checkout.initiate_checkout(client_user, q["id"])


def test_checkout_on_pending_quotation_creates_no_order(db, client_user):
    q = seed_quotation(db, status="pending", proposed_price=15000)
    seed_credentials(db)
    with pytest.raises(InvalidState):
        checkout.initiate_checkout(client_user, q["id"])
    assert db.rows("orders") == []


def test_checkout_blocked_while_extra_docs_pending(db, client_user):
    q = _accepted_quotation(db, extra_docs_requested=True, payment_enabled=False)
    seed_credentials(db)
    with pytest.raises(PaymentBlocked):
        checkout.initiate_checkout(client_user, q["id"])
    assert db.rows("orders") == []


def test_checkout_null_payment_enabled_follows_extra_docs(db, client_user):
    q = _accepted_quotation(db, extra_docs_requested=True, payment_enabled=None)
    with pytest.raises(PaymentBlocked):
        checkout.initiate_checkout(client_user, q["id"])


def test_checkout_invalid_amount(db, client_user):
    q = _accepted_quotation(db, proposed_price=0)
    with pytest.raises(InvalidAmount):
        checkout.initiate_checkout(client_user, q["id"])


def test_checkout_credentials_read_failure(db, client_user):
    q = _accepted_quotation(db)
    db.failures[("provider_mp_credentials", "select")] = RuntimeError("boom")
    with pytest.raises(StoreError):
        checkout.initiate_checkout(client_user, q["id"])


@pytest.mark.parametrize("overrides", [
    {"mp_access_token": None},
    {"mp_user_id": None},
])
def test_checkout_provider_not_connected(db, client_user, overrides):
    q = _accepted_quotation(db)
    seed_credentials(db, **overrides)
    with pytest.raises(ProviderNotConnected):
        checkout.initiate_checkout(client_user, q["id"])


def test_checkout_missing_site_url(db, client_user, monkeypatch):
    from sepelios import config
    monkeypatch.setattr(config, "SITE_URL", "")
    q = _accepted_quotation(db)
    seed_credentials(db)
    with pytest.raises(ConfigurationError):
        checkout.initiate_checkout(client_user, q["id"])
    assert db.rows("orders") == []


def test_checkout_order_insert_failure(db, client_user):
    q = _accepted_quotation(db)
    seed_credentials(db)
    db.failures[("orders", "insert")] = RuntimeError("insert failed")
    with pytest.raises(StoreError):
        checkout.initiate_checkout(client_user, q["id"])


def test_checkout_processor_error_leaves_order_pending(db, mp, client_user):
    q = _accepted_quotation(db)
    seed_credentials(db)
    mp.preference_response = (400, {"message": "invalid marketplace_fee", "status": 400})

    with pytest.raises(UpstreamError) as exc:
        checkout.initiate_checkout(client_user, q["id"])

    assert "marketplace_fee" not in exc.value.message
    [order] = db.rows("orders")
    assert order["status"] == "pending"
    assert order["payment_reference"] is None


def test_checkout_missing_init_point(db, mp, client_user):
    q = _accepted_quotation(db)
    seed_credentials(db)
    mp.preference_response = (201, {"id": "pref-2"})
    with pytest.raises(UpstreamError):
        checkout.initiate_checkout(client_user, q["id"])
    assert db.rows("orders")[0]["status"] == "pending"


def test_order_amount_is_frozen(db, client_user):
    q = _accepted_quotation(db, proposed_price=15000)
    seed_credentials(db)
    result = checkout.initiate_checkout(client_user, q["id"])
    db.get("quotations", id=q["id"])["proposed_price"] = 99999
    assert db.get("orders", id=result["order_id"])["amount"] == 15000.0
