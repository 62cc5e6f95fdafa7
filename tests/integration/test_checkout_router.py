from tests.fakes import seed_credentials, seed_quotation

URL = "/api/v1/mercadopago/checkout/one-time"


def _ready(db, **overrides):
    seed_credentials(db)
    fields = dict(status="accepted", proposed_price=15000, payment_enabled=True)
    fields.update(overrides)
    return seed_quotation(db, **fields)


def test_checkout_returns_init_point_and_order(client, db, login_as, client_user):
    login_as(client_user)
    q = _ready(db)

    r = client.post(URL, json={"quotationId": q["id"]})

    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"init_point", "order_id"}
    order = db.get("orders", id=body["order_id"])
    assert (order["amount"], order["platform_fee"]) == (15000.0, 1500.0)


def test_checkout_requires_session(client, db, login_as):
    login_as(None)
    q = _ready(db)
    r = client.post(URL, json={"quotationId": q["id"]})
    assert r.status_code == 401
    assert r.json()["code"] == "not_authenticated"


def test_checkout_rejects_non_numeric_id(client, login_as, client_user):
    login_as(client_user)
    r = client.post(URL, json={"quotationId": "12"})
    assert r.status_code == 400
    assert "error" in r.json()


def test_checkout_rejects_invalid_json(client, login_as, client_user):
    login_as(client_user)
    r = client.post(URL, content=b"not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


def test_checkout_status_mapping(client, db, login_as, client_user):
    login_as(client_user)
    assert client.post(URL, json={"quotationId": 777}).status_code == 404

    foreign = _ready(db, client_id="otro-cliente")
    assert client.post(URL, json={"quotationId": foreign["id"]}).status_code == 403


def test_checkout_on_pending_quotation_is_invalid_state(client, db, login_as, client_user):
    login_as(client_user)
    q = _ready(db, status="pending")
    r = client.post(URL, json={"quotationId": q["id"]})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_state"
    assert db.rows("orders") == []


def test_checkout_blocked_until_provider_enables_payment(client, db, login_as, client_user, provider_user):
    q = _ready(db, extra_docs_requested=True, payment_enabled=False)

    login_as(client_user)
    blocked = client.post(URL, json={"quotationId": q["id"]})
    assert blocked.status_code == 400
    assert blocked.json()["code"] == "payment_blocked"

    login_as(provider_user)
    assert client.post(f"/api/v1/quotations/{q['id']}/enable-payment").status_code == 200

    login_as(client_user)
    assert client.post(URL, json={"quotationId": q["id"]}).status_code == 200


def test_checkout_processor_failure_is_502_without_details(client, db, mp, login_as, client_user):
    login_as(client_user)
    q = _ready(db)
    mp.preference_response = (500, {"message": "internal processor detail"})

    r = client.post(URL, json={"quotationId": q["id"]})

    assert r.status_code == 502
    assert "internal processor detail" not in r.text
    assert db.rows("orders")[0]["status"] == "pending"


def test_checkout_provider_not_connected(client, db, login_as, client_user):
    login_as(client_user)
    q = seed_quotation(db, status="accepted", proposed_price=100, payment_enabled=True)
    r = client.post(URL, json={"quotationId": q["id"]})
    assert r.status_code == 400
    assert r.json()["code"] == "provider_not_connected"


def test_checkout_missing_site_url_is_500(client, db, login_as, client_user, monkeypatch):
    from sepelios import config
    monkeypatch.setattr(config, "SITE_URL", "")
    login_as(client_user)
    q = _ready(db)
    assert client.post(URL, json={"quotationId": q["id"]}).status_code == 500


def test_checkout_rejects_zero_quotation_id(client, db, login_as, client_user):
    login_as(client_user)
    r = client.post(URL, json={"quotationId": 0})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_quotation_id"
