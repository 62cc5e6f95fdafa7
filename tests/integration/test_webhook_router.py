from sepelios.payments import webhook as webhook_service
from tests.fakes import PROVIDER_ID, seed_credentials, seed_order, seed_quotation

URL = "/api/v1/mercadopago/webhook"


def _order(db):
    seed_credentials(db)
    q = seed_quotation(db, status="accepted", proposed_price=15000, payment_enabled=True)
    return seed_order(db, q)


def test_post_notification_finalizes(client, db, mp):
    order = _order(db)
    mp.add_payment("9001", "approved", external_reference=order["id"])

    r = client.post(
        URL,
        params={"provider_id": PROVIDER_ID, "order_id": order["id"]},
        json={"type": "payment", "data": {"id": "9001"}},
    )

    assert r.status_code == 200
    assert r.json() == {"received": True}
    assert db.get("orders", id=order["id"])["status"] == "paid"
    assert len(db.rows("contracts")) == 1


def test_get_notification_reads_query(client, db, mp):
    order = _order(db)
    mp.add_payment("9002", "approved", external_reference=order["id"])

    r = client.get(URL, params={"provider_id": PROVIDER_ID, "order_id": order["id"], "id": "9002", "topic": "payment"})

    assert r.json() == {"received": True}
    assert db.get("orders", id=order["id"])["payment_reference"] == "9002"


def test_post_with_query_data_id(client, db, mp):
    order = _order(db)
    mp.add_payment("9003", "approved", external_reference=order["id"])
    r = client.post(URL, params={"provider_id": PROVIDER_ID, "order_id": order["id"], "data.id": "9003", "type": "payment"})
    assert r.status_code == 200
    assert db.get("orders", id=order["id"])["status"] == "paid"


def test_non_payment_topic_acknowledged_without_effect(client, db, mp):
    order = _order(db)
    r = client.get(URL, params={"provider_id": PROVIDER_ID, "order_id": order["id"], "id": "1", "topic": "merchant_order"})
    assert r.json() == {"received": True}
    assert mp.requests == []


def test_pending_payment_acknowledged_without_effect(client, db, mp):
    order = _order(db)
    mp.add_payment("9004", "pending", external_reference=order["id"])
    r = client.post(URL, params={"provider_id": PROVIDER_ID, "order_id": order["id"]}, json={"data": {"id": "9004"}})
    assert r.status_code == 200
    assert db.get("orders", id=order["id"])["status"] == "pending"


def test_mismatched_reference_acknowledged_without_effect(client, db, mp):
    order = _order(db)
    mp.add_payment("9005", "approved", external_reference="otra")
    r = client.post(URL, params={"provider_id": PROVIDER_ID, "order_id": order["id"]}, json={"data": {"id": "9005"}})
    assert r.status_code == 200
    assert db.get("orders", id=order["id"])["status"] == "pending"


def test_invalid_body_and_missing_ids_still_200(client):
    r = client.post(URL, content=b"garbage", headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.json() == {"received": True}


def test_unexpected_failure_still_acknowledged(client, monkeypatch):
    def _explode(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(webhook_service, "handle_notification", _explode)
    r = client.get(URL, params={"provider_id": "p", "order_id": "o", "id": "1"})
    assert r.status_code == 200
    assert r.json() == {"received": True}
