from unittest.mock import MagicMock
from urllib.parse import urlparse, parse_qs

import pytest

from storefront.auth import credentials
from storefront.errors import BadRequest, Forbidden, InternalError, NotFound
from storefront.payments import service
from storefront.payments.cart import CheckoutRequest

client = MagicMock(name="supabase-client")


def _request(products, receipt_email="jane@example.com"):
    return CheckoutRequest.model_validate({
        "receipt_email": receipt_email,
        "order": [
            {"_id": p["id"], "title": p["title"], "price": p["price"], "images": p.get("images"), "quantity": qty}
            for p, qty in products
        ],
    })


@pytest.fixture()
def cart_products(store):
    return store.add_product(title="Serum", price=10.99), store.add_product(title="Cream", price=5.0)


def _session_user(row):
    return {"id": row["id"], "email": row["email"], "role": row["role"]}


def test_initiate_checkout_creates_pending_order_and_session(store, gateway, customer, cart_products):
    serum, cream = cart_products
    res = service.initiate_checkout(
        client, gateway, user=_session_user(customer), request=_request([(serum, 2), (cream, 1)]),
    )

    order = store.row("orders", res["order_id"])
    assert res["url"] == "https://checkout.stripe.com/c/pay/cs_test_1"
    assert order["payment_status"] == "PENDING"
    assert order["total_amount"] == 2698
    assert order["user_id"] == customer["id"]
    assert store.row("users", customer["id"])["order_ids"] == [res["order_id"]]
    assert order["checkout_session_id"] == "cs_test_1"

    session = gateway.sessions[0]
    assert session["customer_email"] == "jane@example.com"
    assert session["metadata"]["order_id"] == res["order_id"]
    assert [li["price_data"]["unit_amount"] for li in session["line_items"]] == [1099, 500]
    assert [li["quantity"] for li in session["line_items"]] == [2, 1]

    success = urlparse(session["success_url"])
    assert success.path == f"/api/v1/payment/success/{res['order_id']}"
    sig = parse_qs(success.query)["sig"][0]
    assert credentials.verify_callback(sig, res["order_id"], "success")
    assert parse_qs(success.query)["session_id"] == ["{CHECKOUT_SESSION_ID}"]
    assert f"/api/v1/payment/cancel/{res['order_id']}?sig=" in session["cancel_url"]


def test_initiate_checkout_ignores_client_prices(store, gateway, customer, cart_products):
    serum, _ = cart_products
    req = CheckoutRequest.model_validate({"order": [{"_id": serum["id"], "price": "0.01", "quantity": 1}]})
    res = service.initiate_checkout(client, gateway, user=_session_user(customer), request=req)
    assert store.row("orders", res["order_id"])["total_amount"] == 1099
    assert "customer_email" not in gateway.sessions[0] or gateway.sessions[0]["customer_email"] is None


def test_unknown_product_creates_nothing(store, gateway, customer):
    req = CheckoutRequest.model_validate({"order": [{"_id": "ghost", "quantity": 1}]})
    with pytest.raises(BadRequest):
        service.initiate_checkout(client, gateway, user=_session_user(customer), request=req)
    assert store.tables["orders"] == {}
    assert gateway.sessions == []


@pytest.mark.parametrize("error, expected", [
    (BadRequest("Payment request rejected by provider"), BadRequest),
    (InternalError("Payment provider error"), InternalError),
])
def test_provider_failure_compensates(store, gateway, customer, cart_products, error, expected):
    serum, _ = cart_products
    gateway.error = error
    with pytest.raises(expected):
        service.initiate_checkout(client, gateway, user=_session_user(customer), request=_request([(serum, 1)]))
    assert store.tables["orders"] == {}
    assert store.row("users", customer["id"])["order_ids"] == []


def test_user_update_failure_deletes_order(store, gateway, customer, cart_products, monkeypatch):
    serum, _ = cart_products

    def _boom(client, user_id, order_id):
        raise InternalError()

    monkeypatch.setattr("storefront.users.repository.append_order_id", _boom)
    with pytest.raises(InternalError):
        service.initiate_checkout(client, gateway, user=_session_user(customer), request=_request([(serum, 1)]))
    assert store.tables["orders"] == {}
    assert gateway.sessions == []


def test_vanished_user_deletes_order(store, gateway, cart_products):
    serum, _ = cart_products
    ghost = {"id": "deleted-user", "email": "x@example.com", "role": "customer"}
    with pytest.raises(NotFound):
        service.initiate_checkout(client, gateway, user=ghost, request=_request([(serum, 1)]))
    assert store.tables["orders"] == {}


def _pending_order(store, user_id="u1"):
    return store.add("orders", user_id=user_id, items=[], total_amount=1000, currency="eur", payment_status="PENDING")


def _success(gateway, order_id, session_id=None):
    sig = credentials.sign_callback(order_id, "success")
    return service.on_payment_success(client, gateway, order_id, sig, session_id)


def test_callbacks_apply_state_machine(store, gateway):
    order = _pending_order(store)
    res = _success(gateway, order["id"], gateway.add_session(order["id"]))
    assert res["payment_status"] == "SUCCESSED"

    other = _pending_order(store)
    res = service.on_payment_cancel(client, other["id"], credentials.sign_callback(other["id"], "cancel"))
    assert res["payment_status"] == "FAILED"


def test_callback_signature_required(store, gateway):
    order = _pending_order(store)
    session_id = gateway.add_session(order["id"])
    with pytest.raises(Forbidden):
        service.on_payment_success(client, gateway, order["id"], None, session_id)
    # lien d'annulation rejoué sur l'URL de succès
    with pytest.raises(Forbidden):
        service.on_payment_success(client, gateway, order["id"], credentials.sign_callback(order["id"], "cancel"), session_id)
    assert gateway.retrieved == []
    assert store.row("orders", order["id"])["payment_status"] == "PENDING"


def test_success_requires_paid_session(store, gateway):
    order = _pending_order(store)
    session_id = gateway.add_session(order["id"], payment_status="unpaid")
    with pytest.raises(BadRequest):
        _success(gateway, order["id"], session_id)
    with pytest.raises(BadRequest):
        _success(gateway, order["id"], None)
    assert store.row("orders", order["id"])["payment_status"] == "PENDING"

    gateway.pay(session_id)
    assert _success(gateway, order["id"], session_id)["payment_status"] == "SUCCESSED"


def test_success_rejects_session_of_another_order(store, gateway):
    order = _pending_order(store)
    foreign = gateway.add_session("another-order")
    with pytest.raises(Forbidden):
        _success(gateway, order["id"], foreign)

    bound = store.add(
        "orders", user_id="u1", items=[], total_amount=1000, currency="eur",
        payment_status="PENDING", checkout_session_id="cs_bound",
    )
    other = gateway.add_session(bound["id"])
    with pytest.raises(Forbidden):
        _success(gateway, bound["id"], other)
    assert store.row("orders", bound["id"])["payment_status"] == "PENDING"


def test_settled_order_skips_provider_lookup(store, gateway):
    order = store.add("orders", user_id="u1", items=[], total_amount=1000, currency="eur", payment_status="SUCCESSED")
    assert _success(gateway, order["id"], "cs_any")["payment_status"] == "SUCCESSED"
    assert gateway.retrieved == []


def _event(event_type, order_id, payment_status="paid"):
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {"id": "cs_test_1", "payment_status": payment_status, "metadata": {"order_id": order_id}}},
    }


def test_webhook_completed_paid_marks_success(store):
    order = _pending_order(store)
    res = service.handle_webhook_event(client, _event("checkout.session.completed", order["id"]))
    assert res == {"status": "ok", "order_id": order["id"], "payment_status": "SUCCESSED"}


def test_webhook_completed_unpaid_is_ignored(store):
    order = _pending_order(store)
    res = service.handle_webhook_event(client, _event("checkout.session.completed", order["id"], payment_status="unpaid"))
    assert res == {"status": "ignored"}
    assert store.row("orders", order["id"])["payment_status"] == "PENDING"


def test_webhook_expired_marks_failed(store):
    order = _pending_order(store)
    res = service.handle_webhook_event(client, _event("checkout.session.expired", order["id"]))
    assert res["payment_status"] == "FAILED"


@pytest.mark.parametrize("event", [
    {"type": "payment_intent.created", "data": {"object": {}}},
    {"type": "checkout.session.completed", "data": {"object": {"payment_status": "paid", "metadata": {}}}},
    {},
])
def test_webhook_irrelevant_events_are_ignored(store, event):
    assert service.handle_webhook_event(client, event) == {"status": "ignored"}


def test_webhook_conflicts_and_unknown_orders_are_acknowledged(store):
    order = store.add("orders", user_id="u1", items=[], total_amount=1000, currency="eur", payment_status="FAILED")
    assert service.handle_webhook_event(client, _event("checkout.session.completed", order["id"])) == {"status": "ignored"}
    assert store.row("orders", order["id"])["payment_status"] == "FAILED"
    assert service.handle_webhook_event(client, _event("checkout.session.completed", "missing")) == {"status": "ignored"}


def test_session_id_write_failure_compensates(store, gateway, customer, cart_products, monkeypatch):
    serum, _ = cart_products

    def _boom(client, order_id, data):
        raise InternalError()

    monkeypatch.setattr("storefront.orders.repository.update_order", _boom)
    with pytest.raises(InternalError):
        service.initiate_checkout(client, gateway, user=_session_user(customer), request=_request([(serum, 1)]))
    assert store.tables["orders"] == {}
    assert store.row("users", customer["id"])["order_ids"] == []
