import os

# Avant l'import de l'app: pas de Redis pendant les tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import copy
import json
import uuid
import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from storefront import config
from storefront.app import app as fastapi_app
from storefront.auth import credentials
from storefront.errors import BadRequest, Conflict
from storefront.infra.dependencies import get_db, get_payment_gateway
from storefront.payments.stripe_client import InvalidWebhook

TEST_PASSWORD = "Secret123!"
VALID_STRIPE_SIGNATURE = "t=1,v1=valid"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _test_config(monkeypatch):
    """Configuration déterministe: secret JWT de test, aucun service externe."""
    monkeypatch.setattr(config, "JWT_SECRET", "storefront-test-secret-0123456789abcdef")
    monkeypatch.setattr(config, "PUBLIC_BASE_URL", "http://testserver")
    monkeypatch.setattr(config, "SUPABASE_URL", "")
    monkeypatch.setattr(config, "SUPABASE_SERVICE_KEY", "")
    monkeypatch.setattr(config, "PASSWORD_RESET_DELIVERY_URL", "")
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)


class FakeStore:
    """
    Store en mémoire qui remplace les fonctions des repositories (users, products,
    categories, orders). Les lignes sont copiées à l'entrée et à la sortie.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, dict]] = {"users": {}, "products": {}, "categories": {}, "orders": {}}
        self.writes: List[tuple] = []

    # --- helpers de test ---
    def add(self, table: str, **fields) -> dict:
        row = dict(fields)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", "2024-01-01T00:00:00+00:00")
        self.tables[table][str(row["id"])] = row
        return copy.deepcopy(row)

    def add_user(self, **fields) -> dict:
        password = fields.pop("plain_password", TEST_PASSWORD)
        fields.setdefault("firstname", "Jane")
        fields.setdefault("lastname", "Doe")
        fields.setdefault("email", f"{uuid.uuid4().hex[:8]}@example.com")
        fields.setdefault("password", credentials.hash_password(password))
        fields.setdefault("role", "customer")
        fields.setdefault("ban_status", False)
        fields.setdefault("order_ids", [])
        return self.add("users", **fields)

    def add_product(self, **fields) -> dict:
        fields.setdefault("title", "Serum")
        fields.setdefault("price", 10.0)
        fields.setdefault("images", ["https://img.example.com/p.png"])
        fields.setdefault("skin_type", "Normal")
        return self.add("products", **fields)

    def row(self, table: str, row_id: str) -> Optional[dict]:
        row = self.tables[table].get(str(row_id))
        return copy.deepcopy(row) if row else None

    # --- primitives génériques ---
    def _get(self, table, row_id):
        return self.row(table, row_id) if row_id else None

    def _insert(self, table, data):
        self.writes.append(("insert", table))
        row = dict(data)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", "2024-01-01T00:00:00+00:00")
        self.tables[table][str(row["id"])] = copy.deepcopy(row)
        return copy.deepcopy(row)

    def _update(self, table, row_id, data):
        self.writes.append(("update", table))
        row = self.tables[table].get(str(row_id))
        if not row:
            return None
        row.update(copy.deepcopy(data))
        return copy.deepcopy(row)

    def _delete(self, table, row_id):
        self.writes.append(("delete", table))
        return self.tables[table].pop(str(row_id), None) is not None

    def _list(self, table):
        return [copy.deepcopy(r) for r in self.tables[table].values()]

    # --- users ---
    def get_user_by_email(self, client, email):
        email = (email or "").strip().lower()
        for row in self.tables["users"].values():
            if row.get("email") == email:
                return copy.deepcopy(row)
        return None

    def insert_user(self, client, data):
        if self.get_user_by_email(client, data.get("email")):
            raise Conflict("Resource already exists")
        return self._insert("users", data)

    # --- orders ---
    def compare_and_set_payment_status(self, client, order_id, expected, target):
        row = self.tables["orders"].get(str(order_id))
        if not row or row.get("payment_status") != expected:
            return None
        return self._update("orders", order_id, {"payment_status": target})

    def fetch_by_ids(self, table, ids):
        return [self.row(table, i) for i in ids if str(i) in self.tables[table]]

    def install(self, monkeypatch) -> "FakeStore":
        u = "storefront.users.repository"
        monkeypatch.setattr(f"{u}.list_users", lambda client, limit=100: self._list("users"))
        monkeypatch.setattr(f"{u}.get_user_by_id", lambda client, user_id: self._get("users", user_id))
        monkeypatch.setattr(f"{u}.get_user_by_email", self.get_user_by_email)
        monkeypatch.setattr(f"{u}.insert_user", self.insert_user)
        monkeypatch.setattr(f"{u}.update_user", lambda client, user_id, data: self._update("users", user_id, data))
        monkeypatch.setattr(f"{u}.delete_user", lambda client, user_id: self._delete("users", user_id))

        p = "storefront.products.repository"
        monkeypatch.setattr(f"{p}.list_products", lambda client, category_id=None: [
            r for r in self._list("products") if not category_id or r.get("category_id") == category_id
        ])
        monkeypatch.setattr(f"{p}.get_product", lambda client, product_id: self._get("products", product_id))
        monkeypatch.setattr(f"{p}.fetch_products_by_ids", lambda client, ids: self.fetch_by_ids("products", list(ids)))
        monkeypatch.setattr(f"{p}.create_product", lambda client, data: self._insert("products", data))
        monkeypatch.setattr(f"{p}.update_product", lambda client, product_id, data: self._update("products", product_id, data))
        monkeypatch.setattr(f"{p}.delete_product", lambda client, product_id: self._delete("products", product_id))

        c = "storefront.categories.repository"
        monkeypatch.setattr(f"{c}.list_categories", lambda client: self._list("categories"))
        monkeypatch.setattr(f"{c}.get_category", lambda client, category_id: self._get("categories", category_id))
        monkeypatch.setattr(f"{c}.create_category", lambda client, data: self._insert("categories", data))
        monkeypatch.setattr(f"{c}.update_category", lambda client, category_id, data: self._update("categories", category_id, data))
        monkeypatch.setattr(f"{c}.delete_category", lambda client, category_id: self._delete("categories", category_id))

        o = "storefront.orders.repository"
        monkeypatch.setattr(f"{o}.insert_order", lambda client, data: self._insert("orders", data))
        monkeypatch.setattr(f"{o}.get_order", lambda client, order_id: self._get("orders", order_id))
        monkeypatch.setattr(f"{o}.list_orders", lambda client, limit=100: self._list("orders"))
        monkeypatch.setattr(f"{o}.fetch_orders_by_ids", lambda client, ids: self.fetch_by_ids("orders", list(ids)))
        monkeypatch.setattr(f"{o}.update_order", lambda client, order_id, data: self._update("orders", order_id, data))
        monkeypatch.setattr(f"{o}.compare_and_set_payment_status", self.compare_and_set_payment_status)
        monkeypatch.setattr(f"{o}.delete_order", lambda client, order_id: self._delete("orders", order_id))
        return self


class FakeGateway:
    """Passerelle Stripe factice: sessions en mémoire (payées ou non), signature webhook == VALID_STRIPE_SIGNATURE."""

    currency = "eur"
    valid_signature = VALID_STRIPE_SIGNATURE

    def __init__(self):
        self.sessions: List[Dict[str, Any]] = []
        self.by_id: Dict[str, Dict[str, Any]] = {}
        self.error: Optional[Exception] = None
        self.retrieved: List[str] = []

    def add_session(self, order_id: str, payment_status: str = "paid") -> str:
        session_id = f"cs_test_{len(self.by_id) + 1}"
        self.by_id[session_id] = {"id": session_id, "payment_status": payment_status, "metadata": {"order_id": order_id}}
        return session_id

    def pay(self, session_id: str) -> None:
        self.by_id[session_id]["payment_status"] = "paid"

    def create_checkout_session(self, **kwargs) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.sessions.append(kwargs)
        session_id = self.add_session(kwargs["metadata"]["order_id"], payment_status="unpaid")
        return {"id": session_id, "url": f"https://checkout.stripe.com/c/pay/{session_id}"}

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        self.retrieved.append(session_id)
        if session_id not in self.by_id:
            raise BadRequest("Unknown checkout session")
        return copy.deepcopy(self.by_id[session_id])

    def parse_event(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        if sig_header != VALID_STRIPE_SIGNATURE:
            raise InvalidWebhook("No signatures found matching the expected signature for payload")
        return json.loads(payload)


@pytest.fixture()
def store(monkeypatch) -> FakeStore:
    return FakeStore().install(monkeypatch)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def db():
    # les repositories sont remplacés par FakeStore: le client n'est jamais interrogé
    return MagicMock(name="supabase-client")


@pytest.fixture()
def client(app, store, gateway, db) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def customer(store) -> dict:
    return store.add_user(email="jane@example.com")


@pytest.fixture()
def admin(store) -> dict:
    return store.add_user(email="admin@example.com", role="admin", firstname="Ada")


def _bearer(user: dict) -> Dict[str, str]:
    return {"Authorization": f"Bearer {credentials.issue_token(user)}"}


@pytest.fixture()
def auth_headers():
    """auth_headers(user) -> en-tête Authorization avec un jeton valide pour ce user."""
    return _bearer
