from storefront.auth import credentials


def _register_body(**overrides):
    body = {"firstname": "Jane", "lastname": "Doe", "email": "jane.new@example.com", "password": "Secret123!"}
    body.update(overrides)
    return body


def test_register_returns_public_user(client, store):
    res = client.post("/api/v1/users", json=_register_body())
    assert res.status_code == 201, res.text
    data = res.json()
    assert data["email"] == "jane.new@example.com"
    assert "password" not in data
    assert len(store.tables["users"]) == 1


def test_register_duplicate_email_conflicts(client, store, customer):
    res = client.post("/api/v1/users", json=_register_body(email=customer["email"]))
    assert res.status_code == 409
    assert len(store.tables["users"]) == 1


def test_register_malformed_email_writes_nothing(client, store):
    res = client.post("/api/v1/users", json=_register_body(email="not-an-email"))
    assert res.status_code == 400
    assert "email" in res.json()["message"]
    assert store.tables["users"] == {}
    assert store.writes == []


def test_register_weak_password_is_rejected(client, store):
    res = client.post("/api/v1/users", json=_register_body(password="password"))
    assert res.status_code == 400
    assert store.tables["users"] == {}


def test_login_wrong_password(client, customer):
    res = client.post("/api/v1/users/login", json={"email": customer["email"], "password": "Wrong123!"})
    assert res.status_code == 400
    assert res.json() == {"message": "Wrong password, please try again!"}
    assert "token" not in res.json()


def test_login_then_profile(client, customer):
    res = client.post("/api/v1/users/login", json={"email": customer["email"], "password": "Secret123!"})
    assert res.status_code == 200
    token = res.json()["token"]
    assert res.json()["userData"]["id"] == customer["id"]

    profile = client.get("/api/v1/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["email"] == customer["email"]
    assert "password" not in profile.json()


def test_login_unknown_email(client, store):
    res = client.post("/api/v1/users/login", json={"email": "ghost@example.com", "password": "Secret123!"})
    assert res.status_code == 404


def test_profile_requires_valid_token(client, store, customer, monkeypatch):
    assert client.get("/api/v1/users/profile").status_code == 401

    from storefront import config
    monkeypatch.setattr(config, "JWT_EXPIRES_SECONDS", -5)
    expired = credentials.issue_token(customer)
    res = client.get("/api/v1/users/profile", headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json() == {"message": "Token expired, please log in again"}
    assert res.headers["www-authenticate"] == "Bearer"


def test_deleted_account_token_is_rejected(client, store, customer, auth_headers):
    headers = auth_headers(customer)
    del store.tables["users"][customer["id"]]
    assert client.get("/api/v1/users/profile", headers=headers).status_code == 401


def test_user_cannot_read_other_user(client, store, customer, auth_headers):
    other = store.add_user(email="other@example.com")
    assert client.get(f"/api/v1/users/{other['id']}", headers=auth_headers(customer)).status_code == 403
    assert client.get(f"/api/v1/users/{customer['id']}", headers=auth_headers(customer)).status_code == 200


def test_update_own_profile(client, store, customer, auth_headers):
    res = client.put(f"/api/v1/users/{customer['id']}", json={"firstname": "Janet"}, headers=auth_headers(customer))
    assert res.status_code == 200
    assert res.json()["firstname"] == "Janet"


def test_admin_routes_require_admin(client, store, customer, auth_headers):
    assert client.get("/api/v1/users", headers=auth_headers(customer)).status_code == 403
    assert client.put(f"/api/v1/users/{customer['id']}/ban", headers=auth_headers(customer)).status_code == 403


def test_admin_ban_unban_and_delete(client, store, admin, customer, auth_headers):
    headers = auth_headers(admin)

    res = client.put(f"/api/v1/users/{customer['id']}/ban", headers=headers)
    assert res.status_code == 200
    assert res.json()["message"] == "User banned successfully!"
    assert res.json()["user"]["ban_status"] is True

    # un compte banni ne peut plus se connecter ni utiliser son jeton
    login = client.post("/api/v1/users/login", json={"email": customer["email"], "password": "Secret123!"})
    assert login.status_code == 403
    assert client.get("/api/v1/users/profile", headers=auth_headers(customer)).status_code == 403

    res = client.put(f"/api/v1/users/{customer['id']}/unban", headers=headers)
    assert res.json()["message"] == "User unbanned successfully!"

    users = client.get("/api/v1/users", headers=headers).json()
    assert {u["email"] for u in users} == {admin["email"], customer["email"]}
    assert all("password" not in u for u in users)

    assert client.delete(f"/api/v1/users/{customer['id']}", headers=headers).status_code == 204
    assert client.delete(f"/api/v1/users/{customer['id']}", headers=headers).status_code == 404


def test_password_reset_answer_is_generic(client, store, customer):
    known = client.post("/api/v1/users/password-reset", json={"email": customer["email"]})
    unknown = client.post("/api/v1/users/password-reset", json={"email": "ghost@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert store.row("users", customer["id"])["reset_token_hash"]


def test_password_reset_confirm_rejects_bad_token(client, store, customer):
    res = client.post(
        "/api/v1/users/password-reset/confirm",
        json={"email": customer["email"], "token": "guess", "new_password": "Brand9New!"},
    )
    assert res.status_code == 400


def test_store_outage_during_auth_is_server_error(client, store, customer, auth_headers, monkeypatch):
    from storefront.errors import InternalError

    def _down(client, user_id):
        raise InternalError()

    headers = auth_headers(customer)
    monkeypatch.setattr("storefront.users.repository.get_user_by_id", _down)
    res = client.get("/api/v1/users/profile", headers=headers)
    assert res.status_code == 500
    assert res.json() == {"message": "Internal server error"}
