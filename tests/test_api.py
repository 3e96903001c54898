from inventory_api import crud, schemas
from inventory_api.auth import create_access_token


def _login(client, phone="9876543210", password="secret1", path="/api/users/login-or-create"):
    return client.post(path, json={"user_phone": phone, "user_password": password})


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "UP", "message": "Server is running smoothly!"}


def test_login_or_create_flow(client):
    r = _login(client, phone=9876543210)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User created"
    assert body["data"]["created"] is True
    assert body["data"]["user"]["phone"] == "9876543210"
    assert "password" not in body["data"]["user"]
    assert "token" not in body["data"]

    r = _login(client)
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Login successful"
    assert body["data"]["token"]
    assert body["data"]["user"]["phone"] == "9876543210"

    # still only one user
    r = client.get("/api/users")
    assert r.json()["meta"]["pagination"]["totalItems"] == 1


def test_login_wrong_password(client):
    _login(client)
    r = _login(client, password="wrong-password")
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Wrong Credentials!"
    assert r.json()["error"]["type"] == "UnauthorizedError"


def test_repeated_wrong_passwords_never_register_a_user(client):
    _login(client)
    for attempt in range(5):
        r = _login(client, password=f"guess-{attempt}")
        assert r.status_code == 401
        assert r.json()["error"]["message"] == "Wrong Credentials!"

    r = client.get("/api/users")
    assert r.json()["meta"]["pagination"]["totalItems"] == 1


def test_login_keyed_by_email(client):
    payload = {"user_phone": "9876543210", "user_password": "secret1", "user_email": "ravi@example.com"}
    r = client.post("/api/users/login-or-create", json=payload)
    assert r.json()["data"]["created"] is True

    # a different phone with the same email is the same account
    r = client.post("/api/users/login-or-create", json=dict(payload, user_phone="9123456780"))
    assert r.status_code == 200
    assert r.json()["message"] == "Login successful"
    assert r.json()["data"]["user"]["email"] == "ravi@example.com"
    assert r.json()["data"]["user"]["phone"] == "9876543210"

    r = client.get("/api/users")
    assert r.json()["meta"]["pagination"]["totalItems"] == 1


def test_login_requires_phone_and_password(client):
    r = client.post("/api/generic/login-create-user", json={"user_phone": "9876543210"})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["message"] == "user_password is required"
    assert error["details"] == {"field": "user_password"}


def test_refresh_issues_new_token(client):
    _login(client)
    token = _login(client).json()["data"]["token"]
    r = client.get("/api/generic/refresh", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["message"] == "Token refreshed"
    assert r.json()["data"]["token"]


def test_logout(client):
    r = client.post("/api/generic/logout")
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Logged out"}


def test_missing_or_malformed_token(client):
    assert client.get("/api/generic/refresh").status_code == 401
    r = client.get("/api/generic/refresh", headers={"Authorization": "Bearer null"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Unauthorized"

    r = client.get("/api/generic/refresh", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "JsonWebTokenError"


def test_expired_token(client, member_user, settings):
    token = create_access_token(member_user, settings.jwt_secret, expires_in=-10)
    r = client.get("/api/generic/refresh", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["error"]["type"] == "TokenExpiredError"


def test_stale_token_after_profile_change(client, member_user, member_headers):
    r = client.put(f"/api/users/{member_user.id}", json={"name": "Meera K"})
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Meera K"

    r = client.get("/api/generic/refresh", headers=member_headers)
    assert r.status_code == 401


def test_login_rate_limit(client):
    for _ in range(3):
        assert _login(client, path="/api/generic").status_code == 200
    r = _login(client, path="/api/generic")
    assert r.status_code == 429
    assert r.headers["retry-after"] == "60"
    error = r.json()["error"]
    assert error["type"] == "RateLimitError"
    assert error["retryAfter"] == 60


def test_users_pagination(client, db_session):
    for i in range(12):
        crud.create_user(db_session, schemas.UserCreate(name=f"User {i}", password="secret1"))

    r = client.get("/api/users", params={"page": 2, "limit": 5})
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Users fetched successfully"
    assert len(body["data"]) == 5
    pagination = body["meta"]["pagination"]
    assert pagination["currentPage"] == 2
    assert pagination["totalPages"] == 3
    assert pagination["totalItems"] == 12
    assert pagination["hasNext"] is True
    assert pagination["hasPrev"] is True
    assert pagination["nextPage"] == 3
    assert pagination["prevPage"] == 1

    r = client.get("/api/users", params={"page": 3, "pageSize": 5})
    pagination = r.json()["meta"]["pagination"]
    assert len(r.json()["data"]) == 2
    assert pagination["itemsPerPage"] == 5
    assert pagination["hasNext"] is False

    r = client.get("/api/users", params={"page": 9})
    assert r.json()["data"] == []


def test_users_search(client, db_session):
    crud.create_user(db_session, schemas.UserCreate(name="Ravi", email="ravi@example.com", password="secret1"))
    crud.create_user(db_session, schemas.UserCreate(name="Kiran", phone="9988776655", password="secret1"))

    r = client.get("/api/users", params={"searchTerm": "ravi"})
    assert [u["name"] for u in r.json()["data"]] == ["Ravi"]

    r = client.get("/api/users", params={"searchTerm": "9988776655"})
    assert [u["name"] for u in r.json()["data"]] == ["Kiran"]


def test_invalid_pagination_is_validation_error(client):
    r = client.get("/api/users", params={"limit": 0})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["type"] == "ValidationError"
    assert error["details"][0]["field"] == "limit"


def test_admin_creates_user(client, admin_headers, member_headers):
    payload = {"name": "Nila", "email": "nila@example.com", "password": "nilapass"}
    r = client.post("/api/users/create", json=payload, headers=member_headers)
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Admin resource. Access denied."

    r = client.post("/api/users/create", json=payload, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["data"]["email"] == "nila@example.com"
    assert r.json()["data"]["role"] == "subscriber"


def test_user_crud(client, member_user):
    r = client.get(f"/api/users/{member_user.id}")
    assert r.status_code == 200
    assert r.json()["data"]["email"] == "meera@example.com"
    assert "createdAt" in r.json()["data"]

    r = client.put(f"/api/users/{member_user.id}", json={"password": "123"})
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Password must be at least 6 characters"

    r = client.put("/api/users/9999", json={"name": "Ghost"})
    assert r.status_code == 404

    r = client.delete(f"/api/users/{member_user.id}")
    assert r.status_code == 200
    assert r.json()["message"] == "User deleted"

    r = client.get(f"/api/users/{member_user.id}")
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "User not found"
    assert r.json()["error"]["type"] == "NotFoundError"


def test_unknown_route(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["error"]["message"] == "Route /api/does-not-exist not found"
    assert body["error"]["type"] == "NotFoundError"


def test_malformed_id_is_cast_error(client):
    r = client.get("/api/users/abc")
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "CastError"
    assert r.json()["error"]["message"] == "Invalid user_id: abc"


def test_production_masks_messages(make_client):
    with make_client(environment="production") as c:
        r = c.get("/api/users/abc")
        assert r.status_code == 400
        assert r.json() == {"success": False, "error": {"message": "Invalid data format", "type": "CastError"}}

        r = c.get("/api/does-not-exist")
        assert r.json()["error"] == {"message": "Route /api/does-not-exist not found", "type": "NotFoundError"}

        r = c.post("/api/expense", json={"customer": "Acme"})
        assert r.status_code == 400
        error = r.json()["error"]
        assert error["message"] == "Invalid input data"
        assert "stack" not in error
        assert {d["field"] for d in error["details"]} >= {"product", "packagingQty"}


def test_development_includes_stack(client):
    r = client.get("/api/users/abc")
    assert "stack" in r.json()["error"]


def test_oversized_json_body(make_client):
    with make_client(max_body_bytes=64) as c:
        r = c.post("/api/roles", json={"name": "Admin", "description": "x" * 200})
        assert r.status_code == 413
        assert r.json()["error"]["type"] == "PayloadTooLargeError"


def test_oversized_integers_are_cast_errors(client):
    r = client.get("/api/users/99999999999999999999")
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "CastError"

    r = client.get("/api/users", params={"page": 10**19})
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "CastError"


def test_each_app_keeps_its_own_login_limit(make_client):
    with make_client(login_rate_limit="1/minute") as strict, make_client() as relaxed:
        assert _login(strict, path="/api/generic").status_code == 200
        assert _login(strict, path="/api/generic").status_code == 429

        # a second app in the same process has its own limit and counters
        for _ in range(3):
            assert _login(relaxed, path="/api/generic").status_code == 200


def test_rate_limit_can_be_disabled(make_client):
    with make_client(login_rate_limit="1/minute", rate_limit_enabled=False) as c:
        for _ in range(3):
            assert _login(c, path="/api/generic").status_code == 200


def test_only_admins_change_roles(client, member_user, member_headers, admin_headers):
    r = client.put(f"/api/users/{member_user.id}", json={"role": "admin"})
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "ForbiddenError"

    r = client.put(f"/api/users/{member_user.id}", json={"role": "admin"}, headers=member_headers)
    assert r.status_code == 403
    assert client.get(f"/api/users/{member_user.id}").json()["data"]["role"] == "subscriber"

    r = client.put(f"/api/users/{member_user.id}", json={"role": "admin"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["role"] == "admin"


def test_profile_update_with_bad_token_is_rejected(client, member_user):
    r = client.put(f"/api/users/{member_user.id}", json={"name": "Meera K"}, headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
