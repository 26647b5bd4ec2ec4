# tests/test_auth.py
from conftest import register, login


def test_register_user_success(client):
    response = client.post("/api/register", json={
        "username": "test_user",
        "password": "secret123",
        "email": "Test@Example.com",
        "phoneNumber": "+15550100"
    })

    assert response.status_code == 200
    assert response.json()["message"] == "User created!"


def test_register_user_duplicate_username(client):
    register(client, "user1")

    response = client.post("/api/register", json={"username": "user1", "password": "other"})

    assert response.status_code == 400
    assert "already exists" in response.json()["detail"]


def test_register_duplicate_email_is_case_insensitive(client):
    register(client, "user1", email="Same@Example.com")

    response = client.post("/api/register", json={"username": "user2", "password": "x", "email": "same@example.com"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_register_duplicate_phone(client):
    register(client, "user1", phoneNumber="+15550100")

    response = client.post("/api/register", json={"username": "user2", "password": "x", "phoneNumber": "+15550100"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Phone number already registered"


def test_login_returns_token(client):
    register(client, "alice")

    response = client.post("/api/login", json={"username": "alice", "password": "secret123"})

    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "alice"
    assert data["token"]


def test_login_invalid_credentials(client):
    register(client, "alice")

    wrong_password = client.post("/api/login", json={"username": "alice", "password": "nope"})
    unknown_user = client.post("/api/login", json={"username": "ghost", "password": "secret123"})

    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401
    assert wrong_password.json()["detail"] == "Invalid credentials"


def test_protected_route_requires_token(client):
    response = client.get("/api/users")

    assert response.status_code == 401
    assert response.json()["detail"] == "Access denied"


def test_protected_route_rejects_bad_token(client):
    response = client.get("/api/users", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 403
    assert response.json()["detail"] == "Invalid token"


def test_token_grants_access(client):
    register(client, "alice")
    token = login(client, "alice")

    response = client.get("/api/user-settings", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["displayName"] == "alice"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
