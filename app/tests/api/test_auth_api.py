from app.services.identity_service import IdentityProvider


def create(db, email="erin@example.org", password="secret123", role="ngo"):
    return IdentityProvider(db).create_user(
        email=email,
        password=password,
        user_metadata={"full_name": "Erin", "role": role, "organization_name": "Shelter"},
    )


def test_login_session_logout(client, db):
    create(db)

    r = client.post("/api/v1/auth/login", json={"email": "Erin@example.org", "password": "secret123"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    assert r.json()["user"]["role"] == "ngo"
    headers = {"Authorization": f"Bearer {token}"}

    r = client.get("/api/v1/auth/session", headers=headers)
    assert r.status_code == 200
    assert r.json()["email"] == "erin@example.org"
    assert r.json()["profile"]["organization_name"] == "Shelter"

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200

    r = client.get("/api/v1/auth/session", headers=headers)
    assert r.status_code == 401


def test_login_wrong_password(client, db):
    create(db)
    r = client.post("/api/v1/auth/login", json={"email": "erin@example.org", "password": "nope-nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid login credentials"


def test_unconfirmed_account_cannot_login(client, db):
    IdentityProvider(db).create_user(
        email="frank@example.org",
        password="secret123",
        user_metadata={"role": "donor"},
        require_email_confirmation=True,
    )
    r = client.post("/api/v1/auth/login", json={"email": "frank@example.org", "password": "secret123"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Email not confirmed"


def test_garbage_token_rejected(client):
    r = client.get("/api/v1/auth/session", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_missing_token_rejected(client):
    r = client.get("/api/v1/auth/session")
    assert r.status_code in (401, 403)
