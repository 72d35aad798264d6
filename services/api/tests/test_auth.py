"""Auth gate: bearer JWT -> user -> household."""

import time

from jose import jwt

from hearth.models import User
from hearth.settings import settings


def test_ready_needs_no_auth(client):
    response = client.get("/api/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["redisOk"] is True


def test_missing_header_is_401(client, user):
    response = client.get("/api/themes/")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_non_bearer_header_is_401(client, user):
    response = client.get("/api/themes/", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401


def test_bad_signature_is_401(client, user):
    token = jwt.encode({"email": user.email}, "not-the-secret", algorithm="HS256")
    response = client.get("/api/themes/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_expired_token_is_401(client, user):
    token = jwt.encode(
        {"email": user.email, "exp": int(time.time()) - 60},
        settings.auth_secret,
        algorithm="HS256",
    )
    response = client.get("/api/themes/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_token_without_email_is_401(client, user):
    token = jwt.encode({"sub": user.id}, settings.auth_secret, algorithm="HS256")
    response = client.get("/api/themes/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert "email" in response.json()["detail"]


def test_unknown_user_is_401(client, household, headers_for):
    ghost = User(email="ghost@example.com")
    response = client.get("/api/themes/", headers=headers_for(ghost))
    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


def test_user_without_household_is_403(client, db_session, headers_for):
    loner = User(email="loner@example.com")
    db_session.add(loner)
    db_session.commit()

    response = client.get("/api/themes/", headers=headers_for(loner))
    assert response.status_code == 403


def test_valid_token_reaches_route(client, headers):
    response = client.get("/api/themes/", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"data": []}


def test_default_rate_limit_applies_without_decorator(client, monkeypatch):
    from slowapi import Limiter
    from slowapi.util import get_remote_address

    from hearth.main import app

    monkeypatch.setattr(app.state, "limiter", Limiter(key_func=get_remote_address, default_limits=["2/minute"]))
    assert client.get("/api/ready").status_code == 200
    assert client.get("/api/ready").status_code == 200
    assert client.get("/api/ready").status_code == 429
