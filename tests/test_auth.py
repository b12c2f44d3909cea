# File: tests/test_auth.py

from uservoice.core.security import make_email_token, make_tokens
from uservoice.models.project import ProjectMember
from uservoice.models.user import User
from conftest import PASSWORD


def _register(client, email="carol@company.com", name="Carol White", password="supersecret"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert "timestamp" in body


def test_register_then_verify_joins_default_project(client, db, default_project):
    resp = _register(client)
    assert resp.status_code == 201
    assert resp.json()["email"] == "carol@company.com"

    user = db.query(User).filter(User.email == "carol@company.com").one()
    assert user.is_verified is False
    code = user.email_verify_code

    wrong = "000000" if code != "000000" else "111111"
    resp = client.post("/api/auth/verify-code", json={"email": "carol@company.com", "code": wrong})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid verification code"

    resp = client.post("/api/auth/verify-code", json={"email": "carol@company.com", "code": code})
    assert resp.status_code == 200
    body = resp.json()
    assert body["access_token"] and body["refresh_token"]
    assert body["user"]["role"] == "employee"
    assert body["user"]["is_verified"] is True

    db.expire_all()
    member = db.query(ProjectMember).filter(ProjectMember.user_id == user.id).one()
    assert member.project_id == default_project.id


def test_register_rejects_existing_verified_email(client, employee):
    resp = _register(client, email=employee.email)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already registered"


def test_register_validation_errors_are_400(client):
    resp = _register(client, password="short")
    assert resp.status_code == 400
    assert "password" in resp.json()["detail"]


def test_login_success_and_failures(client, employee):
    resp = client.post("/api/auth/login", json={"email": employee.email, "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Invalid email or password"}

    resp = client.post("/api/auth/login", json={"email": employee.email, "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == employee.email


def test_login_requires_verified_email(client, make_user):
    user = make_user("dave@company.com", "Dave Brown", is_verified=False)
    resp = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 403


def test_me_requires_token(client, employee, headers):
    assert client.get("/api/auth/me").status_code == 401
    resp = client.get("/api/auth/me", headers=headers(employee))
    assert resp.status_code == 200
    assert resp.json()["name"] == "Alice Smith"


def test_refresh_only_accepts_refresh_tokens(client, employee):
    tokens = make_tokens(employee.email, employee.role.value)
    assert client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]}).status_code == 401

    resp = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert set(resp.json()) == {"access_token", "refresh_token", "token_type", "expires_in"}


def test_access_token_cannot_be_a_refresh_token(client, employee):
    refresh = make_tokens(employee.email, employee.role.value)["refresh_token"]
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh}"})
    assert resp.status_code == 401


def test_forgot_password_does_not_leak_accounts(client):
    resp = client.post("/api/auth/forgot-password", json={"email": "nobody@company.com"})
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_reset_password_with_emailed_token(client, employee):
    token = make_email_token(employee.email, "reset")
    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert resp.status_code == 200

    resp = client.post("/api/auth/login", json={"email": employee.email, "password": "brand-new-pass"})
    assert resp.status_code == 200


def test_reset_password_rejects_wrong_purpose(client, employee):
    token = make_email_token(employee.email, "verify")
    resp = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert resp.status_code == 400


def test_two_step_password_change(client, db, employee, headers):
    resp = client.post(
        "/api/auth/password/request-change",
        json={"old_password": "nope-nope", "new_password": "another-pass"},
        headers=headers(employee),
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/auth/password/request-change",
        json={"old_password": PASSWORD, "new_password": "another-pass"},
        headers=headers(employee),
    )
    assert resp.status_code == 200

    db.expire_all()
    code = db.get(User, employee.id).password_change_code
    resp = client.post("/api/auth/password/change", json={"code": code}, headers=headers(employee))
    assert resp.status_code == 200

    resp = client.post("/api/auth/login", json={"email": employee.email, "password": "another-pass"})
    assert resp.status_code == 200
