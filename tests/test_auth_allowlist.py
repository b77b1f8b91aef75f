"""
Login, current-user lookup and allowlist administration.
"""
from conftest import auth_headers, make_user
from app.models.user import AllowedEmail, UserSession
from app.services import auth_service


ALLOWLIST_URL = "/api/admin/allowlist"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_bearer_token_parsing():
    assert auth_service.bearer_token("Bearer abc") == "abc"
    assert auth_service.bearer_token("bearer   abc ") == "abc"
    assert auth_service.bearer_token("Basic abc") is None
    assert auth_service.bearer_token("Bearer ") is None
    assert auth_service.bearer_token(None) is None


def test_email_and_role_normalization():
    assert auth_service.normalize_email("  Ola@Example.COM ") == "ola@example.com"
    assert auth_service.is_valid_email("ola@example.com")
    assert not auth_service.is_valid_email("ola example.com")
    assert not auth_service.is_valid_email("ola @example.com")
    assert auth_service.normalize_role(" Purchaser ") == "purchaser"
    assert auth_service.normalize_role("owner") is None


# ---------------------------------------------------------------------------
# Login / me
# ---------------------------------------------------------------------------

def test_login_me_logout(client, db):
    auth_service.create_user(db, "Ola@Example.com", "hemmelig", "Ola")
    db.add(AllowedEmail(email="ola@example.com", role="purchaser"))
    db.commit()

    resp = client.post("/auth/login", json={"email": "ola@example.com", "password": "hemmelig"})
    assert resp.status_code == 200, resp.text
    token = resp.json()["token"]
    assert resp.json()["role"] == "purchaser"
    headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json() == {"ok": True, "email": "ola@example.com", "role": "purchaser", "display_name": "Ola"}

    assert client.post("/auth/logout", headers=headers).json() == {"ok": True}
    db.expire_all()
    assert db.query(UserSession).count() == 0
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_wrong_password(client, db):
    auth_service.create_user(db, "ola@example.com", "hemmelig")
    resp = client.post("/auth/login", json={"email": "ola@example.com", "password": "feil"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthenticated"


def test_me_denied_when_not_allowlisted(client, db):
    headers = auth_headers(db, "fremmed@example.com", role=None)
    resp = client.get("/auth/me", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["details"] == {"denied": True}

    assert client.post("/auth/ensure-allowed", headers=headers).status_code == 403


def test_allowlisted_user_defaults_to_customer_name_from_entry(client, db):
    user = make_user(db, "kari@example.com", role=None, display_name="Kari")
    db.add(AllowedEmail(email="kari@example.com", role="", display_name="Kari K."))
    db.commit()
    token = auth_service.create_session(db, user.id)

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.json()["role"] == "customer"
    assert resp.json()["display_name"] == "Kari K."


def test_public_paths_need_no_token(client):
    assert client.get("/health").status_code == 200
    assert client.get("/robots.txt").status_code == 200
    assert client.get("/status").status_code == 401


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["X-Robots-Tag"] == "noindex, nofollow"
    assert resp.headers["Cache-Control"] == "private, no-cache"


# ---------------------------------------------------------------------------
# Allowlist administration
# ---------------------------------------------------------------------------

def test_allowlist_requires_admin(client, customer_headers):
    resp = client.get(ALLOWLIST_URL, headers=customer_headers)
    assert resp.status_code == 403


def test_allowlist_crud(client, admin_headers, db):
    resp = client.post(
        ALLOWLIST_URL,
        json={"email": " Ny@Example.com ", "display_name": " Ny Bruker ", "role": "bogus"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text

    db.expire_all()
    entry = db.query(AllowedEmail).filter(AllowedEmail.email == "ny@example.com").one()
    assert entry.role == "customer"
    assert entry.display_name == "Ny Bruker"

    listed = client.get(ALLOWLIST_URL, headers=admin_headers).json()["rows"]
    assert {r["email"] for r in listed} == {"admin@example.com", "ny@example.com"}

    resp = client.patch(ALLOWLIST_URL, json={"email": "ny@example.com", "role": "purchaser"}, headers=admin_headers)
    assert resp.status_code == 200
    db.expire_all()
    entry = db.query(AllowedEmail).filter(AllowedEmail.email == "ny@example.com").one()
    assert entry.role == "purchaser"
    assert entry.display_name == "Ny Bruker"

    resp = client.delete(ALLOWLIST_URL, params={"email": "NY@example.com"}, headers=admin_headers)
    assert resp.status_code == 200
    db.expire_all()
    assert db.query(AllowedEmail).filter(AllowedEmail.email == "ny@example.com").count() == 0


def test_allowlist_post_replaces_existing(client, admin_headers, db):
    client.post(ALLOWLIST_URL, json={"email": "x@example.com", "role": "purchaser"}, headers=admin_headers)
    client.post(ALLOWLIST_URL, json={"email": "x@example.com", "role": "admin"}, headers=admin_headers)
    db.expire_all()
    assert db.query(AllowedEmail).filter(AllowedEmail.email == "x@example.com").one().role == "admin"


def test_allowlist_rejects_bad_input(client, admin_headers, db):
    def code(resp):
        return resp.status_code, resp.json()["code"]

    assert code(client.post(ALLOWLIST_URL, json={"email": "no-at-sign"}, headers=admin_headers)) == (400, "invalid_body")
    client.post(ALLOWLIST_URL, json={"email": "x@example.com"}, headers=admin_headers)

    assert code(client.patch(ALLOWLIST_URL, json={"email": "x@example.com", "role": "owner"},
                             headers=admin_headers)) == (400, "invalid_body")
    resp = client.patch(ALLOWLIST_URL, json={"email": "x@example.com"}, headers=admin_headers)
    assert code(resp) == (400, "invalid_body")
    assert resp.json()["error"] == "Nothing to update"
    assert code(client.patch(ALLOWLIST_URL, json={"email": "missing@example.com", "role": "admin"},
                             headers=admin_headers)) == (404, "not_found")
    assert code(client.delete(ALLOWLIST_URL, headers=admin_headers)) == (400, "invalid_body")


def test_allowlist_admin_password(client, admin_headers, monkeypatch):
    from app.config import get_settings
    monkeypatch.setattr(get_settings(), "access_admin_password", "s3cret")

    assert client.get(ALLOWLIST_URL, headers=admin_headers).status_code == 401
    resp = client.get(ALLOWLIST_URL, headers={**admin_headers, "X-Admin-Password": "s3cret"})
    assert resp.status_code == 200
