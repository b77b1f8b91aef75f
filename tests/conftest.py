"""
Shared fixtures.

Environment is set before any app module is imported: settings are cached
and the engine is built at import time. The database is SQLite in-memory
(one shared connection), recreated for every test.
"""
import os
import tempfile

_STORAGE_ROOT = tempfile.mkdtemp(prefix="portal-files-")

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["FILE_STORAGE_ROOT"] = _STORAGE_ROOT
os.environ["URL_SIGNING_SECRET"] = "test-signing-secret"
os.environ["LOG_TO_FILE"] = "false"
os.environ["ACCESS_ADMIN_EMAILS"] = "boss@example.com"
os.environ.pop("ACCESS_ADMIN_PASSWORD", None)
os.environ.pop("INITIAL_ADMIN_EMAIL", None)

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401  (populate metadata)
from app.models.base import Base, SessionLocal, engine
from app.models.product import Product
from app.models.user import AllowedEmail, User
from app.services import auth_service


@pytest.fixture
def storage_root():
    return _STORAGE_ROOT


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from app.main import app
    return TestClient(app)


def make_user(db, email: str, role: str | None = "customer", display_name: str | None = None) -> User:
    """User with an unusable password; ``role=None`` leaves them off the allowlist."""
    user = User(email=email, password_hash="!", display_name=display_name)
    db.add(user)
    if role is not None:
        db.add(AllowedEmail(email=email, role=role))
    db.commit()
    db.refresh(user)
    return user


def auth_headers(db, email: str, role: str | None = "customer", display_name: str | None = None) -> dict:
    user = make_user(db, email, role, display_name)
    token = auth_service.create_session(db, user.id)
    return {"Authorization": f"Bearer {token}"}


def make_product(db, product_no: str, name: str | None = None, list_price: float | None = None,
                 is_active: bool = True, thumb_path: str | None = None) -> Product:
    product = Product(
        product_no=product_no,
        product_no_key=product_no.upper(),
        name=name,
        list_price=list_price,
        is_active=is_active,
        thumb_path=thumb_path,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def admin_headers(db):
    return auth_headers(db, "admin@example.com", "admin", "Admin")


@pytest.fixture
def customer_headers(db):
    return auth_headers(db, "kunde@example.com", "customer", "Kari Kunde")


@pytest.fixture
def purchaser_headers(db):
    return auth_headers(db, "innkjop@example.com", "purchaser", "Per Innkjøp")
