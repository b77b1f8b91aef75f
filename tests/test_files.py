"""
Signed URLs, signed object download, local file serving and storage paths.
"""
import os
import re
from pathlib import Path

import jwt
import pytest

from conftest import make_product
from app.config import get_settings
from app.models.order import Order
from app.services.storage_service import (
    StorageService,
    clean_relative_path,
    product_file_path,
    product_image_path,
    product_thumb_path,
    safe_resolve,
)
from app.utils.errors import AuthenticationError, InvalidRequestError


def _put(root: str, bucket: str, rel: str, content: bytes = b"data") -> None:
    path = Path(root) / bucket / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def test_storage_paths():
    assert re.fullmatch(r"products/7/images/\d+_front_view.jpg", product_image_path(7, "front view.jpg"))
    assert re.fullmatch(r"products/7/thumb/\d+_t.png", product_thumb_path(7, "t.png"))
    assert re.fullmatch(r"products/7/files/\d+_FDV_doc.pdf", product_file_path(7, "FDV doc.pdf"))


def test_clean_relative_path():
    assert clean_relative_path("\\products\\1\\a.pdf") == "products/1/a.pdf"
    assert clean_relative_path("//a/b") == "a/b"


def test_safe_resolve_stays_inside_root(tmp_path):
    assert safe_resolve(str(tmp_path), "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()
    with pytest.raises(InvalidRequestError):
        safe_resolve(str(tmp_path), "../outside.txt")
    with pytest.raises(InvalidRequestError):
        safe_resolve(str(tmp_path), "a/../../outside.txt")
    with pytest.raises(InvalidRequestError):
        safe_resolve(str(tmp_path), "")


def test_expiry_is_clamped():
    storage = StorageService(get_settings())
    assert storage.clamp_expires(None) == 600
    assert storage.clamp_expires("abc") == 600
    assert storage.clamp_expires("5") == 60
    assert storage.clamp_expires("100000") == 3600
    assert storage.clamp_expires("900") == 900
    assert storage.clamp_expires("inf") == 3600
    assert storage.clamp_expires("Infinity") == 3600
    assert storage.clamp_expires("1e999") == 3600
    assert storage.clamp_expires("-inf") == 600
    assert storage.clamp_expires("nan") == 600


def test_tampered_or_expired_tokens_are_rejected(storage_root):
    settings = get_settings()
    storage = StorageService(settings)
    _put(storage_root, "product-files", "docs/x.pdf")
    url = storage.create_signed_url("product-files", "docs/x.pdf", 60)
    token = url.split("token=")[1]

    with pytest.raises(AuthenticationError):
        storage.verify_signed(token, "product-files", "docs/other.pdf")
    with pytest.raises(AuthenticationError):
        storage.verify_signed(token + "x", "product-files", "docs/x.pdf")

    expired = jwt.encode(
        {"bucket": "product-files", "path": "docs/x.pdf", "download": False, "exp": 1},
        settings.url_signing_secret,
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError):
        storage.verify_signed(expired, "product-files", "docs/x.pdf")


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def test_signed_url_round_trip(client, storage_root, customer_headers):
    _put(storage_root, "product-files", "products/1/files/manual.pdf", b"%PDF-1.4")

    resp = client.get(
        "/api/files/signed-url",
        params={"bucket": "product-files", "path": "products/1/files/manual.pdf", "expires": "120"},
        headers=customer_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["expires_in"] == 120
    url = resp.json()["url"]

    # No bearer header: the token in the URL is enough
    obj = client.get(url)
    assert obj.status_code == 200
    assert obj.content == b"%PDF-1.4"
    assert obj.headers["content-type"].startswith("application/pdf")
    assert obj.headers["content-disposition"].startswith("inline")

    forged = url.replace("manual.pdf", "other.pdf")
    assert client.get(forged).status_code == 401


def test_signed_url_download_flag(client, storage_root, customer_headers):
    _put(storage_root, "product-images", "i/1.jpg")
    resp = client.get(
        "/api/files/signed-url",
        params={"bucket": "product-images", "path": "i/1.jpg", "download": "1"},
        headers=customer_headers,
    )
    obj = client.get(resp.json()["url"])
    assert obj.headers["content-disposition"].startswith("attachment")


def test_signed_url_with_unbounded_expiry(client, storage_root, customer_headers):
    _put(storage_root, "product-images", "i/big.jpg")
    for raw in ("inf", "Infinity", "1e999"):
        resp = client.get(
            "/api/files/signed-url",
            params={"bucket": "product-images", "path": "i/big.jpg", "expires": raw},
            headers=customer_headers,
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["expires_in"] == 3600


def test_signed_url_errors(client, db, customer_headers):
    def get(params, headers=customer_headers):
        return client.get("/api/files/signed-url", params=params, headers=headers)

    assert get({"bucket": "order-confirmations", "path": "x.pdf"}).status_code == 400
    assert get({"bucket": "", "path": "x.pdf"}).status_code == 400
    assert get({"bucket": "product-files", "path": " "}).status_code == 400
    assert get({"bucket": "product-files", "path": "missing.pdf"}).status_code == 404
    assert get({"bucket": "product-files", "path": "x.pdf"}, headers={}).status_code == 401


def test_local_file(client, storage_root, customer_headers):
    _put(storage_root, "", "notes/readme.txt", b"hei")
    resp = client.get("/api/local-file/notes/readme.txt", headers=customer_headers)
    assert resp.status_code == 200
    assert resp.content == b"hei"
    assert resp.headers["cache-control"] == "private, max-age=60"
    assert resp.headers["vary"] == "Authorization"
    assert resp.headers["content-disposition"].startswith("attachment")

    assert client.get("/api/local-file/notes/readme.txt").status_code == 401
    assert client.get("/api/local-file/notes/missing.txt", headers=customer_headers).status_code == 404


def test_order_confirmation_url_owner_only(client, db, storage_root, customer_headers, purchaser_headers):
    a1 = make_product(db, "A1")
    order = client.post(
        "/orders",
        json={"project_name": "P", "contact_name": "C", "delivery_address": "A",
              "items": [{"product_id": a1.id, "qty": 1}]},
        headers=customer_headers,
    ).json()["order"]
    url = f"/orders/{order['id']}/confirmation-url"

    assert client.get(url, headers=customer_headers).status_code == 404

    rel = os.path.join("orders", str(order["id"]), "confirmation.pdf").replace(os.sep, "/")
    _put(storage_root, "order-confirmations", rel, b"%PDF")
    db.query(Order).filter(Order.id == order["id"]).update({"confirmation_file_path": rel})
    db.commit()

    resp = client.get(url, headers=customer_headers)
    assert resp.status_code == 200
    assert client.get(resp.json()["url"]).content == b"%PDF"

    assert client.get(url, headers=purchaser_headers).status_code == 403
