"""
Settings validation and the admin status endpoint.
"""
import pytest
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.utils.errors import ConfigurationError


REQUIRED = {
    "database_url": "sqlite://",
    "file_storage_root": "/tmp/files",
    "url_signing_secret": "secret",
}


def test_required_values_are_trimmed():
    settings = Settings(_env_file=None, **{k: f"  {v} " for k, v in REQUIRED.items()})
    assert settings.database_url == "sqlite://"
    assert settings.url_signing_secret == "secret"


@pytest.mark.parametrize("field", sorted(REQUIRED))
def test_blank_required_value_is_rejected(field):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{**REQUIRED, field: "   "})


def test_admin_email_set():
    settings = Settings(_env_file=None, access_admin_emails=" A@x.no, ,b@x.no ", **REQUIRED)
    assert settings.admin_email_set == {"a@x.no", "b@x.no"}


def test_missing_environment_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("URL_SIGNING_SECRET")
    get_settings.cache_clear()
    try:
        with pytest.raises(ConfigurationError) as exc:
            get_settings()
        assert exc.value.code == "configuration"
        assert exc.value.status_code == 500
        assert "url_signing_secret" in exc.value.details["fields"]
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()


def test_status_is_admin_only(client, customer_headers, admin_headers):
    assert client.get("/status", headers=customer_headers).status_code == 403

    body = client.get("/status", headers=admin_headers).json()
    assert body["database"] == "ok"
    assert body["products"] == 0
    assert body["import"] == {"chunk_size": 500, "atomic": False}
