"""
Configuration management for the ordering portal
"""
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional, Set

from app.utils.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Internal Ordering Portal"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Required at start-up: database, object storage root, URL signing key
    database_url: str
    file_storage_root: str
    url_signing_secret: str

    # Authentication
    initial_admin_email: str = ""
    initial_admin_password: str = ""
    session_duration_hours: int = 72

    # Comma-separated emails that are always treated as admins
    access_admin_emails: str = ""
    # Optional second factor for allowlist administration (X-Admin-Password)
    access_admin_password: Optional[str] = None

    # Storage buckets (sub-directories of file_storage_root)
    product_images_bucket: str = "product-images"
    product_files_bucket: str = "product-files"
    order_confirmations_bucket: str = "order-confirmations"

    # Signed URLs (seconds)
    signed_url_default_expires: int = 600
    signed_url_min_expires: int = 60
    signed_url_max_expires: int = 3600
    order_confirmation_expires: int = 600

    # Product import
    import_chunk_size: int = 500
    import_atomic: bool = False

    @field_validator("database_url", "file_storage_root", "url_signing_secret")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @property
    def admin_email_set(self) -> Set[str]:
        return {
            e.strip().lower()
            for e in self.access_admin_emails.split(",")
            if e.strip()
        }

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance; missing required values are fatal"""
    try:
        return Settings()
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError("Invalid configuration", details={"fields": fields}) from e
