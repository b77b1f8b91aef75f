"""Authentication service: password hashing, bearer sessions, roles and the email allowlist"""
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.models.user import (
    AllowedEmail, User, UserSession, ROLES, ROLE_ADMIN, ROLE_CUSTOMER,
)
from app.config import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


@dataclass
class Principal:
    """Authenticated caller. ``role`` is None when the email is not allowlisted."""
    user_id: int
    email: str
    role: Optional[str]
    display_name: Optional[str] = None

    @property
    def is_allowed(self) -> bool:
        return self.role is not None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def normalize_email(value) -> str:
    return str(value or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and "@" in email and " " not in email


def normalize_role(value) -> Optional[str]:
    role = str(value or "").strip().lower()
    return role if role in ROLES else None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    m = _BEARER.match(authorization or "")
    if not m:
        return None
    return m.group(1).strip() or None


def authenticate(db: Session, email: str, password: str) -> User | None:
    """Verify credentials and return user, or None."""
    user = db.query(User).filter(User.email == normalize_email(email), User.is_active == True).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    user.last_login = datetime.utcnow()
    db.commit()
    return user


def create_session(db: Session, user_id: int) -> str:
    """Create a new bearer token for the user."""
    settings = get_settings()
    token = secrets.token_hex(32)
    session = UserSession(
        user_id=user_id,
        token=token,
        expires_at=datetime.utcnow() + timedelta(hours=settings.session_duration_hours),
    )
    db.add(session)
    db.commit()
    return token


def validate_session(db: Session, token: str) -> User | None:
    """Return the user for a valid, non-expired token."""
    session = (
        db.query(UserSession)
        .filter(UserSession.token == token, UserSession.expires_at > datetime.utcnow())
        .first()
    )
    if not session:
        return None
    user = db.query(User).filter(User.id == session.user_id, User.is_active == True).first()
    return user


def delete_session(db: Session, token: str) -> None:
    """Remove a session (logout)."""
    db.query(UserSession).filter(UserSession.token == token).delete()
    db.commit()


def cleanup_expired(db: Session) -> int:
    """Delete expired sessions. Returns count removed."""
    count = db.query(UserSession).filter(UserSession.expires_at <= datetime.utcnow()).delete()
    db.commit()
    return count


def create_user(db: Session, email: str, password: str, display_name: str | None = None) -> User:
    """Create a new user account."""
    user = User(
        email=normalize_email(email),
        password_hash=hash_password(password),
        display_name=display_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def seed_initial_user(db: Session) -> None:
    """Create the first admin user (and allowlist entry) from env vars if no users exist."""
    settings = get_settings()
    if not settings.initial_admin_email or not settings.initial_admin_password:
        return
    if db.query(User).first():
        return
    user = create_user(db, settings.initial_admin_email, settings.initial_admin_password, "Admin")
    upsert_allowed(db, user.email, "Admin", ROLE_ADMIN)
    from app.utils.logger import log
    log.info(f"Seeded initial admin user: {user.email}")


# ── Roles / allowlist ────────────────────────────────────────

def resolve_principal(db: Session, user: User) -> Principal:
    """Attach the allowlist role; env-listed admin emails are always admin."""
    email = normalize_email(user.email)
    entry = db.query(AllowedEmail).filter(AllowedEmail.email == email).first()
    role = (normalize_role(entry.role) or ROLE_CUSTOMER) if entry else None
    if email in get_settings().admin_email_set:
        role = ROLE_ADMIN
    display_name = (entry.display_name if entry else None) or user.display_name
    return Principal(
        user_id=user.id,
        email=email,
        role=role,
        display_name=(display_name or "").strip() or None,
    )


def principal_for_token(db: Session, token: str) -> Principal | None:
    user = validate_session(db, token)
    if not user:
        return None
    return resolve_principal(db, user)


def list_allowed(db: Session) -> List[AllowedEmail]:
    return db.query(AllowedEmail).order_by(AllowedEmail.created_at.desc(), AllowedEmail.id.desc()).all()


def upsert_allowed(db: Session, email: str, display_name: str | None, role: str) -> AllowedEmail:
    """Insert or replace the allowlist entry for ``email``."""
    entry = db.query(AllowedEmail).filter(AllowedEmail.email == email).first()
    if entry:
        entry.display_name = display_name or None
        entry.role = role
    else:
        entry = AllowedEmail(email=email, display_name=display_name or None, role=role)
        db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def update_allowed(db: Session, email: str, patch: dict) -> bool:
    """Apply a partial update. Returns False when the email is not listed."""
    entry = db.query(AllowedEmail).filter(AllowedEmail.email == email).first()
    if not entry:
        return False
    for key, value in patch.items():
        setattr(entry, key, value)
    db.commit()
    return True


def delete_allowed(db: Session, email: str) -> int:
    count = db.query(AllowedEmail).filter(AllowedEmail.email == email).delete()
    db.commit()
    return count
