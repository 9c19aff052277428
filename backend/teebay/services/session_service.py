# Overview: Bearer session tokens and request identity resolution.

"""
Session tokens.

A login hands the client 32 random bytes (hex encoded); the server keeps only
their SHA-256 digest. A token authenticates until the first of:
- SESSION_ABSOLUTE_TIMEOUT after issue
- SESSION_IDLE_TIMEOUT without use (the record is revoked when noticed)
- logout
"""

import hashlib
import re
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from ..models import SessionToken
from ..time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)

BEARER_RE = re.compile(r"^Bearer\s+(\S+)\s*$", re.IGNORECASE)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is enough.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_record(session: Session, token: str) -> SessionToken | None:
    return (
        session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def create_session(
    session: Session,
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a token for user_id.

    Returns (record, token). The plaintext token exists only in the return
    value; it cannot be recovered from the database later.
    """
    token = generate_token()
    issued = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued,
        last_used_at=issued,
        expires_at=issued + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    session.add(record)
    session.commit()
    return record, token


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason


def validate_session(session: Session, token: str) -> SessionToken | None:
    """
    The live record for token, with last_used_at touched, or None.

    An idle record is revoked on the way out so it cannot come back.
    """
    record = _live_record(session, token)
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None
    if now - record.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(record, "Idle timeout")
        session.commit()
        return None

    record.last_used_at = now
    session.commit()
    return record


def extract_bearer_token(authorization_header: str | None) -> str | None:
    match = BEARER_RE.match((authorization_header or "").strip())
    return match.group(1) if match else None


def resolve_user_id(session: Session, authorization_header: str | None) -> int | None:
    """
    Map an Authorization header to a user id.

    Missing, malformed, expired or revoked credentials resolve to None
    (anonymous) instead of raising, so optional-auth reads keep working.
    """
    token = extract_bearer_token(authorization_header)
    if token is None:
        return None
    record = validate_session(session, token)
    return record.user_id if record else None


def revoke_session(session: Session, token: str, reason: str = "User logout") -> bool:
    """False when the token is unknown or already revoked."""
    record = _live_record(session, token)
    if record is None:
        return False
    _revoke(record, reason)
    session.commit()
    return True


def cleanup_expired_sessions(session: Session, *, retention_days: int = 30) -> int:
    """Delete dead (expired or revoked) records issued more than retention_days ago."""
    now = utcnow()
    deleted = session.query(SessionToken).filter(
        (SessionToken.expires_at < now) | SessionToken.is_revoked.is_(True),
        SessionToken.created_at < now - timedelta(days=retention_days),
    ).delete(synchronize_session=False)
    session.commit()
    return deleted
