# Overview: Account registration and credential checks.

"""
Accounts and passwords.

Passwords are stored as bcrypt digests (12 rounds) and must satisfy
PASSWORD_RULES before they are hashed. Bearer tokens are issued by
session_service once a caller has been authenticated here.
"""

import logging
import re

import bcrypt
from sqlalchemy.orm import Session

from ..errors import AuthenticationError, ConflictError, ValidationError
from ..models import User
from ..validation import validate_email

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

REQUIRED_PROFILE_FIELDS = ("first_name", "last_name", "address", "phone_number")

PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one digit"),
    (re.compile(r"[!@#$%^&*(),.'\":{}|<>]"), "Password must contain at least one special character"),
)


class PasswordValidationError(ValidationError):
    """A password that fails PASSWORD_RULES."""


def validate_password_strength(password: str | None) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, message in PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(message)


def hash_password(password: str) -> str:
    validate_password_strength(password)
    digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw() compares in constant time; a corrupt stored digest never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def register_user(
    session: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    address: str,
    phone_number: str,
    password: str,
) -> User:
    """
    Create a new account.

    Raises:
        ValidationError: missing profile fields, bad email, weak password
        ConflictError: email already registered
    """
    profile = {
        "first_name": first_name,
        "last_name": last_name,
        "address": address,
        "phone_number": phone_number,
    }
    blank = [name for name in REQUIRED_PROFILE_FIELDS if not (profile[name] or "").strip()]
    if blank:
        raise ValidationError(f"Missing required fields: {', '.join(blank)}")

    email = validate_email(email)
    if session.query(User.id).filter(User.email == email).first() is not None:
        raise ConflictError("User already exists with this email")

    user = User(
        email=email,
        password_hash=hash_password(password),
        **{name: value.strip() for name, value in profile.items()},
    )
    session.add(user)
    session.commit()
    logger.info("Registered user %s", user.id)
    return user


def authenticate(session: Session, email: str | None, password: str | None) -> User:
    """
    Look up the account for email and check its password.

    Unknown email and wrong password raise the same AuthenticationError.
    """
    user = session.query(User).filter(User.email == (email or "").strip().lower()).first()
    if user is None or not verify_password(password or "", user.password_hash):
        logger.info("Failed login attempt")
        raise AuthenticationError("Invalid email or password")
    return user
