# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Users register with a global role (Owner, Manager or Cashier). Owners
create shops; Managers and Cashiers join shops with the shop's secret code.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Emails are normalized to lower case and unique across the system
- Session tokens managed separately (see session_service.py)
- Password reset OTPs are stored hashed, expire, and allow a limited
  number of wrong guesses; a successful reset revokes every session
"""

import hmac
import re
import secrets
from datetime import timedelta

import bcrypt
from flask import current_app

from ..errors import ConflictError, UnauthorizedError, ValidationError
from ..extensions import db
from ..models import SessionToken, User
from ..models.auth import VALID_ROLES
from app.utils import utcnow
from .notification_service import dispatch
from .session_service import hash_token

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises ValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise ValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe; malformed hashes verify as False."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalize_email(email) -> str:
    cleaned = str(email or "").strip().lower()
    if not EMAIL_PATTERN.match(cleaned):
        raise ValidationError("A valid email is required")
    return cleaned


def create_user(
    name: str,
    email: str,
    password: str,
    role: str,
    *,
    bcrypt_rounds: int = 12,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises ValidationError for bad input and ConflictError when the email is
    already registered.
    """
    name = str(name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if role not in VALID_ROLES:
        raise ValidationError("Invalid role", details={"allowed": list(VALID_ROLES)})
    email = normalize_email(email)

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, rounds=bcrypt_rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User:
    """
    Authenticate by email and password.

    Returns the User and stamps last_login_at. Raises UnauthorizedError with
    one generic message for unknown email, wrong password and inactive
    accounts.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        raise UnauthorizedError("Invalid email or password")

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not password or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        raise UnauthorizedError("Invalid email or password")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


# =============================================================================
# PASSWORD RESET
# =============================================================================

RESET_INVALID_MESSAGE = "Invalid or expired OTP"


def _generate_otp() -> str:
    """6-digit numeric code, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


def _clear_reset(user: User) -> None:
    user.reset_token_hash = None
    user.reset_expires_at = None
    user.reset_attempts = 0


def request_password_reset(email) -> None:
    """
    Issue a one-time code for the account and mail it.

    Unknown, malformed and inactive addresses return silently, so callers
    always answer with the same generic message. Only the code's hash is
    stored; a new request replaces any earlier code.
    """
    if not str(email or "").strip():
        raise ValidationError("email is required")
    try:
        email = normalize_email(email)
    except ValidationError:
        return

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active:
        current_app.logger.info("Password reset requested for unknown account")
        return

    otp = _generate_otp()
    ttl_minutes = current_app.config["PASSWORD_RESET_TTL_MINUTES"]
    user.reset_token_hash = hash_token(otp)
    user.reset_expires_at = utcnow() + timedelta(minutes=ttl_minutes)
    user.reset_attempts = 0
    db.session.commit()

    current_app.logger.info("Password reset OTP issued for user %s", user.id)
    dispatch(
        user.email,
        "Password Reset OTP - Retail Billing System",
        f"Hello {user.name},\n\n"
        f"Your OTP is {otp} (valid {ttl_minutes} minutes).\n\n"
        "If you didn't request this, you can safely ignore this email.",
    )


def reset_password(email, otp, new_password, *, bcrypt_rounds: int = 12) -> User:
    """
    Replace the password when the OTP matches.

    Wrong codes count against PASSWORD_RESET_MAX_ATTEMPTS; once used up, or
    once expired, the code is discarded and a new one must be requested.
    Every open session of the user is revoked on success.
    """
    otp = str(otp or "").strip()
    if not otp or not new_password:
        raise ValidationError("email, otp and new_password are required")
    try:
        email = normalize_email(email)
    except ValidationError:
        raise ValidationError(RESET_INVALID_MESSAGE)

    # Strength is checked before the code is spent
    password_hash = hash_password(new_password, rounds=bcrypt_rounds)

    user = db.session.query(User).filter_by(email=email).first()
    if not user or not user.is_active or not user.reset_token_hash:
        raise ValidationError(RESET_INVALID_MESSAGE)

    if user.reset_expires_at is None or user.reset_expires_at < utcnow():
        _clear_reset(user)
        db.session.commit()
        raise ValidationError("OTP has expired")

    if not hmac.compare_digest(user.reset_token_hash, hash_token(otp)):
        user.reset_attempts = (user.reset_attempts or 0) + 1
        if user.reset_attempts >= current_app.config["PASSWORD_RESET_MAX_ATTEMPTS"]:
            _clear_reset(user)
        db.session.commit()
        raise ValidationError(RESET_INVALID_MESSAGE)

    now = utcnow()
    user.password_hash = password_hash
    _clear_reset(user)
    db.session.query(SessionToken).filter_by(user_id=user.id, revoked_at=None).update(
        {"revoked_at": now}, synchronize_session=False
    )
    db.session.commit()
    current_app.logger.info("Password reset for user %s", user.id)
    return user
