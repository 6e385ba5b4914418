# backend/app/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _default_mail_provider() -> str:
    if os.environ.get("SENDGRID_API_KEY"):
        return "sendgrid"
    if os.environ.get("SMTP_HOST") or os.environ.get("SMTP_USERNAME"):
        return "smtp"
    return "console"


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the instance folder unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///billing.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 24)
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # Forgot-password OTP lifetime and wrong guesses allowed per OTP
    PASSWORD_RESET_TTL_MINUTES = _env_int("PASSWORD_RESET_TTL_MINUTES", 10)
    PASSWORD_RESET_MAX_ATTEMPTS = _env_int("PASSWORD_RESET_MAX_ATTEMPTS", 5)

    CORS_ORIGINS = tuple(
        origin.strip().rstrip("/")
        for origin in os.environ.get(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",")
        if origin.strip()
    )

    # Outbound mail (supplier PO notifications)
    MAIL_PROVIDER = os.environ.get("MAIL_PROVIDER", _default_mail_provider()).lower()
    MAIL_FROM = os.environ.get("MAIL_FROM", os.environ.get("SMTP_USERNAME", "no-reply@billing.local"))
    MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Retail Billing System")
    SMTP_HOST = os.environ.get("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT = _env_int("SMTP_PORT", 465)
    SMTP_USERNAME = os.environ.get("SMTP_USERNAME", "")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD", "")
    SMTP_TIMEOUT_SECONDS = _env_int("SMTP_TIMEOUT_SECONDS", 15)
    SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY", "")
    NOTIFICATIONS_ASYNC = _env_bool("NOTIFICATIONS_ASYNC", True)
