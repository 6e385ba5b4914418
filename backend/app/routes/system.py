# backend/app/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from app.utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Run a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "dialect": db.engine.dialect.name,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_notifier_health() -> dict:
    notifier = current_app.extensions.get("notifier")
    if notifier is None:
        return {"status": "degraded", "warning": "No notifier configured"}
    return {"status": "healthy", "provider": current_app.config.get("MAIL_PROVIDER")}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable (notifier problems only degrade)
    - 503: database unreachable
    """
    database_health = check_database_health()
    notifier_health = check_notifier_health()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif notifier_health["status"] != "healthy":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
            "notifier": notifier_health,
        },
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    return {
        "api_version": "1.0.0",
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
