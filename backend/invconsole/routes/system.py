# backend/invconsole/routes/system.py
"""
Liveness and build information.

/health answers 503 only when the store is unreachable. A missing
interpreter key leaves the service "degraded": structured actions and the
CLI keep working, only free-text commands fail.
"""

import sys
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, PurchaseOrder, Warehouse
from invconsole.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


@system_bp.get("/health")
def health():
    checks = {}
    try:
        checks["store"] = {
            "status": "healthy",
            "products": db.session.query(Product).count(),
            "warehouses": db.session.query(Warehouse).count(),
            "orders": db.session.query(PurchaseOrder).count(),
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Store health check failed")
        checks["store"] = {"status": "unhealthy"}

    configured = current_app.extensions.get("interpreter") is not None or current_app.config.get("INTERPRETER_API_KEY")
    checks["interpreter"] = (
        {"status": "healthy", "model": current_app.config.get("INTERPRETER_MODEL")}
        if configured
        else {"status": "degraded", "warning": "INTERPRETER_API_KEY is not configured"}
    )

    if checks["store"]["status"] == "unhealthy":
        status, code = "unhealthy", 503
    elif checks["interpreter"]["status"] == "degraded":
        status, code = "degraded", 200
    else:
        status, code = "healthy", 200
    return {"status": status, "checked_at": to_utc_z(utcnow()), "checks": checks}, code


@system_bp.get("/version")
def version():
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
    }
