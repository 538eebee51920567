"""
Health check blueprint.

    GET /api/health  – liveness with database status (no auth)
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from sitetrack.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/health")


@health_bp.route("", methods=["GET"])
def health():
    checks = {}
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {
            "status": "ok",
            "latency_ms": round((time.perf_counter() - t0) * 1000, 1),
        }
        overall = True
    except SQLAlchemyError as exc:
        logger.error("Health check: database failed: %s", exc)
        checks["database"] = {"status": "error"}
        overall = False

    body = {"status": "ok" if overall else "degraded", "checks": checks}
    return jsonify(body), 200 if overall else 503
