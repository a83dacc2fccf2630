"""
Health API - liveness/readiness with database connectivity and memory stats.
"""

import time

import psutil
from flask import Blueprint, current_app, jsonify

from access_core.db import check_connection
from access_core.models import utcnow

# Create blueprint without url_prefix (inherited from parent)
health_bp = Blueprint("health", __name__)

_STARTED_AT = time.monotonic()


def health_payload() -> dict:
    memory = psutil.Process().memory_info()
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "database": {"status": "connected" if check_connection() else "disconnected"},
        "memory": {"rss": memory.rss, "vms": memory.vms},
        "environment": current_app.config.get("ENVIRONMENT", "development"),
    }


@health_bp.get("/health")
def get_health():
    return jsonify(health_payload()), 200
