from flask import Blueprint, jsonify
from sqlalchemy import text

from cv_analyzer.models import db

bp = Blueprint("health", __name__)


@bp.get("/healthz")
def healthz():
    """
    Liveness
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
    """
    return jsonify({"ok": True}), 200


@bp.get("/readyz")
def readyz():
    """
    Readiness (database reachable)
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
      503:
        description: Database unavailable
    """
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as e:
        db.session.rollback()
        return jsonify({"ok": False, "error": str(e)}), 503
    return jsonify({"ok": True, "database": "up"}), 200
