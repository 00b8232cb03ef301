from flask import Blueprint, current_app, g, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.questboard.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return jsonify({"ok": True, "service": "questboard", "api": "/api", "auth": "/auth"})


@bp.get("/health")
def health():
    """Readiness: the app is up and the database answers."""
    try:
        db_session().execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("Health check failed (request_id=%s)", g.get("request_id"))
        return jsonify({"ok": False, "database": "unavailable"}), 503
    return jsonify({"ok": True, "database": "ok"})


@bp.get("/healthz")
def healthz():
    """Liveness only; never touches the database."""
    return "ok", 200
