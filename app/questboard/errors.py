"""
Service-layer exceptions and their JSON rendering.

Services raise these; `register_error_handlers` turns them into
`{"ok": false, "errors": [...]}` responses so blueprints stay thin.
"""
from __future__ import annotations

from flask import Flask, g, jsonify
from sqlalchemy.exc import SQLAlchemyError


class QuestboardError(Exception):
    status_code = 400

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ValidationError(QuestboardError):
    status_code = 400


class NotFoundError(QuestboardError):
    status_code = 404


class ConflictError(QuestboardError):
    status_code = 409


def error_response(errors: list[str], status: int):
    return jsonify({"ok": False, "errors": errors}), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(QuestboardError)
    def _err_domain(e: QuestboardError):  # type: ignore[no-redef]
        return error_response(e.errors, e.status_code)

    @app.errorhandler(SQLAlchemyError)
    def _err_db(e: SQLAlchemyError):  # type: ignore[no-redef]
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()
        app.logger.exception("Database error (request_id=%s)", getattr(g, "request_id", None))
        return error_response(["Failed to save changes."], 500)

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return error_response([getattr(e, "description", None) or "Bad request."], 400)

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        return error_response(["Authentication required."], 401)

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_access", None)
        if missing:
            app.logger.warning("Forbidden: missing_access=%s request_id=%s", missing, getattr(g, "request_id", None))
        return error_response(["Unauthorized - DM or Admin access required." if missing == "manage" else "Forbidden."], 403)

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return error_response([getattr(e, "description", None) or "Not found."], 404)

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return error_response(["Request body too large."], 413)

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return error_response(["Internal server error."], 500)
