"""
Session-bound CSRF tokens for the JSON API.

Clients read the token from `GET /auth/session` (or the login response) and
echo it on every write in the `X-CSRF-Token` header, a `csrf_token` form
field, or a `csrf_token` JSON key.
"""
import secrets

from flask import Request, current_app, request, session

from app.questboard.errors import error_response

CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
# Login has to work before the client holds a token.
CSRF_EXEMPT_ENDPOINTS = frozenset({"auth.login_post"})


def ensure_csrf_token() -> str:
    token = session.get("csrf_token")
    if not token:
        token = session["csrf_token"] = secrets.token_urlsafe(32)
    return token


def submitted_csrf_token(req: Request) -> str | None:
    token = req.headers.get(CSRF_HEADER) or req.form.get("csrf_token")
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrf_token")
    return token


def validate_csrf(req: Request) -> bool:
    token = submitted_csrf_token(req)
    expected = session.get("csrf_token")
    return bool(token and expected and secrets.compare_digest(str(token), str(expected)))


def csrf_guard():
    """before_request hook: issue a token to every session, check it on writes."""
    ensure_csrf_token()
    session.permanent = True
    if not current_app.config.get("CSRF_ENABLED"):
        return None
    if request.method not in UNSAFE_METHODS or request.endpoint in CSRF_EXEMPT_ENDPOINTS:
        return None
    if not validate_csrf(request):
        current_app.logger.warning("CSRF check failed (endpoint=%s)", request.endpoint)
        return error_response(["CSRF token missing or invalid."], 400)
    return None
