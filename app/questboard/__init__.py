"""
Questboard: campaign keep ledger service.

`create_app()` wires config, logging, the database, auth/CSRF hooks and the
feature blueprints. Feature modules live under `app.questboard.modules`.
"""
import logging
import os
from datetime import timedelta

from flask import Flask, g, request
from dotenv import load_dotenv

from app.questboard import models  # noqa: F401  (registers every table on Base.metadata)
from app.questboard.config import load_config
from app.questboard.db import init_db, teardown_db_session
from app.questboard.errors import register_error_handlers
from app.questboard.routes import bp as routes_bp
from app.questboard.auth import bp as auth_bp, load_current_user
from app.questboard.security import csrf_guard
from app.questboard.modules.campaigns.admin import bp as campaigns_bp
from app.questboard.modules.creatures.admin import bp as creatures_bp
from app.questboard.modules.currencies.admin import bp as currencies_bp
from app.questboard.modules.player_keep.admin import bp as player_keep_bp
from app.questboard.modules.shops.admin import bp as shops_bp

logger = logging.getLogger(__name__)

# Probes skip user loading and CSRF.
_PROBE_PREFIXES = ("/health", "/healthz")


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO"), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)
    logging.getLogger("app.questboard").setLevel(level)


def _check_production_config(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")


def _dispose_engine_after_fork(app: Flask) -> None:
    # gunicorn --preload forks workers; pooled connections must not be shared.
    if not hasattr(os, "register_at_fork"):
        return

    def _after_fork_child() -> None:
        engine = app.extensions.get("sqlalchemy_engine")
        if engine is not None:
            engine.dispose()
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

    os.register_at_fork(after_in_child=_after_fork_child)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    _configure_logging(app)
    _check_production_config(app)

    init_db(app)
    _dispose_engine_after_fork(app)

    @app.before_request
    def _load_user_and_check_csrf():
        if request.path.startswith(_PROBE_PREFIXES):
            g.current_user = None
            return None
        load_current_user()
        return csrf_guard()

    app.teardown_appcontext(teardown_db_session)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(campaigns_bp, url_prefix="/api")
    app.register_blueprint(currencies_bp, url_prefix="/api")
    app.register_blueprint(player_keep_bp, url_prefix="/api")
    app.register_blueprint(shops_bp, url_prefix="/api")
    app.register_blueprint(creatures_bp, url_prefix="/api")
    register_error_handlers(app)

    logger.info("create_app() complete (env=%s)", app.config.get("ENV"))
    return app
