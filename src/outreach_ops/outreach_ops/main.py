from __future__ import annotations

import importlib
import logging
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from config import get_settings_module

from .common.logging import configure_logging, set_request_id
from .container import Container, build_container
from .core.actor import Actor
from .core.constants import DEFAULT_SESSION_DAYS
from .core.exceptions import DomainError, ValidationError
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables

from .audit.controller import register as register_audit
from .dashboard.controller import register as register_dashboard
from .documents.controller import register as register_documents
from .payroll.controller import register as register_payroll
from .schedules.controller import register as register_schedules
from .shifts.controller import register as register_shifts
from .timeclock.controller import register as register_timeclock
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def _error_body(kind: str, message: str, fields: Optional[dict] = None):
    error = {"kind": kind, "message": message}
    if fields:
        error["fields"] = fields
    return jsonify({"error": error})


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        if e.status_code >= 400 and not isinstance(e, ValidationError):
            logger.warning("%s %s rejected: %s (%s)", request.method, request.path, e.message, e.kind)
        fields = e.fields if isinstance(e, ValidationError) else None
        return _error_body(e.kind, e.message, fields), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        kind = "not_found" if e.code == 404 else (e.name or "http_error").lower().replace(" ", "_")
        return _error_body(kind, e.description or e.name), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error_body("internal_error", "Internal server error"), 500


def _register_request_hooks(app: Flask, container: Container) -> None:
    @app.before_request
    def load_actor():
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_id = request_id
        set_request_id(request_id)

        g.actor = None
        user_id = session.get("user_id")
        if user_id is None:
            return
        user = container.auth_service.session_user(int(user_id))
        if user is None:
            session.clear()
            return
        g.actor = Actor(
            user_id=user.id,
            role=user.role,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )

    @app.after_request
    def add_request_id(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")
        return response

    @app.teardown_request
    def clear_request_id(_exc):
        set_request_id(None)


def create_app(container: Optional[Container] = None) -> Flask:
    """Build the Flask app; pass `container` to run over other repositories (tests)."""

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(str(getattr(settings, "LOG_LEVEL", "INFO")))

    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.permanent_session_lifetime = timedelta(days=int(getattr(settings, "SESSION_DAYS", DEFAULT_SESSION_DAYS)))
    app.json.sort_keys = False

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("Schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_users(db_config)
        container = build_container(db_config=db_config, settings=settings)

    app.extensions["outreach_ops"] = container

    _register_error_handlers(app)
    _register_request_hooks(app, container)

    register_users(app, container)
    register_schedules(app, container)
    register_shifts(app, container)
    register_timeclock(app, container)
    register_payroll(app, container)
    register_documents(app, container)
    register_audit(app, container)
    register_dashboard(app, container)

    return app
