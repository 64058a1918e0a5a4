import json
import os
import re

import click
from flask import Flask, g, jsonify, request
from pydantic import ValidationError
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from partsmarket.config import current_env, is_production, load_settings, _env_int
from partsmarket.extensions import cors, db, migrate
from partsmarket.integrations.messaging import messaging_health
from partsmarket.segments.segment_catalog import catalog_bp
from partsmarket.segments.segment_contact_access import contact_access_bp
from partsmarket.segments.segment_listings import listings_bp
from partsmarket.segments.segment_me import me_bp
from partsmarket.segments.segment_profile import profile_bp
from partsmarket.segments.segment_search import search_bp
from partsmarket.utils.auth import resolve_auth_context
from partsmarket.utils.errors import ApiError, invalid_request, issues_from_validation_error, unexpected_error
from partsmarket.utils.observability import (
    get_request_id,
    init_otel,
    init_sentry,
    install_request_observers,
    note_error_code,
)
from partsmarket.utils.rate_limit import (
    build_rate_limit_subject,
    check_limit,
    init_rate_limiter,
    limiter_stats,
    rate_limit_enabled,
)

_NON_WORD = re.compile(r"[^a-z0-9]+")


def _error_slug(name: str) -> str:
    return _NON_WORD.sub("_", (name or "").strip().lower()).strip("_") or "error"


def _database_url(env: str, instance_dir: str) -> str:
    database_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")
    if not database_url:
        if is_production(env):
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
        database_url = f"sqlite:///{os.path.join(instance_dir, 'partsmarket.db').replace(os.sep, '/')}"
    # Hosted Postgres providers still hand out the legacy scheme.
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    return database_url


def create_app():
    app = Flask(__name__)
    init_sentry(app)

    env = current_env()

    # Production safety checks
    if is_production(env):
        secret = (os.getenv("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")):
            raise RuntimeError("DATABASE_URL must be set in production")

    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["PARTSMARKET_SETTINGS"] = load_settings()

    # Ensure instance dir exists for SQLite paths
    instance_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "instance"))
    os.makedirs(instance_dir, exist_ok=True)

    database_url = _database_url(env, instance_dir)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    engine_options = {
        "pool_pre_ping": True,
        "pool_reset_on_return": "rollback",
        "pool_recycle": _env_int("DB_POOL_RECYCLE_SECONDS", 1800, minimum=60, maximum=86400),
    }
    if not database_url.startswith("sqlite://"):
        engine_options.update(
            {
                "pool_size": _env_int("DB_POOL_SIZE", 10, minimum=1, maximum=200),
                "max_overflow": _env_int("DB_MAX_OVERFLOW", 20, minimum=0, maximum=500),
                "pool_timeout": _env_int("DB_POOL_TIMEOUT_SECONDS", 30, minimum=1, maximum=300),
            }
        )
        app.logger.info(
            "db_pooling_enabled pool_size=%s max_overflow=%s pool_timeout=%s pool_recycle=%s",
            engine_options["pool_size"],
            engine_options["max_overflow"],
            engine_options["pool_timeout"],
            engine_options["pool_recycle"],
        )
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options

    # CORS configuration
    cors_origins = (os.getenv("CORS_ORIGINS") or "").strip()
    if is_production(env):
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    else:
        origins = ["*"] if not cors_origins else [o.strip() for o in cors_origins.split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    init_rate_limiter(app)
    install_request_observers(app)
    with app.app_context():
        init_otel(app, enabled=(os.getenv("OTEL_ENABLED") or "").strip() == "1")

    @app.errorhandler(ApiError)
    def _api_error(error: ApiError):
        if error.status >= 500:
            app.logger.error("api_error code=%s path=%s", error.code, request.path)
        else:
            app.logger.warning("api_error code=%s status=%s path=%s", error.code, error.status, request.path)
        return error.to_response()

    @app.errorhandler(ValidationError)
    def _validation_error(error: ValidationError):
        return invalid_request(issues_from_validation_error(error)).to_response()

    @app.errorhandler(HTTPException)
    def _api_http_exception(error: HTTPException):
        # Keep API failures JSON-only for predictable frontend handling.
        if not request.path.startswith("/api/"):
            return error
        slug = _error_slug(error.name)
        note_error_code(slug)
        payload = {
            "ok": False,
            "error": slug,
            "message": error.description or error.name,
            "status": int(error.code or 500),
        }
        rid = get_request_id()
        if rid:
            payload["trace_id"] = rid
        return jsonify(payload), int(error.code or 500)

    @app.errorhandler(Exception)
    def _api_unhandled_exception(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        db.session.rollback()
        return unexpected_error().to_response()

    app.register_blueprint(catalog_bp)
    app.register_blueprint(search_bp)
    app.register_blueprint(listings_bp)
    app.register_blueprint(contact_access_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(me_bp)

    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            app.logger.warning("health_db_failed err=%s", e)
            db_state = "fail"
        return jsonify(
            {
                "ok": True,
                "service": "partsmarket-backend",
                "env": env,
                "db": db_state,
                "rate_limit": limiter_stats(),
                "messaging": messaging_health(app.config["PARTSMARKET_SETTINGS"]),
            }
        )

    def _rate_limited_response(retry_after_seconds: int):
        return ApiError(429, "rate_limited", retry_after=int(max(1, retry_after_seconds or 1))).to_response()

    @app.before_request
    def _global_rate_limit_guard():
        if bool(app.config.get("TESTING")):
            allow_in_tests = (os.getenv("RATE_LIMIT_IN_TESTS") or "").strip().lower() in ("1", "true", "yes", "on")
            if not allow_in_tests:
                return None
        if not rate_limit_enabled(True):
            return None
        method = (request.method or "GET").strip().upper()
        if method == "OPTIONS":
            return None
        path = (request.path or "").strip()
        if not path.startswith("/api/") or path == "/api/health":
            return None

        user_id, _token = resolve_auth_context()
        g.auth_user_id = user_id
        subject = build_rate_limit_subject(
            scope="user" if user_id else "ip",
            user_id=user_id,
            request_obj=request,
        )
        route = request.url_rule.rule if request.url_rule else path
        if not user_id:
            # Anonymous and bad-credential calls share one bucket per IP.
            key, limit = f"tier:auth:{subject}", 30
        elif method == "GET":
            key, limit = f"tier:browse:{method}:{route}:{subject}", 120
        else:
            key, limit = f"tier:write:{method}:{route}:{subject}", 60
        ok, retry_after = check_limit(key, limit=limit, window_seconds=60)
        if not ok:
            return _rate_limited_response(retry_after)
        return None

    @app.before_request
    def _reset_db_session():
        db.session.rollback()

    @app.teardown_request
    def _cleanup_db_session(exc):
        try:
            if exc is not None:
                db.session.rollback()
        finally:
            db.session.remove()

    @app.cli.command("seed-catalog")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def seed_catalog_command(path: str):
        """Loads brands, models, years, item types and parts from a JSON file."""
        from partsmarket.services.catalog_service import seed_catalog

        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise click.ClickException("Catalog file must hold a JSON object.")
        try:
            created = seed_catalog(data)
        except KeyError as e:
            db.session.rollback()
            raise click.ClickException(f"Catalog row is missing field {e}.")
        click.echo("catalog_seeded " + " ".join(f"{k}={v}" for k, v in created.items()))

    return app
