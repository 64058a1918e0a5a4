from __future__ import annotations

import hashlib
import json
import os
import time
import uuid

import sentry_sdk
from flask import g, has_request_context, request

from partsmarket.utils.clock import utcnow

_SCRUBBED_HEADERS = ("authorization", "x-api-key", "cookie", "set-cookie")
# Contact numbers and one-time codes never leave the process.
_SCRUBBED_FIELDS = ("whatsapp", "whatsappE164", "code", "whatsappUrl")


def _hash_ip(ip: str, salt: str) -> str:
    raw = f"{salt}:{ip or ''}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()[:16]


def get_request_id() -> str:
    if not has_request_context():
        return ""
    return getattr(g, "request_id", "") or ""


def note_error_code(code: str) -> None:
    """Remembers the business error code for this request's access log line."""
    if has_request_context():
        g.error_code = code


def tag_request_user(user_id: str | None) -> None:
    sentry_sdk.set_user({"id": str(user_id)} if user_id else None)


def init_sentry(app) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        app.logger.info("sentry_disabled_no_dsn")
        return
    from sentry_sdk.integrations.flask import FlaskIntegration

    raw_rate = (os.getenv("SENTRY_TRACES_SAMPLE_RATE") or "0.0").strip()
    try:
        traces_rate = float(raw_rate)
    except ValueError:
        traces_rate = 0.0
    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=(os.getenv("SENTRY_ENVIRONMENT") or os.getenv("PARTSMARKET_ENV") or "dev"),
            release=(os.getenv("GIT_SHA") or "unknown"),
            integrations=[FlaskIntegration()],
            send_default_pii=False,
            traces_sample_rate=max(0.0, min(traces_rate, 1.0)),
            before_send=_before_send_scrub,
        )
        app.logger.info("sentry_enabled")
    except Exception as e:
        app.logger.warning("sentry_init_failed err=%s", e)


def _scrub_mapping(values) -> None:
    if not isinstance(values, dict):
        return
    for key in list(values.keys()):
        if key in _SCRUBBED_FIELDS:
            values[key] = "[REDACTED]"


def _before_send_scrub(event, hint):
    req = event.get("request") or {}
    headers = req.get("headers") or {}
    for key in list(headers.keys()):
        if key.lower() in _SCRUBBED_HEADERS:
            headers[key] = "[REDACTED]"
    req["headers"] = headers
    _scrub_mapping(req.get("data"))
    event["request"] = req
    return event


def init_otel(app, *, enabled: bool) -> None:
    if not enabled:
        return
    endpoint = (os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "").strip()
    if not endpoint:
        app.logger.info("otel_disabled_no_endpoint")
        return
    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.flask import FlaskInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        app.logger.warning("otel_enabled_but_not_installed hint=pip install partsmarket-backend[otel]")
        return

    from partsmarket.extensions import db

    provider = TracerProvider(resource=Resource.create({"service.name": "partsmarket-backend"}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    FlaskInstrumentor().instrument_app(app)
    SQLAlchemyInstrumentor().instrument(engine=db.engine)
    app.logger.info("otel_enabled endpoint=%s", endpoint)


def access_record(app, response) -> dict:
    started = getattr(g, "request_started_at", None)
    latency_ms = None
    if started is not None:
        latency_ms = round((time.perf_counter() - float(started)) * 1000.0, 2)
    forwarded = request.headers.get("X-Forwarded-For", request.remote_addr or "")
    return {
        "ts": utcnow().isoformat(),
        "request_id": get_request_id(),
        "path": request.path,
        "route": request.url_rule.rule if request.url_rule else None,
        "method": request.method,
        "status": int(response.status_code),
        "error": getattr(g, "error_code", None),
        "latency_ms": latency_ms,
        "user_id": getattr(g, "auth_user_id", None),
        "ip_hash": _hash_ip(forwarded, app.config.get("SECRET_KEY", "partsmarket")),
    }


def install_request_observers(app) -> None:
    @app.before_request
    def _request_observer_begin():
        rid = (request.headers.get("X-Request-Id") or "").strip()
        g.request_id = rid or uuid.uuid4().hex
        g.request_started_at = time.perf_counter()
        g.error_code = None

    @app.after_request
    def _request_observer_end(response):
        response.headers["X-Request-Id"] = get_request_id() or uuid.uuid4().hex
        app.logger.info(json.dumps(access_record(app, response)))
        return response
