# declination_engine/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Any, Dict, Final, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from declination_engine.api.routes import api as _routes_bp
from declination_engine.core.validators import InputError
from declination_engine.utils.config import load_config
from declination_engine.version import VERSION

# ───────────────────────── Prometheus ─────────────────────────
MET_REQUESTS: Final = Counter("declination_api_requests_total", "API requests", ["route"])
MET_ERRORS: Final = Counter("declination_api_errors_total", "API error responses", ["kind"])
GAUGE_APP_UP: Final = Gauge("declination_app_up", "1 if app is running")
REQ_LATENCY: Final = Histogram("declination_request_seconds", "API request latency", ["route"])

_SEEDED_ROUTES = (
    "/", "/health", "/healthz", "/metrics",
    "/api/health", "/api/config", "/api/timescales", "/api/positions",
    "/api/acg", "/api/zenith", "/api/parans", "/api/dignities", "/api/chart",
    "/api/grid", "/api/cities/rank",
)

# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
        logging.getLogger("declination_engine").setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

def _register_errors(app: Flask) -> None:
    @app.errorhandler(InputError)
    def _input(e: InputError):
        MET_ERRORS.labels(kind="validation_error").inc()
        return jsonify(ok=False, error="validation_error", details=e.errors()), 400

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        MET_ERRORS.labels(kind="http_error").inc()
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        MET_ERRORS.labels(kind="internal_error").inc()
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
        ), 500

# ───────────────────────── health & metrics ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return jsonify(ok=True, service="declination-engine", version=VERSION, health="/health"), 200

    @app.route("/health", methods=["GET"])
    @app.route("/healthz", methods=["GET"])
    def health():
        return jsonify(ok=True, status="ok"), 200

def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )

def _tracked(path: str) -> bool:
    return path.startswith("/api/") or path in ("/", "/health", "/healthz", "/metrics")

# ───────────────────────── app factory ─────────────────────────
def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Build the WSGI app. `config` (already-loaded engine config) wins over
    $ASTRO_CONFIG; tests pass one in to pin workers/cache sizes.
    """
    app = Flask(__name__)
    app.config["JSON_SORT_KEYS"] = False
    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    cfg_path = os.environ.get("ASTRO_CONFIG", "config/defaults.yaml")
    app.config["ENGINE_CONFIG"] = config if config is not None else load_config(cfg_path)

    for route in _SEEDED_ROUTES:
        MET_REQUESTS.labels(route=route).inc(0)
    GAUGE_APP_UP.set(1.0)

    @app.before_request
    def _before():
        p = request.path or ""
        if _tracked(p):
            MET_REQUESTS.labels(route=p).inc()
            request.environ["declination.t0"] = perf_counter()

    @app.after_request
    def _after(resp):
        p = request.path or ""
        t0 = request.environ.get("declination.t0")
        if t0 is not None and p != "/metrics":
            REQ_LATENCY.labels(route=p).observe(perf_counter() - t0)
        return resp

    _register_health(app)
    _register_errors(app)
    app.register_blueprint(_routes_bp)

    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        GAUGE_APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)

    # CORS for browser UIs
    allowed_origin = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    CORS(
        app,
        resources={r"/.*": {"origins": allowed_origin}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    app.logger.info("App initialized; version=%s; config=%s", VERSION, cfg_path if config is None else "<inline>")
    return app

# ───────────────────────── app instance ─────────────────────────
app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
