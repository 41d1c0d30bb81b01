"""Flask application factory for MetaGate."""

from __future__ import annotations

import logging
import os

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from . import metrics
from .config import Config
from .operator.channel import OperatorChannel
from .relay.service import RelayService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    logger = logging.getLogger("metagate")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        log_file = app.config.get("LOG_FILE")
        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)
    app.logger.setLevel(level)


def _init_extensions(app: Flask) -> None:
    """Relay и канал оператора — по одному экземпляру на приложение."""
    app.extensions["relay"] = RelayService.from_config(app.config)
    app.extensions["operator_channel"] = OperatorChannel.from_config(app.config)

    origins = app.config.get("CORS_ORIGINS") or "*"
    if origins != "*":
        origins = [o.strip() for o in origins.split(",") if o.strip()]
    CORS(app, origins=origins)


def _register_blueprints(app: Flask) -> None:
    from .chat import bp as chat_bp
    from .operator import bp as operator_bp

    app.register_blueprint(chat_bp)
    app.register_blueprint(operator_bp)


def _register_common_routes(app: Flask) -> None:
    @app.get("/health")
    def health():
        return ("", 204)

    @app.get("/ready")
    def ready():
        relay = app.extensions["relay"]
        return jsonify(
            status="ok",
            bot_configured=app.extensions["operator_channel"].configured,
            relay=relay.stats(),
        ), 200

    @app.get("/metrics")
    def metrics_view():
        if not app.config.get("ENABLE_METRICS", False):
            return jsonify(error="metrics_disabled"), 404
        if request.args.get("format") == "prometheus":
            return Response(metrics.render_prometheus() + "\n", mimetype="text/plain")
        return jsonify(metrics.snapshot())


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(403)
    def _forbidden(_err):
        return jsonify(ok=False, error="forbidden"), 403

    @app.errorhandler(404)
    def _not_found(_err):
        return jsonify(ok=False, error="not_found"), 404

    @app.errorhandler(413)
    def _too_large(_err):
        return jsonify(ok=False, error="file too large"), 413


def _apply_security_headers(app: Flask) -> None:
    @app.after_request
    def _set_headers(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "same-origin")
        return resp


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)
    os.makedirs(app.config.get("UPLOAD_FOLDER", "uploads"), exist_ok=True)

    _init_extensions(app)
    _register_blueprints(app)
    _register_common_routes(app)
    _register_error_handlers(app)
    _apply_security_headers(app)
    return app
