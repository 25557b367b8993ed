"""Flask application factory."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ..config import Config
from ..errors import AnalysisError, ConfigurationError, NotFoundError, ValidationError
from ..pipeline import AnalysisContext

logger = logging.getLogger(__name__)


def create_app(
    config: Config | str | Path = "config.yaml",
    context_factory: Callable[[], AnalysisContext] | None = None,
) -> Flask:
    """Create and configure the Flask application.

    `context_factory` builds the AnalysisContext for each request; by default
    every request gets a fresh context over services built once from config.
    """
    app = Flask(__name__)

    cfg = config if isinstance(config, Config) else Config.from_yaml(config)
    app.config["APP_CONFIG"] = cfg

    if context_factory is None:
        shared = AnalysisContext.from_config(cfg)

        def context_factory() -> AnalysisContext:
            return replace(shared)

    app.config["CONTEXT_FACTORY"] = context_factory

    # Register routes
    from . import mcp_server, routes

    app.register_blueprint(routes.bp)
    app.register_blueprint(mcp_server.bp)

    register_error_handlers(app)
    return app


def register_error_handlers(app: Flask) -> None:
    """Map analyzer errors onto JSON error responses."""

    @app.errorhandler(ValidationError)
    def validation_error(e: ValidationError):
        return jsonify(error=str(e)), 400

    @app.errorhandler(NotFoundError)
    def not_found(e: NotFoundError):
        return jsonify(error=str(e)), 404

    @app.errorhandler(ConfigurationError)
    def not_configured(e: ConfigurationError):
        return jsonify(error=str(e)), 500

    @app.errorhandler(AnalysisError)
    def analysis_failed(e: AnalysisError):
        return jsonify(error="Analysis failed", message=str(e)), 500

    @app.errorhandler(Exception)
    def unhandled(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify(error=e.name, message=e.description), e.code
        logger.exception("Unhandled error")
        return jsonify(error="Internal server error", message=str(e)), 500
