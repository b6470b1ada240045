from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from app.config import load_config
from app.routes.public import bp as public_bp, scraper_bp

from .db import close_db


def _setup_logging(app: Flask, log_config: dict[str, Any]) -> None:
    """Console logging always, plus a rotating file when one is configured."""
    log_level = getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    root = logging.getLogger("app")
    root.setLevel(log_level)
    app.logger.setLevel(log_level)

    if not root.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

        log_file = log_config.get("file")
        if log_file:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=log_config.get("max_bytes", 10485760),
                backupCount=log_config.get("backup_count", 5),
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            app.logger.addHandler(file_handler)


def build_app(overrides: dict[str, Any] | None = None) -> Flask:
    """
    Create the JSON API.

    ``overrides`` are copied into ``app.config`` last; tests use them to point
    at a scratch database and to inject fake TMDb/OMDb/OpenAI clients.
    """
    settings = load_config()
    app = Flask(__name__)
    app.config.update(
        DATABASE_PATH=settings["database_path"],
        TMDB_API_KEY=settings["tmdb_api_key"],
        OMDB_API_KEY=settings["omdb_api_key"],
        OPENAI_API_KEY=settings["openai_api_key"],
        ANALYSIS=settings["analysis"],
        CERTIFICATION=settings["certification"],
    )
    app.config.update(overrides or {})

    if not app.testing:
        _setup_logging(app, settings["logging"])

    app.teardown_appcontext(close_db)
    app.register_blueprint(public_bp)
    app.register_blueprint(scraper_bp)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"ok": False, "error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        app.logger.exception("Unhandled error")
        return jsonify({"error": "An unexpected error occurred"}), 500

    return app
