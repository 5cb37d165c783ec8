"""
Provisioning API server — Flask app factory.

Every route lives under ``/api``. The app holds one settings object,
one catalog and one ``ExecutionEngine`` for its lifetime.
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify

from provisioner.core.catalog.registry import ApplicationCatalog
from provisioner.core.config.loader import EngineSettings
from provisioner.core.engine import ExecutionEngine
from provisioner.core.errors import (
    ConfigurationError,
    DeploymentConflictError,
    ExecutionEnvironmentError,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: EngineSettings | None = None,
    catalog: ApplicationCatalog | None = None,
    engine: ExecutionEngine | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        settings: Engine settings (default: built-in defaults).
        catalog: Application catalog (default: from settings).
        engine: Execution engine (default: one rooted at ``settings.work_dir``).

    Returns:
        Configured Flask application.
    """
    from provisioner.core.use_cases.provision import load_catalog

    settings = settings or EngineSettings()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 1024 * 1024  # request bodies are small JSON
    app.extensions["provisioner"] = {
        "settings": settings,
        "catalog": catalog or load_catalog(settings),
        "engine": engine or ExecutionEngine(settings=settings),
    }

    from provisioner.ui.web.routes_provision import provision_bp

    app.register_blueprint(provision_bp, url_prefix="/api")

    @app.errorhandler(ConfigurationError)
    def _configuration_error(e: ConfigurationError):  # type: ignore[no-untyped-def]
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(DeploymentConflictError)
    def _conflict_error(e: DeploymentConflictError):  # type: ignore[no-untyped-def]
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(ExecutionEnvironmentError)
    def _environment_error(e: ExecutionEnvironmentError):  # type: ignore[no-untyped-def]
        logger.error("Execution environment error: %s", e)
        return jsonify({"error": str(e)}), 500

    logger.info("Provisioning API created (work_dir=%s)", settings.work_dir)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting provisioning API on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False)
