"""
Provisioning API routes.

GET    /api/catalog                  → applications in the catalog
POST   /api/provision/resolve        → install order for a set of apps
POST   /api/provision/generate       → compiled setup package (not run)
GET    /api/deployments/<id>         → deployment directory status
DELETE /api/deployments/<id>         → remove one deployment
POST   /api/deployments/cleanup      → remove deployments older than N days
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from provisioner.core.catalog.registry import ApplicationCatalog
from provisioner.core.config.loader import EngineSettings
from provisioner.core.engine import ExecutionEngine
from provisioner.core.errors import ConfigurationError
from provisioner.core.models.server import ProvisionRequest

logger = logging.getLogger(__name__)

provision_bp = Blueprint("provision", __name__)


def _state() -> dict[str, Any]:
    return current_app.extensions["provisioner"]


def _settings() -> EngineSettings:
    return _state()["settings"]


def _catalog() -> ApplicationCatalog:
    return _state()["catalog"]


def _engine() -> ExecutionEngine:
    return _state()["engine"]


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ConfigurationError("Expected a JSON object body")
    return data


# ── Catalog ─────────────────────────────────────────────────────────


@provision_bp.route("/catalog")
def catalog_list():  # type: ignore[no-untyped-def]
    """Every application with its dependencies and supported OSes."""
    return jsonify({
        "applications": [
            {
                "id": app.id,
                "name": app.display_name,
                "dependencies": sorted(app.dependencies),
                "operating_systems": sorted(app.tasks_by_os),
                "secrets": list(app.secrets),
            }
            for app in _catalog()
        ],
    })


# ── Compile ─────────────────────────────────────────────────────────


@provision_bp.route("/provision/resolve", methods=["POST"])
def provision_resolve():  # type: ignore[no-untyped-def]
    """Dependency-first order for ``{"applications": [...]}``."""
    from provisioner.core.services.resolver import resolve_order

    apps = _json_body().get("applications")
    if not isinstance(apps, list) or not all(isinstance(a, str) for a in apps):
        return jsonify({"error": "'applications' must be a list of ids"}), 400

    return jsonify({"requested": apps, "order": resolve_order(apps, _catalog())})


@provision_bp.route("/provision/generate", methods=["POST"])
def provision_generate():  # type: ignore[no-untyped-def]
    """Compile a provisioning request into a setup package.

    Body: ``{applications, operating_system, server, order_id}``.
    Nothing is written to disk and nothing is run.
    """
    from provisioner.core.use_cases.provision import generate_setup

    data = _json_body()
    include_content = bool(data.pop("include_content", True))
    provision_request = ProvisionRequest.parse(data)
    package = generate_setup(provision_request, _catalog(), _settings())

    logger.info(
        "Generated setup for %s (order=%s, apps=%s)",
        package.hostname, package.order_id, package.resolved_order,
    )
    result = package.to_dict(include_content=include_content)
    result["success"] = True
    return jsonify(result)


# ── Deployments ─────────────────────────────────────────────────────


@provision_bp.route("/deployments/<deployment_id>")
def deployment_status(deployment_id: str):  # type: ignore[no-untyped-def]
    """Filesystem status and log tail of one deployment."""
    status = _engine().status(deployment_id)
    if not status.exists:
        return jsonify(status.model_dump(mode="json")), 404
    return jsonify(status.model_dump(mode="json"))


@provision_bp.route("/deployments/<deployment_id>", methods=["DELETE"])
def deployment_delete(deployment_id: str):  # type: ignore[no-untyped-def]
    """Remove one deployment directory."""
    if not _engine().delete(deployment_id):
        return jsonify({"deleted": False, "deployment_id": deployment_id}), 404
    return jsonify({"deleted": True, "deployment_id": deployment_id})


@provision_bp.route("/deployments/cleanup", methods=["POST"])
def deployment_cleanup():  # type: ignore[no-untyped-def]
    """Remove deployments at least ``max_age_days`` old (default: settings)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    days = data.get("max_age_days", _settings().cleanup_max_age_days)
    if isinstance(days, bool) or not isinstance(days, (int, float)) or days < 0:
        return jsonify({"error": "'max_age_days' must be a non-negative number"}), 400

    removed = _engine().cleanup(days * 24 * 60 * 60 * 1000)
    return jsonify({"removed": removed, "count": len(removed)})
