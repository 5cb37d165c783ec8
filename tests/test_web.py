"""
Tests for the provisioning API — app factory and routes.
"""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest
from flask.testing import FlaskClient

from provisioner.core.config.loader import EngineSettings
from provisioner.ui.web.server import create_app


@pytest.fixture()
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "deployments"


@pytest.fixture()
def client(work_dir: Path, small_catalog) -> FlaskClient:
    app = create_app(EngineSettings(work_dir=str(work_dir)), catalog=small_catalog)
    app.config["TESTING"] = True
    return app.test_client()


def _request_body(**overrides) -> dict:
    body = {
        "applications": ["site", "app", "web", "db"],
        "operating_system": "linux",
        "order_id": "A-9",
        "server": {"hostname": "vps-9", "ip_address": "192.0.2.9"},
    }
    body.update(overrides)
    return body


def _fake_deployment(work_dir: Path, deployment_id: str, age_seconds: float = 0) -> Path:
    path = work_dir / deployment_id
    path.mkdir(parents=True)
    (path / "ansible.log").write_text("TASK [x] ok\n")
    if age_seconds:
        stamp = time.time() - age_seconds
        os.utime(path, (stamp, stamp))
    return path


class TestAppFactory:
    def test_unknown_route(self, client):
        assert client.get("/api/nothing").status_code == 404

    def test_default_catalog_when_none_given(self, tmp_path):
        app = create_app(EngineSettings(work_dir=str(tmp_path)))
        catalog = app.extensions["provisioner"]["catalog"]
        assert "wordpress" in catalog


class TestCatalogRoute:
    def test_lists_applications(self, client):
        resp = client.get("/api/catalog")
        assert resp.status_code == 200
        apps = {a["id"]: a for a in resp.get_json()["applications"]}
        assert set(apps) == {"web", "db", "app", "site", "tool"}
        assert apps["site"]["dependencies"] == ["app", "db"]
        assert apps["db"]["secrets"] == ["db_password"]
        assert apps["web"]["operating_systems"] == ["linux", "windows"]


class TestResolveRoute:
    def test_order(self, client):
        resp = client.post("/api/provision/resolve", json={"applications": ["site", "web", "app"]})
        assert resp.status_code == 200
        assert resp.get_json()["order"] == ["web", "app", "site"]

    def test_unknown_application(self, client):
        resp = client.post("/api/provision/resolve", json={"applications": ["ghost"]})
        assert resp.status_code == 400
        assert "ghost" in resp.get_json()["error"]

    def test_applications_must_be_a_list(self, client):
        resp = client.post("/api/provision/resolve", json={"applications": "web"})
        assert resp.status_code == 400

    def test_body_must_be_json_object(self, client):
        resp = client.post("/api/provision/resolve", data="nope", content_type="text/plain")
        assert resp.status_code == 400
        assert "JSON object" in resp.get_json()["error"]


class TestGenerateRoute:
    def test_package(self, client, work_dir):
        resp = client.post("/api/provision/generate", json=_request_body())
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["deployment_id"] == "deploy-A-9"
        assert data["resolved_order"] == ["web", "app", "db", "site"]
        assert "host_vars/vps-9.yml" in data["files"]
        assert data["contents"]["playbook.yml"].startswith("---\n")
        assert "ansible-playbook" in data["commands"]["deploy"]
        # Nothing is written or run
        assert not work_dir.exists()

    def test_without_content(self, client):
        resp = client.post("/api/provision/generate", json=_request_body(include_content=False))
        assert "contents" not in resp.get_json()

    def test_invalid_request(self, client):
        resp = client.post("/api/provision/generate", json={"applications": ["web"]})
        assert resp.status_code == 400
        assert "Invalid provisioning request" in resp.get_json()["error"]

    def test_unsupported_os(self, client):
        resp = client.post("/api/provision/generate", json=_request_body(operating_system="bsd"))
        assert resp.status_code == 400


class TestDeploymentRoutes:
    def test_status(self, client, work_dir):
        _fake_deployment(work_dir, "d-1")
        resp = client.get("/api/deployments/d-1")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["exists"] is True
        assert data["log_excerpt"] == "TASK [x] ok\n"

    def test_status_missing(self, client):
        resp = client.get("/api/deployments/nope")
        assert resp.status_code == 404
        assert resp.get_json()["exists"] is False

    def test_status_unsafe_id(self, client):
        resp = client.get("/api/deployments/..evil")
        assert resp.status_code == 400

    def test_delete(self, client, work_dir):
        path = _fake_deployment(work_dir, "d-2")
        resp = client.delete("/api/deployments/d-2")
        assert resp.status_code == 200
        assert resp.get_json() == {"deleted": True, "deployment_id": "d-2"}
        assert not path.exists()
        assert client.delete("/api/deployments/d-2").status_code == 404

    def test_cleanup(self, client, work_dir):
        _fake_deployment(work_dir, "old", age_seconds=3 * 24 * 3600)
        _fake_deployment(work_dir, "new")
        resp = client.post("/api/deployments/cleanup", json={"max_age_days": 1})
        assert resp.status_code == 200
        assert resp.get_json() == {"removed": ["old"], "count": 1}
        assert (work_dir / "new").is_dir()

    def test_cleanup_default_age(self, client, work_dir):
        _fake_deployment(work_dir, "recent", age_seconds=3600)
        resp = client.post("/api/deployments/cleanup")
        assert resp.get_json() == {"removed": [], "count": 0}

    @pytest.mark.parametrize("bad", [-1, "soon", True])
    def test_cleanup_rejects_bad_age(self, client, bad):
        resp = client.post("/api/deployments/cleanup", json={"max_age_days": bad})
        assert resp.status_code == 400
