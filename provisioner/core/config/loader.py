"""
Configuration loader — reads provisioner.yml and request files.

Settings are resolved in precedence order:
    PROV_* env vars  >  provisioner.yml  >  built-in defaults

Request and server files are YAML (JSON is accepted too, being a YAML
subset) and are validated into Pydantic models.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from provisioner.core.errors import ConfigurationError
from provisioner.core.models.server import ProvisionRequest, ServerSpec

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "provisioner.yml"

# env var → settings field
_ENV_OVERRIDES = {
    "PROV_WORK_DIR": "work_dir",
    "PROV_PLAYBOOK_BINARY": "playbook_binary",
    "PROV_ADHOC_BINARY": "adhoc_binary",
    "PROV_VAULT_PASSWORD_FILE": "vault_password_file",
    "PROV_TIMEZONE": "timezone",
    "PROV_DEFAULT_TIMEOUT": "default_timeout_seconds",
    "PROV_MAX_WORKERS": "max_workers",
    "PROV_CATALOG_FILE": "catalog_file",
}


class EngineSettings(BaseModel):
    """Everything the compilers and the execution engine read from config."""

    work_dir: str = "/tmp/ansible-deployments"
    playbook_binary: str = "ansible-playbook"
    adhoc_binary: str = "ansible"
    vault_password_file: str | None = None
    catalog_file: str | None = None
    timezone: str = "Europe/Prague"
    connection_timeout: int = 30
    default_timeout_seconds: float | None = None
    max_workers: int = 4
    cleanup_max_age_days: float = 7
    log_excerpt_chars: int = 2000

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir).expanduser()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provisioner.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provisioner.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_yaml(path: Path) -> Any:
    if not path.is_file():
        raise ConfigurationError(f"File not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e


def load_settings(path: Path | None = None, *, env: dict[str, str] | None = None) -> EngineSettings:
    """Load engine settings from file and environment.

    Args:
        path: Explicit path to provisioner.yml. If None, searches upward;
            a missing file is fine and yields defaults.
        env: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigurationError: If the file or an override is invalid.
    """
    env = os.environ if env is None else env
    data: dict[str, Any] = {}

    if path is None:
        path = find_config_file()

    if path is not None:
        logger.debug("Loading settings from %s", path)
        loaded = _read_yaml(path)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Expected a YAML mapping in {path}, got {type(loaded).__name__}"
            )
        # The file may wrap settings under an "engine" key or be flat
        section = loaded.get("engine", loaded)
        if section is None:
            section = {}
        if not isinstance(section, dict):
            raise ConfigurationError(
                f"'engine' in {path} must be a mapping, got {type(section).__name__}"
            )
        data = dict(section)

    for var, field_name in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[field_name] = value

    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid engine settings: {e}") from e


def load_request(path: Path) -> ProvisionRequest:
    """Read a provisioning request file (YAML or JSON)."""
    data = _read_yaml(path)
    return ProvisionRequest.parse(data)


def load_servers(path: Path) -> list[ServerSpec]:
    """Read a list of server specs, either bare or under a ``servers`` key."""
    data = _read_yaml(path)
    if isinstance(data, dict):
        data = data.get("servers")
    if not isinstance(data, list):
        raise ConfigurationError(f"Expected a list of servers in {path}")
    return [ServerSpec.parse(item) for item in data]
