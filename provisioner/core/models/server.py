"""
Server models — what the order layer hands to the engine.

A ``ServerSpec`` is created per provisioning request and is read once,
at compile time. ``customer`` and ``order_id`` come from the billing
side and are display-only here.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from provisioner.core.errors import ConfigurationError
from provisioner.core.models.application import OperatingSystem

# Placeholder used while the IP address is still being allocated
PENDING_IP = "{{ server_ip }}"


class ResourceSpecs(BaseModel):
    """Purchased resources, carried into host metadata."""

    model_config = ConfigDict(frozen=True)

    cpu: str = "2"
    ram: str = "4GB"
    storage: str = "50GB"


class CustomerInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    company: str = ""


class ServerSpec(BaseModel):
    """A single target host."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    ip_address: str = PENDING_IP
    ssh_user: str = "root"
    credential_ref: str = "~/.ssh/id_rsa"
    operating_system: OperatingSystem = "linux"
    applications: list[str] = Field(default_factory=list)
    resource_specs: ResourceSpecs = Field(default_factory=ResourceSpecs)
    customer: CustomerInfo | None = None
    domain: str | None = None
    server_type: str = "vps"
    connection_vars: dict[str, Any] = Field(default_factory=dict)

    @field_validator("hostname")
    @classmethod
    def _check_hostname(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("hostname must not be empty")
        if any(ch.isspace() for ch in value):
            raise ValueError(f"hostname must not contain whitespace: {value!r}")
        return value

    @classmethod
    def parse(cls, data: dict[str, Any]) -> ServerSpec:
        """Validate raw input, raising ``ConfigurationError`` on bad data."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid server spec: {e}") from e


class ProvisionRequest(BaseModel):
    """``{applications[], operatingSystem, serverConfig}`` from the caller."""

    applications: list[str] = Field(default_factory=list)
    operating_system: OperatingSystem = "linux"
    server: ServerSpec
    order_id: str | None = None

    @model_validator(mode="after")
    def _server_matches_request(self) -> ProvisionRequest:
        if self.server.operating_system != self.operating_system:
            raise ValueError(
                f"server operating_system '{self.server.operating_system}' does not match "
                f"request operating_system '{self.operating_system}'"
            )
        if set(self.server.applications) != set(self.applications):
            raise ValueError(
                f"server applications {self.server.applications} do not match "
                f"request applications {self.applications}"
            )
        return self

    @classmethod
    def parse(cls, data: dict[str, Any]) -> ProvisionRequest:
        """Validate raw input, raising ``ConfigurationError`` on bad data.

        ``applications`` and ``operating_system`` given on only one of
        the request or its server block are copied to the other; when
        both give them they must agree.
        """
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Expected a mapping for the provisioning request, got {type(data).__name__}"
            )
        raw = dict(data)
        server = raw.get("server")
        if isinstance(server, dict):
            server = dict(server)
            for key in ("applications", "operating_system"):
                if key in raw:
                    server.setdefault(key, raw[key])
                elif key in server:
                    raw[key] = server[key]
            raw["server"] = server
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid provisioning request: {e}") from e
