"""
Document serializer — tree → YAML/JSON text (pure).

Mapping keys keep insertion order and list order is never touched,
so the same tree always renders to the same bytes.
"""

from __future__ import annotations

import json
from typing import Any

import yaml

from provisioner.core.models.document import PlaybookDocument
from provisioner.core.models.inventory import InventoryModel


class _IndentedDumper(yaml.SafeDumper):
    """Indent sequences under their parent key (``tasks:\\n  - name``)."""

    def increase_indent(self, flow: bool = False, indentless: bool = False):  # type: ignore[override]
        return super().increase_indent(flow, False)


def to_yaml(data: Any) -> str:
    """Order-preserving YAML dump."""
    return yaml.dump(
        data,
        Dumper=_IndentedDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=4096,
    )


def render_playbook(document: PlaybookDocument) -> str:
    """Playbook text with a leading document marker."""
    return "---\n" + to_yaml(document.to_list())


def render_inventory(inventory: InventoryModel) -> str:
    return "---\n" + to_yaml(inventory.to_dict())


def render_dynamic_inventory(inventory: InventoryModel) -> str:
    """``--list`` JSON for dynamic-inventory consumers."""
    return json.dumps(inventory.to_dynamic_inventory(), indent=2, ensure_ascii=False)
