from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from .errors import DomainError, NotFoundError
from .models import (
    Criticality,
    Dimension,
    PCIObjective,
    PCITemplate,
    SecondaryControlTemplate,
    parse_enum,
)

CATALOG_PATH = Path(__file__).resolve().parent / "data" / "pci_catalog.json"


@dataclass(slots=True, frozen=True)
class TemplateCatalog:
    version: str
    templates: tuple[PCITemplate, ...]
    secondary_controls: dict[str, tuple[SecondaryControlTemplate, ...]]

    def get_template(self, template_id: str) -> PCITemplate:
        for template in self.templates:
            if template.id == template_id:
                return template
        raise NotFoundError(f"PCI template {template_id!r} not found.", details={"template_id": template_id})

    def secondary_templates_for(self, template_id: str) -> tuple[SecondaryControlTemplate, ...]:
        self.get_template(template_id)
        return tuple(sc for sc in self.secondary_controls.get(template_id, ()) if sc.is_active)

    def active_templates(self) -> tuple[PCITemplate, ...]:
        return tuple(t for t in self.templates if t.is_active)


def _parse_secondary(template_id: str, version: str, raw: dict[str, Any]) -> SecondaryControlTemplate:
    code = str(raw.get("code", "")).strip()
    if not code:
        raise DomainError(f"Secondary control without a code in template {template_id}.", code="invalid_catalog")
    return SecondaryControlTemplate(
        id=f"{template_id}:{code}",
        pci_template_id=template_id,
        code=code,
        dimension=parse_enum(Dimension, raw.get("dimension"), field="dimension", code="invalid_catalog"),
        criticality=parse_enum(Criticality, raw.get("criticality"), field="criticality", code="invalid_catalog"),
        prompt=str(raw.get("prompt", "")),
        version=version,
        is_active=bool(raw.get("is_active", True)),
    )


def parse_catalog(payload: dict[str, Any]) -> TemplateCatalog:
    version = str(payload.get("version", "1.0"))
    templates: list[PCITemplate] = []
    secondary: dict[str, tuple[SecondaryControlTemplate, ...]] = {}
    for raw in payload.get("templates", []) or []:
        template_id = str(raw.get("id", "")).strip()
        schema = raw.get("parameters_schema") or {}
        templates.append(
            PCITemplate(
                id=template_id,
                name=str(raw.get("name", "")),
                category=str(raw.get("category", "")),
                objective_default=parse_enum(
                    PCIObjective, raw.get("objective_default"), field="objective_default", code="invalid_catalog"
                ),
                purpose=str(raw.get("purpose", "")),
                required_parameters=tuple(str(x) for x in schema.get("required", []) or []),
                optional_parameters=tuple(str(x) for x in schema.get("optional", []) or []),
                version=str(raw.get("version", version)),
                is_active=bool(raw.get("is_active", True)),
            )
        )
        secondary[template_id] = tuple(
            _parse_secondary(template_id, version, sc) for sc in raw.get("secondary_controls", []) or []
        )
    return TemplateCatalog(version=version, templates=tuple(templates), secondary_controls=secondary)


@lru_cache
def load_catalog(path: str | None = None) -> TemplateCatalog:
    source = Path(path) if path else CATALOG_PATH
    return parse_catalog(json.loads(source.read_text(encoding="utf-8")))
