from __future__ import annotations

from fastapi import APIRouter, Query

from control_assurance.catalog import load_catalog
from control_assurance.models import PCITemplate, SecondaryControlTemplate

router = APIRouter(prefix="/api/templates", tags=["templates"])


def _secondary_to_dict(sc: SecondaryControlTemplate) -> dict:
    return {
        "id": sc.id,
        "code": sc.code,
        "dimension": sc.dimension.value,
        "criticality": sc.criticality.value,
        "prompt": sc.prompt,
    }


def _template_to_dict(template: PCITemplate, *, with_controls: bool) -> dict:
    out = {
        "id": template.id,
        "name": template.name,
        "category": template.category,
        "objective_default": template.objective_default.value,
        "purpose": template.purpose,
        "parameters_schema": {
            "required": list(template.required_parameters),
            "optional": list(template.optional_parameters),
        },
        "version": template.version,
        "is_active": template.is_active,
    }
    if with_controls:
        out["secondary_controls"] = [
            _secondary_to_dict(sc) for sc in load_catalog().secondary_templates_for(template.id)
        ]
    return out


@router.get("")
def list_templates(include_controls: bool = Query(default=False)):
    catalog = load_catalog()
    return {
        "version": catalog.version,
        "items": [_template_to_dict(t, with_controls=include_controls) for t in catalog.active_templates()],
    }


@router.get("/{template_id}")
def get_template(template_id: str):
    return _template_to_dict(load_catalog().get_template(template_id), with_controls=True)
