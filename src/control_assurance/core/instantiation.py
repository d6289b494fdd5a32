from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from ..errors import ValidationError
from ..models import (
    PCIInstance,
    PCIObjective,
    PCIStatus,
    PCITemplate,
    SecondaryControlInstance,
    SecondaryControlTemplate,
    parse_enum,
)

# Every instance records these regardless of the template's own parameter schema.
BASE_PARAMETERS = ("scope_boundary", "method", "trigger_frequency", "owner_role")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_parameters(template: PCITemplate, parameters: Mapping[str, Any]) -> dict[str, Any]:
    required = list(dict.fromkeys(BASE_PARAMETERS + template.required_parameters))
    missing = [name for name in required if _is_blank(parameters.get(name))]
    if missing:
        raise ValidationError(
            f"Missing required parameters for {template.id}: {', '.join(missing)}",
            code="missing_parameters",
            details={"template_id": template.id, "missing": missing},
        )
    return {k: (v.strip() if isinstance(v, str) else v) for k, v in parameters.items() if not _is_blank(v)}


def build_pci_instance(
    *,
    instance_id: str,
    risk_id: str,
    template: PCITemplate,
    secondary_templates: tuple[SecondaryControlTemplate, ...],
    parameters: Mapping[str, Any],
    new_control_id: Callable[[SecondaryControlTemplate], str],
    objective: PCIObjective | str | None = None,
    statement: str = "",
) -> PCIInstance:
    if not template.is_active:
        raise ValidationError(f"PCI template {template.id} is retired from the library.", code="template_inactive")
    clean = validate_parameters(template, parameters)
    chosen = (
        parse_enum(PCIObjective, objective, field="objective") if objective else template.objective_default
    )
    controls = tuple(
        SecondaryControlInstance(id=new_control_id(sc), template=sc, pci_instance_id=instance_id)
        for sc in secondary_templates
        if sc.is_active
    )
    return PCIInstance(
        id=instance_id,
        risk_id=risk_id,
        pci_template_id=template.id,
        objective=chosen,
        status=PCIStatus.DRAFT,
        pci_template_version=template.version,
        statement=(statement or "").strip(),
        parameters=clean,
        controls=controls,
    )
