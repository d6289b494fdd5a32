from __future__ import annotations

import pytest

from control_assurance.catalog import load_catalog, parse_catalog
from control_assurance.core import build_pci_instance, validate_parameters
from control_assurance.errors import DomainError, NotFoundError, ValidationError
from control_assurance.models import ControlStatus, Criticality, Dimension, PCIObjective, PCIStatus

PCI_01_PARAMS = {
    "prohibited_activity": "Trading in sanctioned instruments",
    "scope_boundary": "All desks",
    "enforcement_mechanism": "Order management hard block",
    "owner_role": "Head of Trading",
    "method": "System enforced",
    "trigger_frequency": "Continuous",
}


def test_library_has_sixteen_templates_of_ten_controls() -> None:
    catalog = load_catalog()
    assert len(catalog.templates) == 16
    for template in catalog.templates:
        controls = catalog.secondary_templates_for(template.id)
        assert len(controls) == 10, template.id
        for dimension in Dimension:
            critical = [c for c in controls if c.dimension is dimension and c.criticality is Criticality.CRITICAL]
            assert len(critical) == 1, (template.id, dimension)


def test_template_lookup() -> None:
    catalog = load_catalog()
    template = catalog.get_template("PCI-01")
    assert template.objective_default is PCIObjective.LIKELIHOOD
    assert "prohibited_activity" in template.required_parameters
    with pytest.raises(NotFoundError):
        catalog.get_template("PCI-99")


def test_catalog_rejects_unknown_dimension() -> None:
    payload = {
        "templates": [
            {
                "id": "X-1",
                "name": "Broken",
                "objective_default": "likelihood",
                "secondary_controls": [{"code": "Q1", "dimension": "Q", "criticality": "critical"}],
            }
        ]
    }
    with pytest.raises(DomainError) as exc:
        parse_catalog(payload)
    assert exc.value.code == "invalid_catalog"


def test_instance_copies_every_secondary_control_unattested() -> None:
    catalog = load_catalog()
    template = catalog.get_template("PCI-01")
    instance = build_pci_instance(
        instance_id="pci-1",
        risk_id="risk-1",
        template=template,
        secondary_templates=catalog.secondary_templates_for("PCI-01"),
        parameters=PCI_01_PARAMS,
        new_control_id=lambda sc: f"pci-1:{sc.code}",
        statement="  Block sanctioned trades  ",
    )
    assert instance.status is PCIStatus.DRAFT
    assert instance.objective is PCIObjective.LIKELIHOOD
    assert instance.statement == "Block sanctioned trades"
    assert len(instance.controls) == 10
    assert all(c.status is ControlStatus.NOT_ATTESTED for c in instance.controls)
    assert instance.controls[0].id == "pci-1:D1"
    assert instance.attested_count == 0
    assert not instance.is_fully_attested


def test_objective_override() -> None:
    catalog = load_catalog()
    instance = build_pci_instance(
        instance_id="pci-2",
        risk_id="risk-1",
        template=catalog.get_template("PCI-01"),
        secondary_templates=catalog.secondary_templates_for("PCI-01"),
        parameters=PCI_01_PARAMS,
        new_control_id=lambda sc: sc.code,
        objective="both",
    )
    assert instance.objective is PCIObjective.BOTH


def test_missing_parameters_are_listed() -> None:
    template = load_catalog().get_template("PCI-01")
    params = dict(PCI_01_PARAMS, enforcement_mechanism="  ")
    params.pop("method")
    with pytest.raises(ValidationError) as exc:
        validate_parameters(template, params)
    assert exc.value.code == "missing_parameters"
    assert exc.value.details["missing"] == ["method", "enforcement_mechanism"]


def test_blank_optional_parameters_are_dropped() -> None:
    template = load_catalog().get_template("PCI-01")
    clean = validate_parameters(template, dict(PCI_01_PARAMS, exceptions="", owner_role=" Head of Trading "))
    assert "exceptions" not in clean
    assert clean["owner_role"] == "Head of Trading"
