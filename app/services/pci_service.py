from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import PCIInstanceRow
from app.services.scoring_service import recompute_scores, scores_payload, stored_scores
from app.services.store import (
    control_rows_for,
    get_pci_row,
    get_risk_row,
    new_id,
    pci_from_row,
    reading,
    transaction,
)
from app.utils.jsonx import to_json
from control_assurance.catalog import load_catalog
from control_assurance.core import build_pci_instance, check_instance_activation, check_instance_retirement
from control_assurance.models import PCIStatus

logger = logging.getLogger(__name__)


def pci_to_dict(row: PCIInstanceRow, *, include_scores: bool = True) -> dict[str, Any]:
    instance = pci_from_row(row)
    out: dict[str, Any] = {
        "id": instance.id,
        "risk_id": instance.risk_id,
        "pci_template_id": instance.pci_template_id,
        "pci_template_version": instance.pci_template_version,
        "objective": instance.objective.value,
        "statement": instance.statement,
        "status": instance.status.value,
        "parameters": instance.parameters,
        "attested_count": instance.attested_count,
        "control_count": len(instance.controls),
        "is_fully_attested": instance.is_fully_attested,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "activated_at": row.activated_at.isoformat() if row.activated_at else None,
        "retired_at": row.retired_at.isoformat() if row.retired_at else None,
        "secondary_controls": [
            {
                "id": c.id,
                "code": c.code,
                "dimension": c.dimension.value,
                "criticality": c.criticality.value,
                "prompt": c.template.prompt,
                "status": c.status.value,
                "evidence_exists": c.evidence_exists,
                "notes": c.notes,
                "na_rationale": c.na_rationale,
                "attested_by": c.attested_by,
                "attested_at": c.attested_at.isoformat() if c.attested_at else None,
                "version": c.version,
            }
            for c in instance.controls
        ],
    }
    if include_scores:
        out["scores"] = stored_scores(row)
    return out


def instantiate_pci(
    db: Session,
    *,
    risk_id: str,
    template_id: str,
    parameters: dict[str, Any],
    objective: str | None = None,
    statement: str = "",
    actor: str = "",
) -> PCIInstanceRow:
    catalog = load_catalog()
    with transaction(db, "create PCI instance"):
        risk = get_risk_row(db, risk_id)
        template = catalog.get_template(template_id)
        instance = build_pci_instance(
            instance_id=new_id(),
            risk_id=risk.id,
            template=template,
            secondary_templates=catalog.secondary_templates_for(template.id),
            parameters=parameters,
            new_control_id=lambda _sc: new_id(),
            objective=objective,
            statement=statement,
        )
        row = PCIInstanceRow(
            id=instance.id,
            risk_id=instance.risk_id,
            pci_template_id=instance.pci_template_id,
            pci_template_version=instance.pci_template_version,
            objective=instance.objective.value,
            statement=instance.statement,
            status=instance.status.value,
            parameters_json=to_json(instance.parameters),
            created_by=actor,
        )
        row.controls = control_rows_for(instance)
        db.add(row)
        recompute_scores(db, row)
    logger.info(
        "Created PCI instance %s from %s for risk %s (%s secondary controls)",
        row.id,
        template.id,
        risk_id,
        len(row.controls),
    )
    return row


def list_pci_for_risk(db: Session, risk_id: str, *, include_retired: bool = True) -> list[PCIInstanceRow]:
    with reading("list PCI instances"):
        get_risk_row(db, risk_id)
        stmt = select(PCIInstanceRow).where(PCIInstanceRow.risk_id == risk_id).order_by(PCIInstanceRow.created_at)
        rows = list(db.execute(stmt).scalars().all())
    if include_retired:
        return rows
    return [r for r in rows if r.status != PCIStatus.RETIRED.value]


def get_pci(db: Session, pci_id: str) -> PCIInstanceRow:
    with reading("load PCI instance"):
        return get_pci_row(db, pci_id)


def activate_pci(db: Session, pci_id: str, *, actor: str = "") -> PCIInstanceRow:
    with transaction(db, "activate PCI instance"):
        row = get_pci_row(db, pci_id)
        check_instance_activation(pci_from_row(row))
        row.status = PCIStatus.ACTIVE.value
        row.activated_at = datetime.utcnow()
    logger.info("Activated PCI instance %s (by %s)", pci_id, actor or "unknown")
    return row


def retire_pci(db: Session, pci_id: str, *, actor: str = "") -> PCIInstanceRow:
    with transaction(db, "retire PCI instance"):
        row = get_pci_row(db, pci_id)
        check_instance_retirement(pci_from_row(row))
        row.status = PCIStatus.RETIRED.value
        row.retired_at = datetime.utcnow()
    logger.info("Retired PCI instance %s (by %s)", pci_id, actor or "unknown")
    return row


def recompute_pci(db: Session, pci_id: str) -> dict[str, Any]:
    with transaction(db, "recompute PCI scores"):
        row = get_pci_row(db, pci_id)
        dime, confidence = recompute_scores(db, row)
    return scores_payload(pci_id, dime, confidence)
