from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.connectors import fetch_template_suggestions
from app.models import Risk, RiskResponseRow
from app.services.store import get_risk_row, pci_from_row, reading, response_from_row, transaction
from control_assurance.catalog import load_catalog
from control_assurance.core import (
    check_activation_gate,
    compute_dime_score,
    compute_residual_risk,
    recommend_templates,
)
from control_assurance.errors import ValidationError
from control_assurance.models import (
    GateResult,
    ResidualRisk,
    RiskResponse,
    RiskResponseType,
    TemplateSuggestion,
    parse_enum,
)

logger = logging.getLogger(__name__)


def risk_to_dict(row: Risk) -> dict:
    response = response_from_row(row)
    return {
        "id": row.id,
        "title": row.title,
        "status": row.status,
        "inherent_likelihood": row.inherent_likelihood,
        "inherent_impact": row.inherent_impact,
        "activated_at": row.activated_at.isoformat() if row.activated_at else None,
        "response": response.to_dict() if response else None,
    }


def register_risk(
    db: Session,
    risk_id: str,
    *,
    title: str = "",
    inherent_likelihood: int | None = None,
    inherent_impact: int | None = None,
) -> Risk:
    """Create or refresh the local reference to a register risk."""
    with transaction(db, "register risk"):
        row = db.get(Risk, risk_id)
        if row is None:
            row = Risk(id=risk_id, status="draft")
            db.add(row)
        row.title = (title or "").strip()
        if inherent_likelihood is not None:
            row.inherent_likelihood = int(inherent_likelihood)
        if inherent_impact is not None:
            row.inherent_impact = int(inherent_impact)
    logger.info("Registered risk reference %s", risk_id)
    return row


def get_risk(db: Session, risk_id: str) -> Risk:
    with reading("load risk"):
        return get_risk_row(db, risk_id)


def get_response(db: Session, risk_id: str) -> RiskResponse | None:
    with reading("load risk response"):
        return response_from_row(get_risk_row(db, risk_id))


def upsert_response(
    db: Session,
    risk_id: str,
    *,
    response_type: RiskResponseType | str,
    response_rationale: str = "",
    ai_proposed_response: RiskResponseType | str | None = None,
    ai_response_rationale: str = "",
    actor: str = "",
) -> RiskResponse:
    chosen = parse_enum(RiskResponseType, response_type, field="response_type")
    proposed = (
        parse_enum(RiskResponseType, ai_proposed_response, field="ai_proposed_response")
        if ai_proposed_response
        else None
    )
    with transaction(db, "save risk response"):
        risk = get_risk_row(db, risk_id)
        row = risk.response
        if row is None:
            row = RiskResponseRow(risk_id=risk.id)
            risk.response = row
        row.response_type = chosen.value
        row.response_rationale = (response_rationale or "").strip()
        row.ai_proposed_response = proposed.value if proposed else None
        row.ai_response_rationale = (ai_response_rationale or "").strip()
        row.updated_by = actor
    logger.info("Risk %s response set to %s (by %s)", risk_id, chosen.value, actor or "unknown")
    return response_from_row(risk)


def _gate(risk: Risk) -> GateResult:
    return check_activation_gate(response_from_row(risk), [pci_from_row(p) for p in risk.pci_instances])


def evaluate_gate(db: Session, risk_id: str) -> GateResult:
    with reading("evaluate activation gate"):
        return _gate(get_risk_row(db, risk_id))


def activate_risk(db: Session, risk_id: str, *, actor: str = "") -> GateResult:
    with transaction(db, "activate risk"):
        risk = get_risk_row(db, risk_id)
        gate = _gate(risk)
        if not gate.can_activate:
            raise ValidationError(gate.validation_message, code="activation_blocked", details=gate.to_dict())
        risk.status = "active"
        risk.activated_at = datetime.utcnow()
    logger.info("Activated risk %s (by %s)", risk_id, actor or "unknown")
    return gate


def residual_for_risk(
    db: Session,
    risk_id: str,
    *,
    inherent_likelihood: int | None = None,
    inherent_impact: int | None = None,
) -> ResidualRisk:
    with reading("compute residual risk"):
        risk = get_risk_row(db, risk_id)
        likelihood = inherent_likelihood if inherent_likelihood is not None else risk.inherent_likelihood
        impact = inherent_impact if inherent_impact is not None else risk.inherent_impact
        if likelihood is None or impact is None:
            raise ValidationError(
                "Inherent likelihood and impact are required to compute residual risk.",
                code="inherent_rating_required",
                details={"risk_id": risk_id},
            )
        controls = []
        for row in risk.pci_instances:
            instance = pci_from_row(row)
            controls.append((instance, compute_dime_score(instance.controls)))
    return compute_residual_risk(int(likelihood), int(impact), controls)


def suggestions_for_risk(db: Session, risk_id: str) -> list[TemplateSuggestion]:
    with reading("load risk response"):
        risk = get_risk_row(db, risk_id)
        response = response_from_row(risk)
    if response is None:
        raise ValidationError(
            "Set a risk response before requesting control suggestions.",
            code="response_required",
            details={"risk_id": risk_id},
        )
    if not response.requires_controls:
        return []
    provided = fetch_template_suggestions(
        risk_id=risk.id,
        risk_title=risk.title,
        response_type=response.response_type.value,
        response_rationale=response.response_rationale,
    )
    return recommend_templates(response.response_type, provided, load_catalog())
