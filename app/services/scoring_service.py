from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models import ConfidenceScoreRow, DerivedDIMEScoreRow, PCIInstanceRow
from app.services.store import control_from_row, request_from_row, requests_for_pci
from app.utils.jsonx import from_json, to_json
from control_assurance.core import (
    DEFAULT_WEIGHTS,
    ConfidenceInputs,
    ConfidenceWeights,
    compute_confidence,
    compute_dime_score,
    dimension_breakdown,
    normalize_effectiveness,
)
from control_assurance.core.effectiveness import dimension_percentage, effectiveness_band, effectiveness_percentage
from control_assurance.models import ConfidenceScore, DerivedDIMEScore

logger = logging.getLogger(__name__)


def confidence_weights() -> ConfidenceWeights:
    settings = get_settings()
    return replace(
        DEFAULT_WEIGHTS,
        high_threshold=settings.confidence_high_threshold,
        medium_threshold=settings.confidence_medium_threshold,
    )


def recompute_scores(
    db: Session,
    pci_row: PCIInstanceRow,
    *,
    now: datetime | None = None,
) -> tuple[DerivedDIMEScore, ConfidenceScore]:
    """Recompute and upsert both derived rows for one PCI instance. Caller commits."""
    db.flush()
    now = now or datetime.utcnow()
    controls = tuple(control_from_row(c) for c in pci_row.controls)
    requests = tuple(request_from_row(r) for r in requests_for_pci(db, pci_row))

    dime = compute_dime_score(controls, computed_at=now)
    confidence = compute_confidence(
        ConfidenceInputs(controls=controls, evidence_requests=requests, now=now),
        weights=confidence_weights(),
    )

    dime_row = pci_row.dime_score
    if dime_row is None:
        dime_row = DerivedDIMEScoreRow(pci_instance_id=pci_row.id)
        pci_row.dime_score = dime_row
    dime_row.d_score = dime.d_score
    dime_row.i_score = dime.i_score
    dime_row.m_score = dime.m_score
    dime_row.e_raw = dime.e_raw
    dime_row.e_final = dime.e_final
    dime_row.cap_applied = dime.cap_applied
    dime_row.cap_details_json = to_json(dime.cap_details.to_dict())
    dime_row.cascade_applied = dime.cascade_applied
    dime_row.constrained_by = dime.constrained_by.value
    dime_row.calc_trace_json = to_json(dime.calc_trace())
    dime_row.computed_at = now

    conf_row = pci_row.confidence
    if conf_row is None:
        conf_row = ConfidenceScoreRow(pci_instance_id=pci_row.id)
        pci_row.confidence = conf_row
    conf_row.confidence_score = confidence.confidence_score
    conf_row.confidence_label = confidence.confidence_label.value
    conf_row.drivers_json = to_json([d.to_dict() for d in confidence.drivers])
    conf_row.computed_at = now

    logger.info(
        "Recomputed scores for PCI %s: D=%.2f I=%.2f M=%.2f E=%.2f confidence=%s (%s)",
        pci_row.id,
        dime.d_score,
        dime.i_score,
        dime.m_score,
        dime.e_final,
        confidence.confidence_score,
        confidence.confidence_label.value,
    )
    return dime, confidence


def stored_scores(pci_row: PCIInstanceRow) -> dict[str, Any]:
    dime_row = pci_row.dime_score
    conf_row = pci_row.confidence
    attested = any(c.status for c in pci_row.controls)

    dime: dict[str, Any] | None = None
    effectiveness: dict[str, Any] = normalize_effectiveness(None).to_dict()
    dimensions: dict[str, Any] = {}
    if dime_row is not None:
        dime = {
            "d_score": dime_row.d_score,
            "i_score": dime_row.i_score,
            "m_score": dime_row.m_score,
            "e_raw": dime_row.e_raw,
            "e_final": dime_row.e_final,
            "cap_applied": bool(dime_row.cap_applied),
            "cap_details": from_json(dime_row.cap_details_json, {}),
            "cascade_applied": bool(dime_row.cascade_applied),
            "constrained_by": dime_row.constrained_by,
            "calc_trace": from_json(dime_row.calc_trace_json, {}),
            "computed_at": dime_row.computed_at.isoformat() if dime_row.computed_at else None,
        }
        if attested:
            pct = effectiveness_percentage(dime_row.d_score, dime_row.i_score, dime_row.m_score, dime_row.e_final)
            label, color = effectiveness_band(pct)
            effectiveness = {"computed": True, "percentage": pct, "label": label, "color": color}

    confidence: dict[str, Any] | None = None
    if conf_row is not None:
        confidence = {
            "confidence_score": conf_row.confidence_score,
            "confidence_label": conf_row.confidence_label,
            "drivers": from_json(conf_row.drivers_json, []),
            "computed_at": conf_row.computed_at.isoformat() if conf_row.computed_at else None,
        }

    if dime is not None:
        for key, field in (("D", "d_score"), ("I", "i_score"), ("M", "m_score"), ("E", "e_final")):
            pct = dimension_percentage(dime[field])
            label, color = effectiveness_band(pct)
            dimensions[key] = {"score": dime[field], "percentage": pct, "label": label, "color": color}
    return {
        "pci_instance_id": pci_row.id,
        "dime": dime,
        "dimensions": dimensions,
        "effectiveness": effectiveness,
        "confidence": confidence,
    }


def scores_payload(pci_id: str, dime: DerivedDIMEScore, confidence: ConfidenceScore) -> dict[str, Any]:
    return {
        "pci_instance_id": pci_id,
        "dime": dime.to_dict(),
        "dimensions": dimension_breakdown(dime),
        "effectiveness": normalize_effectiveness(dime).to_dict(),
        "confidence": confidence.to_dict(),
    }
