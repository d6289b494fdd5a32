from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import EvidenceRequestRow, PCIInstanceRow
from app.services.scoring_service import recompute_scores
from app.services.store import (
    get_control_row,
    get_pci_row,
    get_request_row,
    get_risk_row,
    new_id,
    reading,
    request_from_row,
    requests_for_pci,
    transaction,
    write_request,
)
from control_assurance.core import evidence_workflow
from control_assurance.models import (
    Criticality,
    EvidenceRequestStatus,
    EvidenceScope,
    ReviewDecision,
    parse_enum,
)

logger = logging.getLogger(__name__)


def _owning_pci(db: Session, row: EvidenceRequestRow) -> PCIInstanceRow | None:
    if row.pci_instance_id:
        return get_pci_row(db, row.pci_instance_id)
    if row.secondary_control_instance_id:
        return get_control_row(db, row.secondary_control_instance_id).pci_instance
    # Risk-scoped requests do not feed any single instance's confidence.
    return None


def _refresh_confidence(db: Session, row: EvidenceRequestRow) -> None:
    pci_row = _owning_pci(db, row)
    if pci_row is not None:
        recompute_scores(db, pci_row)


def _resolve_scope(db: Session, scope: EvidenceScope) -> bool:
    """Check the scope target exists; returns True when it is a critical secondary control."""
    if scope.pci_instance_id:
        get_pci_row(db, scope.pci_instance_id)
    elif scope.secondary_control_instance_id:
        control = get_control_row(db, scope.secondary_control_instance_id)
        return control.criticality == Criticality.CRITICAL.value
    elif scope.risk_id:
        get_risk_row(db, scope.risk_id)
    return False


def create_evidence_request(
    db: Session,
    *,
    scope: EvidenceScope,
    due_date: date | None,
    notes: str = "",
    is_critical_scope: bool = False,
    actor: str = "",
) -> EvidenceRequestRow:
    with transaction(db, "create evidence request"):
        request = evidence_workflow.create_request(
            request_id=new_id(),
            due_date=due_date,
            scope=scope,
            notes=notes,
            is_critical_scope=is_critical_scope,
            requested_by=actor,
        )
        critical_control = _resolve_scope(db, scope)
        row = EvidenceRequestRow(
            id=request.id,
            pci_instance_id=scope.pci_instance_id,
            secondary_control_instance_id=scope.secondary_control_instance_id,
            risk_id=scope.risk_id,
            status=request.status.value,
            due_date=request.due_date,
            is_critical_scope=request.is_critical_scope or critical_control,
            notes=request.notes,
            requested_by=request.requested_by,
            requested_at=request.requested_at,
        )
        db.add(row)
        _refresh_confidence(db, row)
    logger.info("Created evidence request %s due %s (by %s)", row.id, row.due_date, actor or "unknown")
    return row


def list_evidence_requests(
    db: Session,
    *,
    pci_instance_id: str | None = None,
    risk_id: str | None = None,
    status: str | None = None,
) -> list[EvidenceRequestRow]:
    with reading("list evidence requests"):
        if pci_instance_id:
            rows = requests_for_pci(db, get_pci_row(db, pci_instance_id))
        else:
            stmt = select(EvidenceRequestRow).order_by(EvidenceRequestRow.due_date)
            if risk_id:
                stmt = stmt.where(EvidenceRequestRow.risk_id == risk_id)
            rows = list(db.execute(stmt).scalars().all())
    if status:
        wanted = parse_enum(EvidenceRequestStatus, status, field="status").value
        rows = [r for r in rows if r.status == wanted]
    return rows


def get_evidence_request(db: Session, request_id: str) -> EvidenceRequestRow:
    with reading("load evidence request"):
        return get_request_row(db, request_id)


def submit_evidence(db: Session, request_id: str, *, note: str, actor: str = "") -> EvidenceRequestRow:
    with transaction(db, "submit evidence"):
        row = get_request_row(db, request_id)
        updated, submission = evidence_workflow.submit(
            request_from_row(row),
            submission_id=new_id(),
            note=note,
            submitted_by=actor,
        )
        write_request(row, updated)
        _refresh_confidence(db, row)
    logger.info("Evidence submitted for request %s (submission %s)", request_id, submission.id)
    return row


def review_evidence(
    db: Session,
    request_id: str,
    *,
    decision: ReviewDecision | str,
    review_notes: str = "",
    actor: str = "",
) -> EvidenceRequestRow:
    with transaction(db, "review evidence"):
        row = get_request_row(db, request_id)
        updated, reviewed = evidence_workflow.review(
            request_from_row(row),
            decision=decision,
            review_notes=review_notes,
            reviewed_by=actor,
        )
        write_request(row, updated)
        _refresh_confidence(db, row)
    logger.info("Evidence request %s reviewed: %s (by %s)", request_id, reviewed.decision, actor or "unknown")
    return row


def cancel_evidence_request(db: Session, request_id: str, *, actor: str = "") -> EvidenceRequestRow:
    with transaction(db, "cancel evidence request"):
        row = get_request_row(db, request_id)
        write_request(row, evidence_workflow.cancel(request_from_row(row)))
        _refresh_confidence(db, row)
    logger.info("Evidence request %s cancelled (by %s)", request_id, actor or "unknown")
    return row


def close_evidence_request(db: Session, request_id: str, *, actor: str = "") -> EvidenceRequestRow:
    with transaction(db, "close evidence request"):
        row = get_request_row(db, request_id)
        write_request(row, evidence_workflow.close(request_from_row(row)))
        _refresh_confidence(db, row)
    logger.info("Evidence request %s closed (by %s)", request_id, actor or "unknown")
    return row


def evidence_request_to_dict(row: EvidenceRequestRow, *, today: date | None = None) -> dict:
    request = request_from_row(row)
    out = request.to_dict(today=today or datetime.utcnow().date())
    out["submissions"] = [s.to_dict() for s in request.submissions]
    return out
