from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator
from uuid import uuid4

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import (
    EvidenceRequestRow,
    EvidenceSubmissionRow,
    PCIInstanceRow,
    Risk,
    SecondaryControlInstanceRow,
)
from app.utils.jsonx import from_json
from control_assurance.errors import NotFoundError, PersistenceError
from control_assurance.models import (
    ControlStatus,
    Criticality,
    Dimension,
    EvidenceRequest,
    EvidenceRequestStatus,
    EvidenceScope,
    EvidenceSubmission,
    PCIInstance,
    PCIObjective,
    PCIStatus,
    ReviewDecision,
    RiskResponse,
    RiskResponseType,
    SecondaryControlInstance,
    SecondaryControlTemplate,
    parse_enum,
)

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid4())


@contextmanager
def transaction(db: Session, action: str) -> Iterator[None]:
    """One unit of work: commit on success, roll back on any failure."""
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Data store failure while trying to %s", action)
        raise PersistenceError(
            f"Could not {action}: the data store rejected the operation.",
            details={"action": action},
        ) from exc
    except Exception:
        db.rollback()
        raise


@contextmanager
def reading(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Data store failure while trying to %s", action)
        raise PersistenceError(
            f"Could not {action}: the data store is unavailable.",
            details={"action": action},
        ) from exc


def get_risk_row(db: Session, risk_id: str) -> Risk:
    row = db.get(Risk, risk_id)
    if row is None:
        raise NotFoundError(f"Risk {risk_id!r} not found.", details={"risk_id": risk_id})
    return row


def get_pci_row(db: Session, pci_id: str) -> PCIInstanceRow:
    row = db.get(PCIInstanceRow, pci_id)
    if row is None:
        raise NotFoundError(f"PCI instance {pci_id!r} not found.", details={"pci_instance_id": pci_id})
    return row


def get_control_row(db: Session, control_id: str) -> SecondaryControlInstanceRow:
    row = db.get(SecondaryControlInstanceRow, control_id)
    if row is None:
        raise NotFoundError(
            f"Secondary control {control_id!r} not found.",
            details={"secondary_control_instance_id": control_id},
        )
    return row


def get_request_row(db: Session, request_id: str) -> EvidenceRequestRow:
    row = db.get(EvidenceRequestRow, request_id)
    if row is None:
        raise NotFoundError(f"Evidence request {request_id!r} not found.", details={"evidence_request_id": request_id})
    return row


# Row -> domain


def control_from_row(row: SecondaryControlInstanceRow) -> SecondaryControlInstance:
    template = SecondaryControlTemplate(
        id=row.secondary_control_template_id,
        code=row.code,
        dimension=parse_enum(Dimension, row.dimension, field="dimension", code="invalid_attestation"),
        criticality=parse_enum(Criticality, row.criticality, field="criticality", code="invalid_attestation"),
        prompt=row.prompt or "",
        version=row.template_version or "1.0",
    )
    status = (
        parse_enum(ControlStatus, row.status, field="status", code="invalid_attestation")
        if row.status
        else ControlStatus.NOT_ATTESTED
    )
    return SecondaryControlInstance(
        id=row.id,
        template=template,
        status=status,
        evidence_exists=row.evidence_exists,
        notes=row.notes or "",
        na_rationale=row.na_rationale or "",
        attested_by=row.attested_by or "",
        attested_at=row.attested_at,
        pci_instance_id=row.pci_instance_id,
        version=int(row.version or 1),
    )


def pci_from_row(row: PCIInstanceRow) -> PCIInstance:
    return PCIInstance(
        id=row.id,
        risk_id=row.risk_id,
        pci_template_id=row.pci_template_id,
        objective=parse_enum(PCIObjective, row.objective, field="objective"),
        status=parse_enum(PCIStatus, row.status, field="status"),
        pci_template_version=row.pci_template_version or "1.0",
        statement=row.statement or "",
        parameters=from_json(row.parameters_json, {}),
        controls=tuple(control_from_row(c) for c in row.controls),
    )


def response_from_row(risk: Risk) -> RiskResponse | None:
    row = risk.response
    if row is None:
        return None
    return RiskResponse(
        risk_id=risk.id,
        response_type=parse_enum(RiskResponseType, row.response_type, field="response_type"),
        response_rationale=row.response_rationale or "",
        ai_proposed_response=(
            parse_enum(RiskResponseType, row.ai_proposed_response, field="ai_proposed_response")
            if row.ai_proposed_response
            else None
        ),
        ai_response_rationale=row.ai_response_rationale or "",
    )


def submission_from_row(row: EvidenceSubmissionRow) -> EvidenceSubmission:
    return EvidenceSubmission(
        id=row.id,
        request_id=row.evidence_request_id,
        submission_note=row.submission_note,
        submitted_by=row.submitted_by or "",
        submitted_at=row.submitted_at,
        decision=parse_enum(ReviewDecision, row.decision, field="decision") if row.decision else None,
        review_notes=row.review_notes or "",
        reviewed_by=row.reviewed_by or "",
        reviewed_at=row.reviewed_at,
    )


def request_from_row(row: EvidenceRequestRow) -> EvidenceRequest:
    return EvidenceRequest(
        id=row.id,
        due_date=row.due_date,
        scope=EvidenceScope(
            pci_instance_id=row.pci_instance_id,
            secondary_control_instance_id=row.secondary_control_instance_id,
            risk_id=row.risk_id,
        ),
        status=parse_enum(EvidenceRequestStatus, row.status, field="status"),
        is_critical_scope=bool(row.is_critical_scope),
        notes=row.notes or "",
        requested_by=row.requested_by or "",
        requested_at=row.requested_at,
        submissions=tuple(submission_from_row(s) for s in row.submissions),
    )


# Domain -> row


def write_control(row: SecondaryControlInstanceRow, control: SecondaryControlInstance) -> None:
    row.status = None if control.status is ControlStatus.NOT_ATTESTED else control.status.value
    row.evidence_exists = control.evidence_exists
    row.notes = control.notes
    row.na_rationale = control.na_rationale
    row.attested_by = control.attested_by
    row.attested_at = control.attested_at
    row.version = control.version


def control_rows_for(instance: PCIInstance) -> list[SecondaryControlInstanceRow]:
    return [
        SecondaryControlInstanceRow(
            id=c.id,
            pci_instance_id=instance.id,
            secondary_control_template_id=c.template.id,
            position=idx,
            code=c.code,
            dimension=c.dimension.value,
            criticality=c.criticality.value,
            prompt=c.template.prompt,
            template_version=c.template.version,
            status=None,
            evidence_exists=None,
            version=c.version,
        )
        for idx, c in enumerate(instance.controls)
    ]


def write_request(row: EvidenceRequestRow, request: EvidenceRequest) -> None:
    row.status = request.status.value
    by_id = {s.id: s for s in row.submissions}
    for seq, submission in enumerate(request.submissions, start=1):
        target = by_id.get(submission.id)
        if target is None:
            target = EvidenceSubmissionRow(
                id=submission.id,
                evidence_request_id=request.id,
                sequence=seq,
                submission_note=submission.submission_note,
                submitted_by=submission.submitted_by,
                submitted_at=submission.submitted_at or datetime.utcnow(),
            )
            row.submissions.append(target)
        target.decision = submission.decision.value if submission.decision else None
        target.review_notes = submission.review_notes
        target.reviewed_by = submission.reviewed_by
        target.reviewed_at = submission.reviewed_at


def requests_for_pci(db: Session, pci_row: PCIInstanceRow) -> list[EvidenceRequestRow]:
    control_ids = [c.id for c in pci_row.controls]
    clauses = [EvidenceRequestRow.pci_instance_id == pci_row.id]
    if control_ids:
        clauses.append(EvidenceRequestRow.secondary_control_instance_id.in_(control_ids))
    return list(
        db.execute(select(EvidenceRequestRow).where(or_(*clauses)).order_by(EvidenceRequestRow.requested_at))
        .scalars()
        .all()
    )
