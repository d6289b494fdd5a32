from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_actor, get_db
from app.schemas import EvidenceRequestCreate, EvidenceReview, EvidenceSubmissionCreate
from app.services import evidence_service
from control_assurance.models import EvidenceScope

router = APIRouter(prefix="/api/evidence-requests", tags=["evidence"])


@router.post("", status_code=201)
def create_request(body: EvidenceRequestCreate, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    row = evidence_service.create_evidence_request(
        db,
        scope=EvidenceScope(
            pci_instance_id=body.pci_instance_id,
            secondary_control_instance_id=body.secondary_control_instance_id,
            risk_id=body.risk_id,
        ),
        due_date=body.due_date,
        notes=body.notes,
        is_critical_scope=body.is_critical_scope,
        actor=actor,
    )
    return evidence_service.evidence_request_to_dict(row)


@router.get("")
def list_requests(
    pci_instance_id: Optional[str] = Query(default=None),
    risk_id: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    rows = evidence_service.list_evidence_requests(db, pci_instance_id=pci_instance_id, risk_id=risk_id, status=status)
    return {"items": [evidence_service.evidence_request_to_dict(r) for r in rows]}


@router.get("/{request_id}")
def get_request(request_id: str, db: Session = Depends(get_db)):
    return evidence_service.evidence_request_to_dict(evidence_service.get_evidence_request(db, request_id))


@router.post("/{request_id}/submissions", status_code=201)
def submit(
    request_id: str,
    body: EvidenceSubmissionCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    row = evidence_service.submit_evidence(db, request_id, note=body.submission_note, actor=actor)
    return evidence_service.evidence_request_to_dict(row)


@router.post("/{request_id}/review")
def review(request_id: str, body: EvidenceReview, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    row = evidence_service.review_evidence(
        db,
        request_id,
        decision=body.decision,
        review_notes=body.review_notes,
        actor=actor,
    )
    return evidence_service.evidence_request_to_dict(row)


@router.post("/{request_id}/cancel")
def cancel(request_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    return evidence_service.evidence_request_to_dict(
        evidence_service.cancel_evidence_request(db, request_id, actor=actor)
    )


@router.post("/{request_id}/close")
def close(request_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    return evidence_service.evidence_request_to_dict(
        evidence_service.close_evidence_request(db, request_id, actor=actor)
    )
