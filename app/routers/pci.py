from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_actor, get_db
from app.schemas import AttestationPatch, PendingAttestationBatch
from app.services import attestation_service, pci_service
from app.services.scoring_service import stored_scores
from control_assurance.models import AttestationUpdate, PendingAttestationChanges, parse_status

router = APIRouter(prefix="/api/pci", tags=["pci"])


def _to_update(body: AttestationPatch) -> AttestationUpdate:
    return AttestationUpdate(
        status=parse_status(body.status),
        evidence_exists=body.evidence_exists,
        notes=body.notes,
        na_rationale=body.na_rationale,
        expected_version=body.expected_version,
    )


@router.get("/{pci_id}")
def get_pci(pci_id: str, db: Session = Depends(get_db)):
    return pci_service.pci_to_dict(pci_service.get_pci(db, pci_id))


@router.post("/{pci_id}/activate")
def activate_pci(pci_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    return pci_service.pci_to_dict(pci_service.activate_pci(db, pci_id, actor=actor))


@router.post("/{pci_id}/retire")
def retire_pci(pci_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    return pci_service.pci_to_dict(pci_service.retire_pci(db, pci_id, actor=actor))


@router.patch("/{pci_id}/attestations/{control_id}")
def patch_attestation(
    pci_id: str,
    control_id: str,
    body: AttestationPatch,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    row = attestation_service.update_attestation(db, pci_id, control_id, _to_update(body), actor=actor)
    return pci_service.pci_to_dict(row)


@router.post("/{pci_id}/attestations")
def save_pending_attestations(
    pci_id: str,
    body: PendingAttestationBatch,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    pending = PendingAttestationChanges(pci_instance_id=pci_id)
    for change in body.changes:
        pending.stage(change.secondary_control_instance_id, _to_update(change))
    row = attestation_service.apply_pending_changes(db, pending, actor=actor)
    return pci_service.pci_to_dict(row)


@router.get("/{pci_id}/scores")
def get_scores(pci_id: str, db: Session = Depends(get_db)):
    return stored_scores(pci_service.get_pci(db, pci_id))


@router.post("/{pci_id}/recompute")
def recompute_scores(pci_id: str, db: Session = Depends(get_db)):
    return pci_service.recompute_pci(db, pci_id)
