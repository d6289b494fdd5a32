from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models import PCIInstanceRow, SecondaryControlInstanceRow
from app.services.scoring_service import recompute_scores
from app.services.store import control_from_row, get_pci_row, transaction, write_control
from control_assurance.errors import ConflictError, NotFoundError, ValidationError
from control_assurance.models import (
    AttestationUpdate,
    PCIStatus,
    PendingAttestationChanges,
    apply_attestation,
)

logger = logging.getLogger(__name__)


def _require_editable(row: PCIInstanceRow) -> None:
    if row.status == PCIStatus.RETIRED.value:
        raise ValidationError(
            "Retired controls cannot be re-attested.",
            code="pci_retired",
            details={"pci_instance_id": row.id},
        )


def _check_version(row: SecondaryControlInstanceRow, update: AttestationUpdate) -> None:
    if update.expected_version is None or int(update.expected_version) == int(row.version or 1):
        return
    raise ConflictError(
        f"Secondary control {row.code} was changed by someone else; reload and try again.",
        details={
            "secondary_control_instance_id": row.id,
            "expected_version": update.expected_version,
            "current_version": row.version,
        },
    )


def _control_row(pci_row: PCIInstanceRow, control_id: str) -> SecondaryControlInstanceRow:
    for row in pci_row.controls:
        if row.id == control_id:
            return row
    raise NotFoundError(
        f"Secondary control {control_id!r} does not belong to PCI instance {pci_row.id!r}.",
        details={"pci_instance_id": pci_row.id, "secondary_control_instance_id": control_id},
    )


def update_attestation(
    db: Session,
    pci_id: str,
    control_id: str,
    update: AttestationUpdate,
    *,
    actor: str = "",
) -> PCIInstanceRow:
    now = datetime.utcnow()
    with transaction(db, "save attestation"):
        pci_row = get_pci_row(db, pci_id)
        _require_editable(pci_row)
        row = _control_row(pci_row, control_id)
        _check_version(row, update)
        updated = apply_attestation(control_from_row(row), update, attested_by=actor, attested_at=now)
        write_control(row, updated)
        recompute_scores(db, pci_row, now=now)
    logger.info(
        "Attested %s on PCI %s as %s (by %s)",
        row.code,
        pci_id,
        update.status.value,
        actor or "unknown",
    )
    return pci_row


def apply_pending_changes(
    db: Session,
    pending: PendingAttestationChanges,
    *,
    actor: str = "",
) -> PCIInstanceRow:
    """Write every staged edit or none of them."""
    if pending.is_empty():
        raise ValidationError("There are no pending attestation changes to save.", code="no_changes")

    now = datetime.utcnow()
    with transaction(db, "save pending attestations"):
        pci_row = get_pci_row(db, pending.pci_instance_id)
        _require_editable(pci_row)
        rows = {r.id: r for r in pci_row.controls}
        current = [control_from_row(r) for r in pci_row.controls]
        # Validates every staged edit and rejects foreign control ids before anything is written.
        pending.preview(current)
        for control_id, update in pending.changes.items():
            _check_version(rows[control_id], update)

        for control in current:
            update = pending.changes.get(control.id)
            if update is None:
                continue
            write_control(rows[control.id], apply_attestation(control, update, attested_by=actor, attested_at=now))
        recompute_scores(db, pci_row, now=now)
    logger.info("Saved %s pending attestation(s) on PCI %s (by %s)", len(pending), pci_row.id, actor or "unknown")
    pending.discard()
    return pci_row
