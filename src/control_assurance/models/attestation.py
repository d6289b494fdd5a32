from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, TypedDict

from ..errors import ValidationError
from .enums import (
    ControlStatus,
    Criticality,
    Dimension,
    PCIObjective,
    PCIStatus,
    parse_enum,
    parse_status,
)


class RawControl(TypedDict, total=False):
    id: str
    code: str
    dimension: str
    criticality: str
    status: str | None
    evidence_exists: bool | None
    notes: str
    na_rationale: str
    attested_at: str | None


@dataclass(slots=True, frozen=True)
class PCITemplate:
    id: str
    name: str
    category: str
    objective_default: PCIObjective
    purpose: str
    required_parameters: tuple[str, ...] = ()
    optional_parameters: tuple[str, ...] = ()
    version: str = "1.0"
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class SecondaryControlTemplate:
    code: str
    dimension: Dimension
    criticality: Criticality
    prompt: str = ""
    id: str = ""
    pci_template_id: str = ""
    version: str = "1.0"
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class SecondaryControlInstance:
    """One attestable answer, joined to the template it was created from."""

    id: str
    template: SecondaryControlTemplate
    status: ControlStatus = ControlStatus.NOT_ATTESTED
    evidence_exists: bool | None = None
    notes: str = ""
    na_rationale: str = ""
    attested_by: str = ""
    attested_at: datetime | None = None
    pci_instance_id: str = ""
    version: int = 1

    @property
    def code(self) -> str:
        return self.template.code

    @property
    def dimension(self) -> Dimension:
        return self.template.dimension

    @property
    def criticality(self) -> Criticality:
        return self.template.criticality

    @property
    def is_attested(self) -> bool:
        return self.status is not ControlStatus.NOT_ATTESTED

    @property
    def is_applicable(self) -> bool:
        return self.status not in (ControlStatus.NA, ControlStatus.NOT_ATTESTED)


@dataclass(slots=True, frozen=True)
class AttestationUpdate:
    status: ControlStatus
    evidence_exists: bool | None = None
    notes: str | None = None
    na_rationale: str | None = None
    expected_version: int | None = None


def validate_attestation(update: AttestationUpdate) -> None:
    if update.status is ControlStatus.NOT_ATTESTED:
        raise ValidationError("An attestation must set a status (yes, partial, no or na).", code="status_required")
    if update.status is ControlStatus.NA:
        if not (update.na_rationale or "").strip():
            raise ValidationError("A rationale is required when a control is marked N/A.", code="na_rationale_required")
        return
    if update.evidence_exists is None:
        raise ValidationError(
            "Evidence availability must be stated for yes, partial and no answers.",
            code="evidence_exists_required",
        )


def apply_attestation(
    control: SecondaryControlInstance,
    update: AttestationUpdate,
    *,
    attested_by: str = "",
    attested_at: datetime | None = None,
) -> SecondaryControlInstance:
    validate_attestation(update)
    is_na = update.status is ControlStatus.NA
    return replace(
        control,
        status=update.status,
        evidence_exists=None if is_na else bool(update.evidence_exists),
        notes=control.notes if update.notes is None else update.notes,
        na_rationale=(update.na_rationale or "").strip() if is_na else "",
        attested_by=attested_by or control.attested_by,
        attested_at=attested_at or datetime.utcnow(),
        version=control.version + 1,
    )


@dataclass
class PendingAttestationChanges:
    """Unsaved attestation edits keyed by secondary-control-instance id.

    Nothing is written until the owner applies the whole set; discarding simply
    forgets the staged edits.
    """

    pci_instance_id: str
    changes: dict[str, AttestationUpdate] = field(default_factory=dict)

    def stage(self, control_id: str, update: AttestationUpdate) -> None:
        self.changes[str(control_id)] = update

    def unstage(self, control_id: str) -> None:
        self.changes.pop(str(control_id), None)

    def discard(self) -> None:
        self.changes.clear()

    def is_empty(self) -> bool:
        return not self.changes

    def __len__(self) -> int:
        return len(self.changes)

    def preview(self, controls: list[SecondaryControlInstance]) -> list[SecondaryControlInstance]:
        """Controls as they would look once applied; validates every staged edit first."""
        for update in self.changes.values():
            validate_attestation(update)
        known = {c.id for c in controls}
        unknown = sorted(set(self.changes) - known)
        if unknown:
            raise ValidationError(
                "Pending changes reference controls outside this PCI instance.",
                code="unknown_control",
                details={"control_ids": unknown},
            )
        return [apply_attestation(c, self.changes[c.id]) if c.id in self.changes else c for c in controls]


@dataclass(slots=True, frozen=True)
class PCIInstance:
    id: str
    risk_id: str
    pci_template_id: str
    objective: PCIObjective
    status: PCIStatus = PCIStatus.DRAFT
    pci_template_version: str = "1.0"
    statement: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    controls: tuple[SecondaryControlInstance, ...] = ()

    @property
    def attested_count(self) -> int:
        return sum(1 for c in self.controls if c.is_attested)

    @property
    def is_fully_attested(self) -> bool:
        return bool(self.controls) and self.attested_count == len(self.controls)

    @property
    def completeness(self) -> float:
        if not self.controls:
            return 0.0
        return self.attested_count / len(self.controls)


def parse_timestamp(value: object) -> datetime:
    """ISO-8601 timestamp as naive UTC; offsets are converted, naive values are taken as UTC."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).strip())
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_control_instance(payload: RawControl, *, index: int = 0) -> SecondaryControlInstance:
    code = str(payload.get("code", "")).strip()
    template = SecondaryControlTemplate(
        code=code,
        dimension=parse_enum(Dimension, payload.get("dimension"), field="dimension", code="invalid_attestation"),
        criticality=parse_enum(Criticality, payload.get("criticality"), field="criticality", code="invalid_attestation"),
    )
    attested_at = payload.get("attested_at")
    return SecondaryControlInstance(
        id=str(payload.get("id") or code or f"sc-{index + 1}"),
        template=template,
        status=parse_status(payload.get("status")),
        evidence_exists=payload.get("evidence_exists"),
        notes=str(payload.get("notes") or ""),
        na_rationale=str(payload.get("na_rationale") or ""),
        attested_at=parse_timestamp(attested_at) if attested_at else None,
    )
