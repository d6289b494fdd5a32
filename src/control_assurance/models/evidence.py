from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, TypedDict

from .enums import EvidenceRequestStatus, ReviewDecision, parse_enum

OVERDUE_STATUSES = (EvidenceRequestStatus.OPEN, EvidenceRequestStatus.REJECTED)


class RawEvidenceRequest(TypedDict, total=False):
    id: str
    status: str
    due_date: str
    is_critical_scope: bool
    notes: str
    pci_instance_id: str
    secondary_control_instance_id: str
    risk_id: str
    current_decision: str | None


@dataclass(slots=True, frozen=True)
class EvidenceScope:
    pci_instance_id: str | None = None
    secondary_control_instance_id: str | None = None
    risk_id: str | None = None

    def targets(self) -> list[tuple[str, str]]:
        pairs = [
            ("pci_instance_id", self.pci_instance_id),
            ("secondary_control_instance_id", self.secondary_control_instance_id),
            ("risk_id", self.risk_id),
        ]
        return [(name, str(value)) for name, value in pairs if value]


@dataclass(slots=True, frozen=True)
class EvidenceSubmission:
    id: str
    request_id: str
    submission_note: str
    submitted_by: str = ""
    submitted_at: datetime | None = None
    decision: ReviewDecision | None = None
    review_notes: str = ""
    reviewed_by: str = ""
    reviewed_at: datetime | None = None

    @property
    def is_pending_review(self) -> bool:
        return self.decision is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "evidence_request_id": self.request_id,
            "submission_note": self.submission_note,
            "submitted_by": self.submitted_by,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "decision": self.decision.value if self.decision else None,
            "review_notes": self.review_notes,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
        }


@dataclass(slots=True, frozen=True)
class EvidenceRequest:
    id: str
    due_date: date
    scope: EvidenceScope
    status: EvidenceRequestStatus = EvidenceRequestStatus.OPEN
    is_critical_scope: bool = False
    notes: str = ""
    requested_by: str = ""
    requested_at: datetime | None = None
    # Oldest first; the last entry is the current submission.
    submissions: tuple[EvidenceSubmission, ...] = ()

    @property
    def current_submission(self) -> EvidenceSubmission | None:
        return self.submissions[-1] if self.submissions else None

    @property
    def is_pending_review(self) -> bool:
        current = self.current_submission
        return self.status is EvidenceRequestStatus.SUBMITTED and current is not None and current.is_pending_review

    def is_overdue(self, today: date) -> bool:
        return self.due_date < today and self.status in OVERDUE_STATUSES

    def days_overdue(self, today: date) -> int:
        return max(0, (today - self.due_date).days)

    def to_dict(self, *, today: date | None = None) -> dict[str, Any]:
        current = self.current_submission
        out: dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "due_date": self.due_date.isoformat(),
            "is_critical_scope": self.is_critical_scope,
            "notes": self.notes,
            "requested_by": self.requested_by,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            **{name: value for name, value in self.scope.targets()},
            "pending_review": self.is_pending_review,
            "current_submission": current.to_dict() if current else None,
            "submission_count": len(self.submissions),
        }
        if today is not None:
            out["is_overdue"] = self.is_overdue(today)
        return out


def to_evidence_request(payload: RawEvidenceRequest, *, index: int = 0) -> EvidenceRequest:
    request_id = str(payload.get("id") or f"er-{index + 1}")
    decision_raw = payload.get("current_decision")
    submissions: tuple[EvidenceSubmission, ...] = ()
    if decision_raw:
        submissions = (
            EvidenceSubmission(
                id=f"{request_id}-s1",
                request_id=request_id,
                submission_note="",
                decision=parse_enum(ReviewDecision, decision_raw, field="current_decision"),
            ),
        )
    return EvidenceRequest(
        id=request_id,
        due_date=date.fromisoformat(str(payload.get("due_date", ""))),
        scope=EvidenceScope(
            pci_instance_id=payload.get("pci_instance_id"),
            secondary_control_instance_id=payload.get("secondary_control_instance_id"),
            risk_id=payload.get("risk_id"),
        ),
        status=parse_enum(EvidenceRequestStatus, payload.get("status", "open"), field="evidence request status"),
        is_critical_scope=bool(payload.get("is_critical_scope", False)),
        notes=str(payload.get("notes") or ""),
    )
