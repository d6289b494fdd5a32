from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

from ..errors import ValidationError
from ..models import (
    EvidenceRequest,
    EvidenceRequestStatus,
    EvidenceScope,
    EvidenceSubmission,
    ReviewDecision,
    parse_enum,
)

S = EvidenceRequestStatus

TRANSITIONS: dict[EvidenceRequestStatus, frozenset[EvidenceRequestStatus]] = {
    S.OPEN: frozenset({S.SUBMITTED, S.CANCELLED}),
    S.SUBMITTED: frozenset({S.ACCEPTED, S.REJECTED}),
    S.REJECTED: frozenset({S.SUBMITTED, S.CANCELLED}),
    S.ACCEPTED: frozenset({S.CLOSED}),
    S.CANCELLED: frozenset(),
    S.CLOSED: frozenset(),
}


def can_transition(current: EvidenceRequestStatus, target: EvidenceRequestStatus) -> bool:
    return target in TRANSITIONS[current]


def _require_transition(request: EvidenceRequest, target: EvidenceRequestStatus, action: str) -> None:
    if can_transition(request.status, target):
        return
    raise ValidationError(
        f"Cannot {action} an evidence request that is {request.status.value}.",
        code="invalid_transition",
        details={"request_id": request.id, "status": request.status.value, "action": action},
    )


def create_request(
    *,
    request_id: str,
    due_date: date | None,
    scope: EvidenceScope,
    notes: str = "",
    is_critical_scope: bool = False,
    requested_by: str = "",
    requested_at: datetime | None = None,
) -> EvidenceRequest:
    if due_date is None:
        raise ValidationError("A due date is required for an evidence request.", code="due_date_required")
    targets = scope.targets()
    if len(targets) != 1:
        raise ValidationError(
            "An evidence request must target exactly one of: PCI instance, secondary control or risk.",
            code="invalid_scope",
            details={"targets": [name for name, _ in targets]},
        )
    return EvidenceRequest(
        id=request_id,
        due_date=due_date,
        scope=scope,
        status=S.OPEN,
        is_critical_scope=bool(is_critical_scope),
        notes=(notes or "").strip(),
        requested_by=requested_by,
        requested_at=requested_at or datetime.utcnow(),
    )


def submit(
    request: EvidenceRequest,
    *,
    submission_id: str,
    note: str,
    submitted_by: str = "",
    now: datetime | None = None,
) -> tuple[EvidenceRequest, EvidenceSubmission]:
    _require_transition(request, S.SUBMITTED, "submit evidence for")
    clean = (note or "").strip()
    if not clean:
        raise ValidationError("A submission note is required.", code="submission_note_required")
    submission = EvidenceSubmission(
        id=submission_id,
        request_id=request.id,
        submission_note=clean,
        submitted_by=submitted_by,
        submitted_at=now or datetime.utcnow(),
    )
    updated = replace(request, status=S.SUBMITTED, submissions=request.submissions + (submission,))
    return updated, submission


def review(
    request: EvidenceRequest,
    *,
    decision: ReviewDecision | str,
    review_notes: str = "",
    reviewed_by: str = "",
    now: datetime | None = None,
) -> tuple[EvidenceRequest, EvidenceSubmission]:
    verdict = parse_enum(ReviewDecision, decision, field="decision")
    target = S.ACCEPTED if verdict is ReviewDecision.ACCEPTED else S.REJECTED
    _require_transition(request, target, "review")

    current = request.current_submission
    if current is None or not current.is_pending_review:
        raise ValidationError(
            "There is no submission awaiting review.",
            code="no_pending_submission",
            details={"request_id": request.id},
        )
    notes = (review_notes or "").strip()
    if verdict is ReviewDecision.REJECTED and not notes:
        raise ValidationError("Review notes are required when rejecting evidence.", code="review_notes_required")

    reviewed = replace(
        current,
        decision=verdict,
        review_notes=notes,
        reviewed_by=reviewed_by,
        reviewed_at=now or datetime.utcnow(),
    )
    updated = replace(request, status=target, submissions=request.submissions[:-1] + (reviewed,))
    return updated, reviewed


def cancel(request: EvidenceRequest) -> EvidenceRequest:
    _require_transition(request, S.CANCELLED, "cancel")
    return replace(request, status=S.CANCELLED)


def close(request: EvidenceRequest) -> EvidenceRequest:
    _require_transition(request, S.CLOSED, "close")
    return replace(request, status=S.CLOSED)
