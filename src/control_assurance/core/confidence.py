from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from ..models import (
    STATUS_VALUES,
    ConfidenceDriver,
    ConfidenceLabel,
    ConfidenceScore,
    Criticality,
    DriverType,
    EvidenceRequest,
    EvidenceRequestStatus,
    ReviewDecision,
    SecondaryControlInstance,
)


@dataclass(slots=True, frozen=True)
class ConfidenceWeights:
    """Point table for the confidence score.

    Positive components add up to 100 and each driver reports the points it earned
    (0 up to its maximum). Penalties are negative, applied per request and floored
    per family. A driver is typed ``negative`` when its component fell short, even
    though its points still add to the total.
    """

    critical_status_max: float = 40.0
    critical_evidence_max: float = 20.0
    overall_evidence_max: float = 10.0
    # (max days since last attestation, points)
    recency_bands: tuple[tuple[int, float], ...] = ((30, 20.0), (60, 15.0), (90, 10.0), (180, 5.0))
    completeness_max: float = 5.0
    accepted_evidence_max: float = 5.0
    # (max days overdue, penalty); anything older gets overdue_penalty_beyond
    overdue_bands: tuple[tuple[int, float], ...] = ((7, -5.0), (30, -10.0))
    overdue_penalty_beyond: float = -15.0
    critical_scope_multiplier: float = 1.5
    overdue_penalty_floor: float = -30.0
    rejected_critical_penalty: float = -5.0
    rejected_critical_floor: float = -10.0
    # Below this many critical-status points the score can never leave "low".
    critical_status_floor_points: float = 10.0
    low_score_cap: int = 39
    high_threshold: int = 90
    medium_threshold: int = 70

    @property
    def recency_max(self) -> float:
        return max((points for _, points in self.recency_bands), default=0.0)


DEFAULT_WEIGHTS = ConfidenceWeights()


@dataclass(slots=True, frozen=True)
class ConfidenceInputs:
    controls: tuple[SecondaryControlInstance, ...]
    evidence_requests: tuple[EvidenceRequest, ...] = ()
    now: datetime = field(default_factory=datetime.utcnow)

    @property
    def today(self) -> date:
        return self.now.date()


def _round_points(value: float) -> float:
    # Half away from zero.
    return math.copysign(math.floor(abs(value) + 0.5), value) + 0.0


def confidence_label(score: int, weights: ConfidenceWeights = DEFAULT_WEIGHTS) -> ConfidenceLabel:
    if score >= weights.high_threshold:
        return ConfidenceLabel.HIGH
    if score >= weights.medium_threshold:
        return ConfidenceLabel.MEDIUM
    return ConfidenceLabel.LOW


def recency_points(days_since: int, weights: ConfidenceWeights = DEFAULT_WEIGHTS) -> float:
    for max_days, points in weights.recency_bands:
        if days_since <= max_days:
            return points
    return 0.0


def overdue_penalty(request: EvidenceRequest, today: date, weights: ConfidenceWeights = DEFAULT_WEIGHTS) -> float:
    if not request.is_overdue(today):
        return 0.0
    days = request.days_overdue(today)
    penalty = weights.overdue_penalty_beyond
    for max_days, band_penalty in weights.overdue_bands:
        if days <= max_days:
            penalty = band_penalty
            break
    if request.is_critical_scope:
        penalty *= weights.critical_scope_multiplier
    return penalty


def _is_rejected_critical(request: EvidenceRequest) -> bool:
    if not request.is_critical_scope or request.status is not EvidenceRequestStatus.REJECTED:
        return False
    current = request.current_submission
    return current is None or current.decision is ReviewDecision.REJECTED


def _driver(kind: DriverType, text: str, points: float) -> ConfidenceDriver:
    return ConfidenceDriver(type=kind, text=text, points=points)


def _attestation_drivers(
    controls: Sequence[SecondaryControlInstance],
    now: datetime,
    weights: ConfidenceWeights,
) -> list[ConfidenceDriver]:
    drivers: list[ConfidenceDriver] = []

    applicable = [c for c in controls if c.is_applicable]
    critical = [c for c in applicable if c.criticality is Criticality.CRITICAL]
    critical_count = len(critical)

    if critical_count:
        status_sum = sum(STATUS_VALUES[c.status] for c in critical)
        yes_count = sum(1 for c in critical if STATUS_VALUES[c.status] == 1.0)
        partial_count = sum(1 for c in critical if STATUS_VALUES[c.status] == 0.5)
        no_count = critical_count - yes_count - partial_count
        points = _round_points(weights.critical_status_max * status_sum / critical_count)
        kind = DriverType.POSITIVE if points >= 0.75 * weights.critical_status_max else DriverType.NEGATIVE
        drivers.append(
            _driver(
                kind,
                f"{critical_count} critical controls answered ({yes_count} Yes, {partial_count} Partial, {no_count} No)",
                points,
            )
        )

        with_evidence = sum(1 for c in critical if c.evidence_exists)
        points = _round_points(weights.critical_evidence_max * with_evidence / critical_count)
        kind = DriverType.POSITIVE if with_evidence == critical_count else DriverType.NEGATIVE
        text = f"Evidence documented for {with_evidence}/{critical_count} critical controls"
        if with_evidence < critical_count:
            text += f" ({critical_count - with_evidence} missing)"
        drivers.append(_driver(kind, text, points))
    else:
        drivers.append(_driver(DriverType.NEGATIVE, "No critical controls attested yet", 0.0))

    if applicable:
        with_evidence = sum(1 for c in applicable if c.evidence_exists)
        points = _round_points(weights.overall_evidence_max * with_evidence / len(applicable))
        kind = DriverType.POSITIVE if points >= 0.7 * weights.overall_evidence_max else DriverType.NEUTRAL
        drivers.append(_driver(kind, f"Overall evidence coverage: {with_evidence}/{len(applicable)} controls", points))

    attested_times = [c.attested_at for c in controls if c.is_attested and c.attested_at is not None]
    if attested_times:
        days_since = max(0, (now - max(attested_times)).days)
        points = recency_points(days_since, weights)
        kind = DriverType.POSITIVE if points >= 0.75 * weights.recency_max else DriverType.NEGATIVE
        drivers.append(_driver(kind, f"Last attestation {days_since} days ago", points))
    else:
        drivers.append(_driver(DriverType.NEGATIVE, "No attestations recorded", 0.0))

    if controls:
        attested = sum(1 for c in controls if c.is_attested)
        points = _round_points(weights.completeness_max * attested / len(controls))
        if attested == len(controls):
            drivers.append(_driver(DriverType.POSITIVE, f"All {attested} secondary controls attested", points))
        else:
            drivers.append(
                _driver(
                    DriverType.NEGATIVE,
                    f"Attestation incomplete: {attested}/{len(controls)} secondary controls attested",
                    points,
                )
            )
    return drivers


def _evidence_drivers(
    requests: Sequence[EvidenceRequest],
    today: date,
    weights: ConfidenceWeights,
) -> list[ConfidenceDriver]:
    drivers: list[ConfidenceDriver] = []
    live = [r for r in requests if r.status is not EvidenceRequestStatus.CANCELLED]

    if live:
        accepted = sum(
            1 for r in live if r.status in (EvidenceRequestStatus.ACCEPTED, EvidenceRequestStatus.CLOSED)
        )
        points = _round_points(weights.accepted_evidence_max * accepted / len(live))
        if accepted:
            drivers.append(_driver(DriverType.POSITIVE, f"Evidence accepted for {accepted}/{len(live)} requests", points))
        else:
            drivers.append(_driver(DriverType.NEUTRAL, "No evidence submissions accepted yet", 0.0))

    overdue = [r for r in live if r.is_overdue(today)]
    if overdue:
        raw_penalty = sum(overdue_penalty(r, today, weights) for r in overdue)
        penalty = _round_points(max(raw_penalty, weights.overdue_penalty_floor))
        critical_overdue = sum(1 for r in overdue if r.is_critical_scope)
        text = f"{len(overdue)} overdue evidence request(s)"
        if critical_overdue:
            text += f" ({critical_overdue} on critical scope)"
        drivers.append(_driver(DriverType.NEGATIVE, text, penalty))

    rejected_critical = [r for r in live if _is_rejected_critical(r)]
    if rejected_critical:
        penalty = max(weights.rejected_critical_penalty * len(rejected_critical), weights.rejected_critical_floor)
        drivers.append(
            _driver(
                DriverType.NEGATIVE,
                f"{len(rejected_critical)} critical-scope evidence submission(s) rejected",
                _round_points(penalty),
            )
        )
    return drivers


def compute_confidence(
    inputs: ConfidenceInputs,
    *,
    weights: ConfidenceWeights = DEFAULT_WEIGHTS,
) -> ConfidenceScore:
    controls = list(inputs.controls)
    drivers = _attestation_drivers(controls, inputs.now, weights)
    drivers.extend(_evidence_drivers(list(inputs.evidence_requests), inputs.today, weights))

    total = sum(d.points for d in drivers)
    score = int(max(0.0, min(100.0, total)))

    critical_status_points = _critical_status_points(controls, weights)
    if critical_status_points < weights.critical_status_floor_points and score > weights.low_score_cap:
        delta = weights.low_score_cap - score
        score = weights.low_score_cap
        drivers.append(
            _driver(
                DriverType.NEGATIVE,
                "Score capped to Low: critical control status below 25%",
                float(delta),
            )
        )

    ordered = sorted(drivers, key=lambda d: abs(d.points), reverse=True)
    return ConfidenceScore(
        confidence_score=score,
        confidence_label=confidence_label(score, weights),
        drivers=tuple(ordered),
        computed_at=inputs.now,
    )


def _critical_status_points(controls: Iterable[SecondaryControlInstance], weights: ConfidenceWeights) -> float:
    critical = [c for c in controls if c.is_applicable and c.criticality is Criticality.CRITICAL]
    if not critical:
        return 0.0
    return _round_points(weights.critical_status_max * sum(STATUS_VALUES[c.status] for c in critical) / len(critical))
