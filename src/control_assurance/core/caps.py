from __future__ import annotations

from datetime import datetime

from ..models import (
    DIMENSION_ORDER,
    AggregationResult,
    CapDetails,
    ConstrainedBy,
    ControlStatus,
    Criticality,
    DerivedDIMEScore,
    Dimension,
)

HARD_CAP_CEILING = 1.0

# A Design control "contributes zero" when it is failed or excluded.
_ZERO_DESIGN_STATUSES = (ControlStatus.NO, ControlStatus.NA)


def detect_caps(aggregation: AggregationResult) -> CapDetails:
    triggered: list[tuple[Dimension, str]] = []
    for trace in aggregation.controls:
        if trace.criticality is Criticality.CRITICAL and trace.status is ControlStatus.NO:
            triggered.append((trace.dimension, trace.code))
    capped = {d: any(dim is d for dim, _ in triggered) for d in DIMENSION_ORDER}
    return CapDetails(capped=capped, caps_triggered=tuple(triggered))


def apply_caps(aggregation: AggregationResult, caps: CapDetails) -> tuple[dict[Dimension, float], bool]:
    scores: dict[Dimension, float] = {}
    lowered = False
    for dimension in DIMENSION_ORDER:
        raw = aggregation.raw(dimension)
        if caps.capped[dimension] and raw > HARD_CAP_CEILING:
            scores[dimension] = HARD_CAP_CEILING
            lowered = True
        else:
            scores[dimension] = raw
    return scores, lowered


def design_cascade_applies(aggregation: AggregationResult) -> bool:
    """True when Design is fully attested and every Design answer is ``no`` or ``na``."""
    design = [t for t in aggregation.controls if t.dimension is Dimension.DESIGN]
    if not design:
        return False
    return all(t.status in _ZERO_DESIGN_STATUSES for t in design)


def constrain_effectiveness(
    e_raw: float,
    d_score: float,
    i_score: float,
    m_score: float,
) -> tuple[float, ConstrainedBy]:
    e_final = min(e_raw, d_score, i_score, m_score)
    if e_final >= e_raw:
        return e_final, ConstrainedBy.NONE
    for label, value in (
        (ConstrainedBy.DESIGN, d_score),
        (ConstrainedBy.IMPLEMENTATION, i_score),
        (ConstrainedBy.MONITORING, m_score),
    ):
        if value == e_final:
            return e_final, label
    return e_final, ConstrainedBy.NONE


def resolve_scores(aggregation: AggregationResult, *, computed_at: datetime | None = None) -> DerivedDIMEScore:
    caps = detect_caps(aggregation)
    scores, cap_applied = apply_caps(aggregation, caps)

    cascade = design_cascade_applies(aggregation)
    if cascade:
        for dimension in (Dimension.IMPLEMENTATION, Dimension.MONITORING, Dimension.EVALUATION):
            scores[dimension] = 0.0

    d_score = scores[Dimension.DESIGN]
    i_score = scores[Dimension.IMPLEMENTATION]
    m_score = scores[Dimension.MONITORING]
    e_raw = scores[Dimension.EVALUATION]
    e_final, constrained_by = constrain_effectiveness(e_raw, d_score, i_score, m_score)

    return DerivedDIMEScore(
        d_score=d_score,
        i_score=i_score,
        m_score=m_score,
        e_raw=e_raw,
        e_final=e_final,
        cap_applied=cap_applied,
        cap_details=caps,
        cascade_applied=cascade,
        constrained_by=constrained_by,
        aggregation=aggregation,
        computed_at=computed_at or datetime.utcnow(),
    )
