from __future__ import annotations

from collections.abc import Iterable

from ..models import (
    CRITICALITY_WEIGHTS,
    DIMENSION_ORDER,
    STATUS_VALUES,
    AggregationResult,
    ControlStatus,
    ControlTrace,
    Criticality,
    Dimension,
    DimensionTotals,
    SecondaryControlInstance,
    parse_enum,
    parse_status,
)

MAX_DIMENSION_SCORE = 3.0

EXCLUSION_REASONS: dict[ControlStatus, str] = {
    ControlStatus.NA: "N/A - excluded",
    ControlStatus.NOT_ATTESTED: "Not yet attested",
}


def _clamp(value: float, low: float = 0.0, high: float = MAX_DIMENSION_SCORE) -> float:
    return max(low, min(high, value))


def raw_dimension_score(weighted_sum: float, weight_total: float) -> float:
    if weight_total <= 0:
        return 0.0
    return _clamp(MAX_DIMENSION_SCORE * (weighted_sum / weight_total))


def trace_control(control: SecondaryControlInstance) -> ControlTrace:
    status = parse_status(control.status)
    dimension = parse_enum(Dimension, control.dimension, field="dimension", code="invalid_attestation")
    criticality = parse_enum(Criticality, control.criticality, field="criticality", code="invalid_attestation")

    if status in EXCLUSION_REASONS:
        return ControlTrace(
            code=control.code,
            dimension=dimension,
            criticality=criticality,
            status=status,
            included=False,
            reason=EXCLUSION_REASONS[status],
        )

    weight = CRITICALITY_WEIGHTS[criticality]
    value = STATUS_VALUES[status]
    return ControlTrace(
        code=control.code,
        dimension=dimension,
        criticality=criticality,
        status=status,
        included=True,
        weight=weight,
        status_value=value,
        contribution=weight * value,
    )


def aggregate_dimensions(controls: Iterable[SecondaryControlInstance]) -> AggregationResult:
    traces = tuple(trace_control(c) for c in controls)

    sums: dict[Dimension, float] = {d: 0.0 for d in DIMENSION_ORDER}
    weights: dict[Dimension, float] = {d: 0.0 for d in DIMENSION_ORDER}
    for trace in traces:
        if not trace.included:
            continue
        sums[trace.dimension] += trace.contribution
        weights[trace.dimension] += trace.weight

    totals = {
        d: DimensionTotals(
            dimension=d,
            weighted_sum=sums[d],
            weight_total=weights[d],
            raw=raw_dimension_score(sums[d], weights[d]),
        )
        for d in DIMENSION_ORDER
    }
    return AggregationResult(totals=totals, controls=traces)
