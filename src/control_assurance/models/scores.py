from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .enums import ConfidenceLabel, ConstrainedBy, ControlStatus, Criticality, Dimension, DriverType


@dataclass(slots=True, frozen=True)
class ControlTrace:
    code: str
    dimension: Dimension
    criticality: Criticality
    status: ControlStatus
    included: bool
    weight: float = 0.0
    status_value: float = 0.0
    contribution: float = 0.0
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "code": self.code,
            "dimension": self.dimension.value,
            "criticality": self.criticality.value,
            "status": self.status.value,
            "included": self.included,
        }
        if self.included:
            out.update(
                {
                    "weight": self.weight,
                    "status_value": self.status_value,
                    "contribution": self.contribution,
                }
            )
        else:
            out["reason"] = self.reason
        return out


@dataclass(slots=True, frozen=True)
class DimensionTotals:
    dimension: Dimension
    weighted_sum: float
    weight_total: float
    raw: float

    @property
    def has_applicable_controls(self) -> bool:
        return self.weight_total > 0

    def to_dict(self) -> dict[str, Any]:
        return {"weighted_sum": self.weighted_sum, "weight_total": self.weight_total, "raw": self.raw}


@dataclass(slots=True, frozen=True)
class AggregationResult:
    totals: dict[Dimension, DimensionTotals]
    controls: tuple[ControlTrace, ...]

    def raw(self, dimension: Dimension) -> float:
        return self.totals[dimension].raw

    @property
    def no_applicable_controls(self) -> tuple[Dimension, ...]:
        return tuple(d for d, t in self.totals.items() if not t.has_applicable_controls)


@dataclass(slots=True, frozen=True)
class CapDetails:
    capped: dict[Dimension, bool]
    caps_triggered: tuple[tuple[Dimension, str], ...] = ()

    @property
    def any_capped(self) -> bool:
        return any(self.capped.values())

    def codes_for(self, dimension: Dimension) -> list[str]:
        return [code for dim, code in self.caps_triggered if dim is dimension]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "caps_triggered": [{"dimension": d.value, "code": code} for d, code in self.caps_triggered],
        }
        for dim, flag in self.capped.items():
            out[f"{dim.value.lower()}_capped"] = bool(flag)
        return out


@dataclass(slots=True, frozen=True)
class DerivedDIMEScore:
    d_score: float
    i_score: float
    m_score: float
    e_raw: float
    e_final: float
    cap_applied: bool
    cap_details: CapDetails
    cascade_applied: bool
    constrained_by: ConstrainedBy
    aggregation: AggregationResult
    computed_at: datetime = field(default_factory=datetime.utcnow)

    def score_for(self, dimension: Dimension) -> float:
        return {
            Dimension.DESIGN: self.d_score,
            Dimension.IMPLEMENTATION: self.i_score,
            Dimension.MONITORING: self.m_score,
            Dimension.EVALUATION: self.e_final,
        }[dimension]

    @property
    def has_attestations(self) -> bool:
        return any(t.status is not ControlStatus.NOT_ATTESTED for t in self.aggregation.controls)

    def calc_trace(self) -> dict[str, Any]:
        return {
            "secondary_controls": [c.to_dict() for c in self.aggregation.controls],
            "dimension_totals": {d.value: t.to_dict() for d, t in self.aggregation.totals.items()},
            "constrained_effectiveness": {
                "e_raw": self.e_raw,
                "e_final": self.e_final,
                "constrained_by": self.constrained_by.value,
            },
            "cascade_applied": self.cascade_applied,
            "no_applicable_controls": [d.value for d in self.aggregation.no_applicable_controls],
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "d_score": self.d_score,
            "i_score": self.i_score,
            "m_score": self.m_score,
            "e_raw": self.e_raw,
            "e_final": self.e_final,
            "cap_applied": self.cap_applied,
            "cap_details": self.cap_details.to_dict(),
            "cascade_applied": self.cascade_applied,
            "constrained_by": self.constrained_by.value,
            "calc_trace": self.calc_trace(),
            "computed_at": self.computed_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class EffectivenessResult:
    computed: bool
    percentage: float | None
    label: str
    color: str

    @classmethod
    def not_computed(cls) -> "EffectivenessResult":
        return cls(computed=False, percentage=None, label="Not computed", color="gray")

    def to_dict(self) -> dict[str, Any]:
        return {
            "computed": self.computed,
            "percentage": self.percentage,
            "label": self.label,
            "color": self.color,
        }


@dataclass(slots=True, frozen=True)
class ConfidenceDriver:
    """One contributor to the confidence score.

    ``points`` is the signed amount this driver adds to the total, so the drivers sum
    to the score before clamping and the low cap. ``type`` says whether the component
    helped or hurt relative to its maximum: a component that earned 7 of 20 points is
    ``negative`` while still adding +7.
    """

    type: DriverType
    text: str
    points: float

    def to_dict(self) -> dict[str, Any]:
        points: float | int = int(self.points) if float(self.points).is_integer() else round(self.points, 1)
        return {"type": self.type.value, "text": self.text, "points": points}


@dataclass(slots=True, frozen=True)
class ConfidenceScore:
    confidence_score: int
    confidence_label: ConfidenceLabel
    drivers: tuple[ConfidenceDriver, ...]
    computed_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence_score": self.confidence_score,
            "confidence_label": self.confidence_label.value,
            "drivers": [d.to_dict() for d in self.drivers],
            "computed_at": self.computed_at.isoformat(),
        }
