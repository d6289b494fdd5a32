from __future__ import annotations

from enum import StrEnum
from typing import TypeVar

from ..errors import DomainError


class Dimension(StrEnum):
    DESIGN = "D"
    IMPLEMENTATION = "I"
    MONITORING = "M"
    EVALUATION = "E"


class Criticality(StrEnum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    OPTIONAL = "optional"


class ControlStatus(StrEnum):
    YES = "yes"
    PARTIAL = "partial"
    NO = "no"
    NA = "na"
    NOT_ATTESTED = "not_attested"


class ConstrainedBy(StrEnum):
    """Dimension that lowered Evaluation, or ``none`` when E stood on its own."""

    DESIGN = "D"
    IMPLEMENTATION = "I"
    MONITORING = "M"
    NONE = "none"


class PCIObjective(StrEnum):
    LIKELIHOOD = "likelihood"
    IMPACT = "impact"
    BOTH = "both"


class PCIStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    RETIRED = "retired"


class EvidenceRequestStatus(StrEnum):
    OPEN = "open"
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class ReviewDecision(StrEnum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class RiskResponseType(StrEnum):
    AVOID = "avoid"
    REDUCE_LIKELIHOOD = "reduce_likelihood"
    REDUCE_IMPACT = "reduce_impact"
    TRANSFER_SHARE = "transfer_share"
    ACCEPT = "accept"


class ConfidenceLabel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DriverType(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


DIMENSION_ORDER: tuple[Dimension, ...] = (
    Dimension.DESIGN,
    Dimension.IMPLEMENTATION,
    Dimension.MONITORING,
    Dimension.EVALUATION,
)

DIMENSION_LABELS: dict[Dimension, str] = {
    Dimension.DESIGN: "Design",
    Dimension.IMPLEMENTATION: "Implementation",
    Dimension.MONITORING: "Monitoring",
    Dimension.EVALUATION: "Evaluation",
}

CRITICALITY_WEIGHTS: dict[Criticality, float] = {
    Criticality.CRITICAL: 3.0,
    Criticality.IMPORTANT: 2.0,
    Criticality.OPTIONAL: 1.0,
}

STATUS_VALUES: dict[ControlStatus, float] = {
    ControlStatus.YES: 1.0,
    ControlStatus.PARTIAL: 0.5,
    ControlStatus.NO: 0.0,
}

RESPONSE_TYPE_LABELS: dict[RiskResponseType, str] = {
    RiskResponseType.AVOID: "Avoid",
    RiskResponseType.REDUCE_LIKELIHOOD: "Reduce Likelihood",
    RiskResponseType.REDUCE_IMPACT: "Reduce Impact",
    RiskResponseType.TRANSFER_SHARE: "Transfer / Share",
    RiskResponseType.ACCEPT: "Accept",
}


_E = TypeVar("_E", bound=StrEnum)


def parse_enum(enum_cls: type[_E], value: object, *, field: str = "", code: str = "invalid_value") -> _E:
    """Coerce a raw value into ``enum_cls``; unknown values are a domain error, never a default."""
    if isinstance(value, enum_cls):
        return value
    raw = str(value if value is not None else "").strip()
    try:
        return enum_cls(raw)
    except ValueError:
        label = field or enum_cls.__name__
        allowed = ", ".join(member.value for member in enum_cls)
        raise DomainError(
            f"Unknown {label} value {raw!r} (expected one of: {allowed})",
            code=code,
            details={"field": label, "value": raw},
        ) from None


def parse_status(value: object) -> ControlStatus:
    # Stored rows use NULL for "not yet attested".
    if value is None or (isinstance(value, str) and not value.strip()):
        return ControlStatus.NOT_ATTESTED
    return parse_enum(ControlStatus, value, field="status", code="invalid_attestation")
