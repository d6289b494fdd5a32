from __future__ import annotations

import math
from collections.abc import Iterable

from ..errors import ValidationError
from ..models import DerivedDIMEScore, PCIInstance, PCIObjective, PCIStatus, ResidualRisk
from .aggregation import MAX_DIMENSION_SCORE


def control_effectiveness(score: DerivedDIMEScore | None) -> float:
    """Fraction 0..1 from the engine's final (post-cascade) DIME scores."""
    if score is None:
        return 0.0
    average = (score.d_score + score.i_score + score.m_score + score.e_final) / 4
    return min(1.0, max(0.0, average / MAX_DIMENSION_SCORE))


def _reduce(inherent: int, effectiveness: float) -> int:
    reduction = math.floor((inherent - 1) * effectiveness + 0.5)
    return max(1, inherent - reduction)


def compute_residual_risk(
    inherent_likelihood: int,
    inherent_impact: int,
    controls: Iterable[tuple[PCIInstance, DerivedDIMEScore | None]],
) -> ResidualRisk:
    if inherent_likelihood < 1 or inherent_impact < 1:
        raise ValidationError(
            "Inherent likelihood and impact must be at least 1.",
            code="invalid_inherent_rating",
            details={"inherent_likelihood": inherent_likelihood, "inherent_impact": inherent_impact},
        )

    best_likelihood = 0.0
    best_impact = 0.0
    for instance, score in controls:
        if instance.status is not PCIStatus.ACTIVE:
            continue
        effectiveness = control_effectiveness(score)
        if instance.objective in (PCIObjective.LIKELIHOOD, PCIObjective.BOTH):
            best_likelihood = max(best_likelihood, effectiveness)
        if instance.objective in (PCIObjective.IMPACT, PCIObjective.BOTH):
            best_impact = max(best_impact, effectiveness)

    residual_likelihood = _reduce(inherent_likelihood, best_likelihood)
    residual_impact = _reduce(inherent_impact, best_impact)
    return ResidualRisk(
        residual_likelihood=residual_likelihood,
        residual_impact=residual_impact,
        residual_score=residual_likelihood * residual_impact,
        max_likelihood_effectiveness=best_likelihood,
        max_impact_effectiveness=best_impact,
    )
