from __future__ import annotations

from ..models import DerivedDIMEScore, EffectivenessResult
from .aggregation import MAX_DIMENSION_SCORE

# Inclusive lower bounds, highest first.
EFFECTIVENESS_BANDS: tuple[tuple[float, str, str], ...] = (
    (75.0, "Strong", "green"),
    (50.0, "Moderate", "amber"),
    (25.0, "Weak", "orange"),
)
FLOOR_BAND: tuple[str, str] = ("Critical", "red")


def effectiveness_band(percentage: float) -> tuple[str, str]:
    for threshold, label, color in EFFECTIVENESS_BANDS:
        if percentage >= threshold:
            return label, color
    return FLOOR_BAND


def effectiveness_percentage(d: float, i: float, m: float, e: float) -> float:
    average = (d + i + m + e) / 4
    return round(average / MAX_DIMENSION_SCORE * 100, 1)


def dimension_percentage(score: float) -> float:
    return round(score / MAX_DIMENSION_SCORE * 100, 1)


def normalize_effectiveness(score: DerivedDIMEScore | None) -> EffectivenessResult:
    if score is None or not score.has_attestations:
        return EffectivenessResult.not_computed()
    pct = effectiveness_percentage(score.d_score, score.i_score, score.m_score, score.e_final)
    label, color = effectiveness_band(pct)
    return EffectivenessResult(computed=True, percentage=pct, label=label, color=color)


def dimension_breakdown(score: DerivedDIMEScore) -> dict[str, dict[str, object]]:
    out: dict[str, dict[str, object]] = {}
    for key, value in (("D", score.d_score), ("I", score.i_score), ("M", score.m_score), ("E", score.e_final)):
        pct = dimension_percentage(value)
        label, color = effectiveness_band(pct)
        out[key] = {"score": value, "percentage": pct, "label": label, "color": color}
    return out
