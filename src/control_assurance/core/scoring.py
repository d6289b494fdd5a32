from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ..models import DerivedDIMEScore, SecondaryControlInstance
from .aggregation import aggregate_dimensions
from .caps import resolve_scores


def compute_dime_score(
    controls: Iterable[SecondaryControlInstance],
    *,
    computed_at: datetime | None = None,
) -> DerivedDIMEScore:
    """Aggregate, cap, cascade and constrain one PCI instance's attestation set.

    Pure: the same attestation set always yields the same scores, so callers may
    recompute as often as they like.
    """
    aggregation = aggregate_dimensions(controls)
    return resolve_scores(aggregation, computed_at=computed_at)
