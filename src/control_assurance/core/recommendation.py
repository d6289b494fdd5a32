from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..catalog import TemplateCatalog
from ..models import RiskResponseType, TemplateSuggestion, parse_enum

# Static fallback ordering of library templates per response type.
RESPONSE_TEMPLATE_PRIORITY: dict[RiskResponseType, tuple[str, ...]] = {
    RiskResponseType.REDUCE_LIKELIHOOD: (
        "PCI-01", "PCI-02", "PCI-03", "PCI-04", "PCI-05", "PCI-06",
        "PCI-07", "PCI-09", "PCI-10", "PCI-11", "PCI-12", "PCI-16",
    ),
    RiskResponseType.REDUCE_IMPACT: ("PCI-13", "PCI-14", "PCI-15", "PCI-08", "PCI-12"),
    RiskResponseType.TRANSFER_SHARE: ("PCI-14", "PCI-13"),
    RiskResponseType.AVOID: ("PCI-01", "PCI-07", "PCI-16", "PCI-03"),
    RiskResponseType.ACCEPT: (),
}

FALLBACK_RATIONALE = "Recommended by the library mapping for this response type."


def recommend_templates(
    response_type: RiskResponseType | str,
    provider_suggestions: Iterable[Mapping[str, Any]],
    catalog: TemplateCatalog,
    *,
    limit: int | None = None,
) -> list[TemplateSuggestion]:
    """Merge opaque provider suggestions with the static priority table.

    Provider entries are trusted for ordering and rationale only; unknown or retired
    template ids are dropped. Table entries fill in whatever the provider left out.
    """
    response = parse_enum(RiskResponseType, response_type, field="response_type")
    if response is RiskResponseType.ACCEPT:
        return []

    active = {t.id: t for t in catalog.active_templates()}
    seen: set[str] = set()
    out: list[TemplateSuggestion] = []

    for raw in provider_suggestions:
        template_id = str(raw.get("template_id", "")).strip()
        if template_id not in active or template_id in seen:
            continue
        seen.add(template_id)
        out.append(
            TemplateSuggestion(
                template_id=template_id,
                template_name=active[template_id].name,
                priority=len(out) + 1,
                rationale=str(raw.get("rationale", "")).strip() or FALLBACK_RATIONALE,
                source="provider",
            )
        )

    for template_id in RESPONSE_TEMPLATE_PRIORITY[response]:
        if template_id not in active or template_id in seen:
            continue
        seen.add(template_id)
        out.append(
            TemplateSuggestion(
                template_id=template_id,
                template_name=active[template_id].name,
                priority=len(out) + 1,
                rationale=FALLBACK_RATIONALE,
                source="fallback",
            )
        )

    return out[:limit] if limit else out
