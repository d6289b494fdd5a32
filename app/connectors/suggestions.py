from __future__ import annotations

import logging
from typing import Any

import requests

from app.config import get_settings

logger = logging.getLogger(__name__)


def _normalize(payload: Any) -> list[dict[str, Any]]:
    items = payload.get("suggestions", []) if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return []
    out: list[dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict) or not str(item.get("template_id", "")).strip():
            continue
        out.append(item)
    # Providers may send an explicit rank; otherwise list order is the ranking.
    if all(isinstance(item.get("priority"), (int, float)) for item in out):
        out.sort(key=lambda item: item["priority"])
    return out


def fetch_template_suggestions(
    *,
    risk_id: str,
    risk_title: str,
    response_type: str,
    response_rationale: str = "",
) -> list[dict[str, Any]]:
    """Ask the external suggestion provider for ranked PCI templates.

    Any provider failure yields an empty list; callers fall back to the library table.
    """
    settings = get_settings()
    url = settings.suggestion_provider_url
    if not url:
        return []

    body = {
        "risk_id": risk_id,
        "risk_title": risk_title,
        "response_type": response_type,
        "response_rationale": response_rationale,
    }
    try:
        res = requests.post(url, json=body, timeout=settings.suggestion_provider_timeout_seconds)
        res.raise_for_status()
        payload = res.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Suggestion provider failed for risk %s: %s", risk_id, exc.__class__.__name__)
        return []
    suggestions = _normalize(payload)
    logger.info("Suggestion provider returned %s template(s) for risk %s", len(suggestions), risk_id)
    return suggestions
