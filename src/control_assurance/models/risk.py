from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .enums import RiskResponseType


@dataclass(slots=True, frozen=True)
class RiskResponse:
    risk_id: str
    response_type: RiskResponseType
    response_rationale: str = ""
    ai_proposed_response: RiskResponseType | None = None
    ai_response_rationale: str = ""

    @property
    def requires_controls(self) -> bool:
        return self.response_type is not RiskResponseType.ACCEPT

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_id": self.risk_id,
            "response_type": self.response_type.value,
            "response_rationale": self.response_rationale,
            "ai_proposed_response": self.ai_proposed_response.value if self.ai_proposed_response else None,
            "ai_response_rationale": self.ai_response_rationale,
        }


@dataclass(slots=True, frozen=True)
class GateResult:
    can_activate: bool
    has_response: bool
    response_type: RiskResponseType | None
    pci_count: int
    attested_pci_count: int
    validation_message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "can_activate": self.can_activate,
            "has_response": self.has_response,
            "response_type": self.response_type.value if self.response_type else None,
            "pci_count": self.pci_count,
            "attested_pci_count": self.attested_pci_count,
            "validation_message": self.validation_message,
        }


@dataclass(slots=True, frozen=True)
class ResidualRisk:
    residual_likelihood: int
    residual_impact: int
    residual_score: int
    max_likelihood_effectiveness: float
    max_impact_effectiveness: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "residual_likelihood": self.residual_likelihood,
            "residual_impact": self.residual_impact,
            "residual_score": self.residual_score,
            "max_likelihood_effectiveness": round(self.max_likelihood_effectiveness, 4),
            "max_impact_effectiveness": round(self.max_impact_effectiveness, 4),
        }


@dataclass(slots=True, frozen=True)
class TemplateSuggestion:
    template_id: str
    template_name: str
    priority: int
    rationale: str
    source: str = "provider"

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_id": self.template_id,
            "template_name": self.template_name,
            "priority": self.priority,
            "rationale": self.rationale,
            "source": self.source,
        }
