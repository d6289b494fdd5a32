from .activation import check_activation_gate, check_instance_activation, check_instance_retirement
from .aggregation import aggregate_dimensions, raw_dimension_score
from .caps import constrain_effectiveness, design_cascade_applies, resolve_scores
from .confidence import (
    DEFAULT_WEIGHTS,
    ConfidenceInputs,
    ConfidenceWeights,
    compute_confidence,
    confidence_label,
)
from .effectiveness import dimension_breakdown, effectiveness_band, normalize_effectiveness
from .instantiation import build_pci_instance, validate_parameters
from .recommendation import RESPONSE_TEMPLATE_PRIORITY, recommend_templates
from .residual import compute_residual_risk, control_effectiveness
from .scoring import compute_dime_score

__all__ = [
    "DEFAULT_WEIGHTS",
    "RESPONSE_TEMPLATE_PRIORITY",
    "ConfidenceInputs",
    "ConfidenceWeights",
    "aggregate_dimensions",
    "build_pci_instance",
    "check_activation_gate",
    "check_instance_activation",
    "check_instance_retirement",
    "compute_confidence",
    "compute_dime_score",
    "compute_residual_risk",
    "confidence_label",
    "constrain_effectiveness",
    "control_effectiveness",
    "design_cascade_applies",
    "dimension_breakdown",
    "effectiveness_band",
    "normalize_effectiveness",
    "raw_dimension_score",
    "recommend_templates",
    "resolve_scores",
    "validate_parameters",
]
