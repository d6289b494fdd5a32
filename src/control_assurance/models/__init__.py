from .attestation import (
    AttestationUpdate,
    PCIInstance,
    PCITemplate,
    PendingAttestationChanges,
    RawControl,
    SecondaryControlInstance,
    SecondaryControlTemplate,
    apply_attestation,
    parse_timestamp,
    to_control_instance,
    validate_attestation,
)
from .enums import (
    CRITICALITY_WEIGHTS,
    DIMENSION_LABELS,
    DIMENSION_ORDER,
    RESPONSE_TYPE_LABELS,
    STATUS_VALUES,
    ConfidenceLabel,
    ConstrainedBy,
    ControlStatus,
    Criticality,
    Dimension,
    DriverType,
    EvidenceRequestStatus,
    PCIObjective,
    PCIStatus,
    ReviewDecision,
    RiskResponseType,
    parse_enum,
    parse_status,
)
from .evidence import (
    EvidenceRequest,
    EvidenceScope,
    EvidenceSubmission,
    RawEvidenceRequest,
    to_evidence_request,
)
from .risk import GateResult, ResidualRisk, RiskResponse, TemplateSuggestion
from .scores import (
    AggregationResult,
    CapDetails,
    ConfidenceDriver,
    ConfidenceScore,
    ControlTrace,
    DerivedDIMEScore,
    DimensionTotals,
    EffectivenessResult,
)

__all__ = [
    "AggregationResult",
    "AttestationUpdate",
    "CRITICALITY_WEIGHTS",
    "CapDetails",
    "ConfidenceDriver",
    "ConfidenceLabel",
    "ConfidenceScore",
    "ConstrainedBy",
    "ControlStatus",
    "ControlTrace",
    "Criticality",
    "DIMENSION_LABELS",
    "DIMENSION_ORDER",
    "DerivedDIMEScore",
    "Dimension",
    "DimensionTotals",
    "DriverType",
    "EffectivenessResult",
    "EvidenceRequest",
    "EvidenceRequestStatus",
    "EvidenceScope",
    "EvidenceSubmission",
    "GateResult",
    "PCIInstance",
    "PCIObjective",
    "PCIStatus",
    "PCITemplate",
    "RESPONSE_TYPE_LABELS",
    "PendingAttestationChanges",
    "RawControl",
    "RawEvidenceRequest",
    "ResidualRisk",
    "ReviewDecision",
    "RiskResponse",
    "RiskResponseType",
    "STATUS_VALUES",
    "SecondaryControlInstance",
    "SecondaryControlTemplate",
    "TemplateSuggestion",
    "apply_attestation",
    "parse_enum",
    "parse_status",
    "parse_timestamp",
    "to_control_instance",
    "to_evidence_request",
    "validate_attestation",
]
