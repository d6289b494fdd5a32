"""
Request bodies for the assurance API.

Enumerated fields stay plain strings here; the engine parses them so unknown values
surface as domain errors with a stable error code.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RiskRegister(BaseModel):
    title: str = Field("", description="Display title from the risk register")
    inherent_likelihood: Optional[int] = Field(None, ge=1, description="Inherent likelihood rating")
    inherent_impact: Optional[int] = Field(None, ge=1, description="Inherent impact rating")


class RiskResponseUpsert(BaseModel):
    response_type: str = Field(..., description="avoid | reduce_likelihood | reduce_impact | transfer_share | accept")
    response_rationale: str = ""
    ai_proposed_response: Optional[str] = None
    ai_response_rationale: str = ""


class PCICreate(BaseModel):
    """Instantiate a library template against a risk.

    Required parameters depend on the template; missing ones are reported together.
    """

    template_id: str = Field(..., description="Library template id, e.g. PCI-03")
    objective: Optional[str] = Field(None, description="likelihood | impact | both; defaults to the template's")
    statement: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)


class AttestationPatch(BaseModel):
    status: str = Field(..., description="yes | partial | no | na")
    evidence_exists: Optional[bool] = None
    notes: Optional[str] = None
    na_rationale: Optional[str] = None
    expected_version: Optional[int] = Field(None, description="Reject the write if the control changed since read")


class PendingAttestation(AttestationPatch):
    secondary_control_instance_id: str


class PendingAttestationBatch(BaseModel):
    changes: List[PendingAttestation] = Field(default_factory=list)


class EvidenceRequestCreate(BaseModel):
    """Exactly one of the three scope ids must be set; checked by the workflow."""

    pci_instance_id: Optional[str] = None
    secondary_control_instance_id: Optional[str] = None
    risk_id: Optional[str] = None
    due_date: Optional[date] = None
    notes: str = ""
    is_critical_scope: bool = False


class EvidenceSubmissionCreate(BaseModel):
    submission_note: str = ""


class EvidenceReview(BaseModel):
    decision: str = Field(..., description="accepted | rejected")
    review_notes: str = ""
