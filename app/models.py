from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db import Base


class Risk(Base):
    """Reference to a risk owned by the risk register; only what activation needs."""

    __tablename__ = "risks"

    id = Column(String(64), primary_key=True, index=True)
    title = Column(String(255), default="", nullable=False)
    status = Column(String(32), default="draft", nullable=False)
    inherent_likelihood = Column(Integer, nullable=True)
    inherent_impact = Column(Integer, nullable=True)
    activated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    response = relationship("RiskResponseRow", back_populates="risk", uselist=False, cascade="all, delete-orphan")
    pci_instances = relationship(
        "PCIInstanceRow",
        back_populates="risk",
        cascade="all, delete-orphan",
        order_by="PCIInstanceRow.created_at",
    )


class RiskResponseRow(Base):
    __tablename__ = "risk_responses"

    id = Column(Integer, primary_key=True, index=True)
    risk_id = Column(String(64), ForeignKey("risks.id"), unique=True, nullable=False, index=True)
    response_type = Column(String(32), nullable=False)
    response_rationale = Column(Text, default="", nullable=False)
    ai_proposed_response = Column(String(32), nullable=True)
    ai_response_rationale = Column(Text, default="", nullable=False)
    updated_by = Column(String(128), default="", nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    risk = relationship("Risk", back_populates="response")


class PCIInstanceRow(Base):
    __tablename__ = "pci_instances"
    __table_args__ = (Index("ix_pci_instances_risk_status", "risk_id", "status"),)

    id = Column(String(36), primary_key=True, index=True)
    risk_id = Column(String(64), ForeignKey("risks.id"), nullable=False, index=True)
    pci_template_id = Column(String(16), nullable=False, index=True)
    pci_template_version = Column(String(16), default="1.0", nullable=False)
    objective = Column(String(16), nullable=False)
    statement = Column(Text, default="", nullable=False)
    status = Column(String(16), default="draft", nullable=False)
    parameters_json = Column(Text, default="{}", nullable=False)
    created_by = Column(String(128), default="", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    activated_at = Column(DateTime, nullable=True)
    retired_at = Column(DateTime, nullable=True)

    risk = relationship("Risk", back_populates="pci_instances")
    controls = relationship(
        "SecondaryControlInstanceRow",
        back_populates="pci_instance",
        cascade="all, delete-orphan",
        order_by="SecondaryControlInstanceRow.position",
    )
    dime_score = relationship(
        "DerivedDIMEScoreRow", back_populates="pci_instance", uselist=False, cascade="all, delete-orphan"
    )
    confidence = relationship(
        "ConfidenceScoreRow", back_populates="pci_instance", uselist=False, cascade="all, delete-orphan"
    )


class SecondaryControlInstanceRow(Base):
    __tablename__ = "secondary_control_instances"

    id = Column(String(36), primary_key=True, index=True)
    pci_instance_id = Column(String(36), ForeignKey("pci_instances.id"), nullable=False, index=True)
    secondary_control_template_id = Column(String(32), nullable=False)
    position = Column(Integer, default=0, nullable=False)
    code = Column(String(8), nullable=False)
    dimension = Column(String(1), nullable=False)
    criticality = Column(String(16), nullable=False)
    prompt = Column(Text, default="", nullable=False)
    template_version = Column(String(16), default="1.0", nullable=False)
    # NULL until the first attestation.
    status = Column(String(16), nullable=True)
    evidence_exists = Column(Boolean, nullable=True)
    notes = Column(Text, default="", nullable=False)
    na_rationale = Column(Text, default="", nullable=False)
    attested_by = Column(String(128), default="", nullable=False)
    attested_at = Column(DateTime, nullable=True)
    version = Column(Integer, default=1, nullable=False)

    pci_instance = relationship("PCIInstanceRow", back_populates="controls")


class DerivedDIMEScoreRow(Base):
    __tablename__ = "derived_dime_scores"

    pci_instance_id = Column(String(36), ForeignKey("pci_instances.id"), primary_key=True)
    d_score = Column(Float, default=0.0, nullable=False)
    i_score = Column(Float, default=0.0, nullable=False)
    m_score = Column(Float, default=0.0, nullable=False)
    e_raw = Column(Float, default=0.0, nullable=False)
    e_final = Column(Float, default=0.0, nullable=False)
    cap_applied = Column(Boolean, default=False, nullable=False)
    cap_details_json = Column(Text, default="{}", nullable=False)
    cascade_applied = Column(Boolean, default=False, nullable=False)
    constrained_by = Column(String(8), default="none", nullable=False)
    calc_trace_json = Column(Text, default="{}", nullable=False)
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pci_instance = relationship("PCIInstanceRow", back_populates="dime_score")


class ConfidenceScoreRow(Base):
    __tablename__ = "confidence_scores"

    pci_instance_id = Column(String(36), ForeignKey("pci_instances.id"), primary_key=True)
    confidence_score = Column(Integer, default=0, nullable=False)
    confidence_label = Column(String(16), default="low", nullable=False)
    drivers_json = Column(Text, default="[]", nullable=False)
    computed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pci_instance = relationship("PCIInstanceRow", back_populates="confidence")


class EvidenceRequestRow(Base):
    __tablename__ = "evidence_requests"
    __table_args__ = (Index("ix_evidence_requests_status_due", "status", "due_date"),)

    id = Column(String(36), primary_key=True, index=True)
    pci_instance_id = Column(String(36), ForeignKey("pci_instances.id"), nullable=True, index=True)
    secondary_control_instance_id = Column(
        String(36), ForeignKey("secondary_control_instances.id"), nullable=True, index=True
    )
    risk_id = Column(String(64), ForeignKey("risks.id"), nullable=True, index=True)
    status = Column(String(16), default="open", nullable=False)
    due_date = Column(Date, nullable=False)
    is_critical_scope = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, default="", nullable=False)
    requested_by = Column(String(128), default="", nullable=False)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    submissions = relationship(
        "EvidenceSubmissionRow",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="EvidenceSubmissionRow.sequence",
    )


class EvidenceSubmissionRow(Base):
    __tablename__ = "evidence_submissions"

    id = Column(String(36), primary_key=True, index=True)
    evidence_request_id = Column(String(36), ForeignKey("evidence_requests.id"), nullable=False, index=True)
    sequence = Column(Integer, default=1, nullable=False)
    submission_note = Column(Text, nullable=False)
    submitted_by = Column(String(128), default="", nullable=False)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    decision = Column(String(16), nullable=True)
    review_notes = Column(Text, default="", nullable=False)
    reviewed_by = Column(String(128), default="", nullable=False)
    reviewed_at = Column(DateTime, nullable=True)

    request = relationship("EvidenceRequestRow", back_populates="submissions")
