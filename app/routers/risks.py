from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_actor, get_db
from app.schemas import PCICreate, RiskRegister, RiskResponseUpsert
from app.services import pci_service, risk_service

router = APIRouter(prefix="/api/risks", tags=["risks"])


@router.put("/{risk_id}")
def register_risk(risk_id: str, body: RiskRegister, db: Session = Depends(get_db)):
    row = risk_service.register_risk(
        db,
        risk_id,
        title=body.title,
        inherent_likelihood=body.inherent_likelihood,
        inherent_impact=body.inherent_impact,
    )
    return risk_service.risk_to_dict(row)


@router.get("/{risk_id}")
def get_risk(risk_id: str, db: Session = Depends(get_db)):
    return risk_service.risk_to_dict(risk_service.get_risk(db, risk_id))


@router.get("/{risk_id}/response")
def get_response(risk_id: str, db: Session = Depends(get_db)):
    response = risk_service.get_response(db, risk_id)
    return {"risk_id": risk_id, "response": response.to_dict() if response else None}


@router.put("/{risk_id}/response")
def put_response(
    risk_id: str,
    body: RiskResponseUpsert,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    response = risk_service.upsert_response(
        db,
        risk_id,
        response_type=body.response_type,
        response_rationale=body.response_rationale,
        ai_proposed_response=body.ai_proposed_response,
        ai_response_rationale=body.ai_response_rationale,
        actor=actor,
    )
    return {"risk_id": risk_id, "response": response.to_dict()}


@router.get("/{risk_id}/gate")
def get_gate(risk_id: str, db: Session = Depends(get_db)):
    return risk_service.evaluate_gate(db, risk_id).to_dict()


@router.post("/{risk_id}/activate")
def activate_risk(risk_id: str, db: Session = Depends(get_db), actor: str = Depends(get_actor)):
    gate = risk_service.activate_risk(db, risk_id, actor=actor)
    return {"risk": risk_service.risk_to_dict(risk_service.get_risk(db, risk_id)), "gate": gate.to_dict()}


@router.get("/{risk_id}/residual")
def get_residual(
    risk_id: str,
    inherent_likelihood: Optional[int] = Query(default=None),
    inherent_impact: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
):
    residual = risk_service.residual_for_risk(
        db,
        risk_id,
        inherent_likelihood=inherent_likelihood,
        inherent_impact=inherent_impact,
    )
    return {"risk_id": risk_id, **residual.to_dict()}


@router.get("/{risk_id}/suggestions")
def get_suggestions(risk_id: str, db: Session = Depends(get_db)):
    items = risk_service.suggestions_for_risk(db, risk_id)
    return {"risk_id": risk_id, "items": [s.to_dict() for s in items]}


@router.post("/{risk_id}/pci", status_code=201)
def create_pci(
    risk_id: str,
    body: PCICreate,
    db: Session = Depends(get_db),
    actor: str = Depends(get_actor),
):
    row = pci_service.instantiate_pci(
        db,
        risk_id=risk_id,
        template_id=body.template_id,
        parameters=body.parameters,
        objective=body.objective,
        statement=body.statement,
        actor=actor,
    )
    return pci_service.pci_to_dict(row)


@router.get("/{risk_id}/pci")
def list_pci(risk_id: str, include_retired: bool = Query(default=True), db: Session = Depends(get_db)):
    rows = pci_service.list_pci_for_risk(db, risk_id, include_retired=include_retired)
    return {"risk_id": risk_id, "items": [pci_service.pci_to_dict(r) for r in rows]}
