from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from .. import models, schemas
from ..database import get_db
from ..formatting import format_currency
from ..submission import SqlProposalSink

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.post("/", response_model=schemas.ProposalCreated)
def create_proposal(payload: schemas.ProposalPayload, db: Session = Depends(get_db)):
    if not payload.template_elements:
        raise HTTPException(status_code=422, detail="Proposal has no priced elements")
    record = SqlProposalSink(db).store(payload)
    return schemas.ProposalCreated(
        id=record.id,
        grand_total=record.grand_total,
        formatted_total=format_currency(record.grand_total),
    )


@router.get("/{proposal_id}", response_model=schemas.ProposalRecord)
def get_proposal(proposal_id: int, db: Session = Depends(get_db)):
    proposal = db.query(models.Proposal).filter(models.Proposal.id == proposal_id).first()
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal
