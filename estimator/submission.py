"""
Submission sink: persists finalized proposals.

Costs in an incoming payload are re-derived from their formulas against the
payload's own parameters before anything is stored, so a stale client-side
number never reaches the database.
"""

import logging

from sqlalchemy.orm import Session

from . import models
from .cost_aggregator import CostAggregator
from .formula_evaluator import evaluate_formula
from .schemas import ElementDefinition, Module, PricedElement, ProposalPayload

logger = logging.getLogger(__name__)


def reprice_payload(payload: ProposalPayload, aggregator: CostAggregator = None) -> tuple[ProposalPayload, float]:
    """
    Returns (payload with recomputed costs, grand total).

    The total is priced at the payload's whole-percent markups, so it matches the
    stored line items. A session priced at a fractional markup (e.g. 12.5%) is
    stored at the truncated percentage and can differ from the builder's
    `grand_total`.
    """
    aggregator = aggregator or CostAggregator()
    repriced = []
    priced_elements = []

    for te in payload.template_elements:
        material = evaluate_formula(te.formula, payload.parameters)
        labor = evaluate_formula(te.labor_formula, payload.parameters)
        if abs(material - te.material_cost) > 1e-9 or abs(labor - te.labor_cost) > 1e-9:
            logger.info(
                f"Element {te.element.id} in module {te.module.id}: submitted costs "
                f"({te.material_cost}, {te.labor_cost}) replaced with ({material}, {labor})"
            )
        te = te.model_copy(update={"material_cost": material, "labor_cost": labor})
        repriced.append(te)
        priced_elements.append(PricedElement(
            id=te.id,
            element=ElementDefinition(**te.element.model_dump()),
            module=Module(**te.module.model_dump()),
            formula=te.formula,
            labor_formula=te.labor_formula,
            material_cost=material,
            labor_cost=labor,
            markup=te.markup,
        ))

    grand_total = aggregator.grand_total(priced_elements)
    return payload.model_copy(update={"template_elements": repriced}), grand_total


class SqlProposalSink:
    """ProposalSink backed by the `proposals` table."""

    def __init__(self, db: Session):
        self.db = db

    def submit(self, payload: ProposalPayload) -> int:
        record = self.store(payload)
        return record.id

    def store(self, payload: ProposalPayload) -> models.Proposal:
        payload, grand_total = reprice_payload(payload)
        record = models.Proposal(
            template_id=payload.id,
            name=payload.name,
            title=payload.title or payload.name,
            description=payload.description,
            client_name=payload.client_name,
            client_email=payload.client_email,
            client_phone=payload.client_phone,
            client_address=payload.client_address,
            image=payload.image,
            grand_total=grand_total,
            payload_json=payload.model_dump(mode="json", by_alias=True),
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Stored proposal {record.id} for {payload.client_name}, total {grand_total:.2f}")
        return record
