from fastapi import APIRouter
from .. import schemas
from ..cost_aggregator import CostAggregator
from ..formatting import format_currency

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/summary", response_model=schemas.PricingResponse)
def summarize(request: schemas.PricingRequest):
    """
    Totals for a snapshot of priced elements.
    Costs are taken as given; the global markup overrides every element's markup when enabled.
    """
    summary = CostAggregator().summarize(request.elements, request.global_markup)
    return schemas.PricingResponse(
        **summary.model_dump(),
        formatted_grand_total=format_currency(summary.grand_total),
        formatted_module_subtotals={
            str(m.module_id): format_currency(m.subtotal) for m in summary.modules
        },
    )
