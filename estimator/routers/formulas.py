from fastapi import APIRouter
from .. import schemas
from ..formatting import format_currency
from ..formula_evaluator import evaluate_formula

router = APIRouter(prefix="/formulas", tags=["formulas"])


@router.post("/evaluate", response_model=schemas.EvaluateResponse)
def evaluate(request: schemas.EvaluateRequest):
    """Evaluate one formula. Unknown parameters or bad syntax evaluate to 0, never an error."""
    value = evaluate_formula(request.formula, request.parameters)
    return schemas.EvaluateResponse(value=value, formatted=format_currency(value))
