"""
Plan catalog endpoints
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends

from .dependencies import get_system, http_error
from .schemas import PlanResponse, ProjectionResponse
from ..errors import EngineError, ValidationError
from ..currency import to_decimal
from ..system import InvestmentSystem


router = APIRouter()


def _parse_amount(value: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise http_error(ValidationError(str(e)))


@router.get("", response_model=List[PlanResponse])
async def list_plans(system: InvestmentSystem = Depends(get_system)):
    """List all investment plans in declaration order"""
    return system.catalog.to_list()


@router.get("/recommend")
async def recommend_plan(amount: str, system: InvestmentSystem = Depends(get_system)):
    """Best plan for an amount, or null when no plan accepts it"""
    plan = system.catalog.recommend_plan(_parse_amount(amount))
    return {
        "amount": amount,
        "plan": plan.to_dict() if plan else None,
    }


@router.get("/{plan_id}/projection", response_model=ProjectionResponse)
async def get_projection(
    plan_id: str,
    amount: str,
    days: int = 0,
    base_balance: Optional[str] = None,
    user_id: Optional[str] = None,
    system: InvestmentSystem = Depends(get_system)
):
    """Project returns for an amount after a number of days"""
    try:
        base = _parse_amount(base_balance) if base_balance is not None else None
        projection = system.project(plan_id, _parse_amount(amount), days, base, user_id)
    except EngineError as e:
        raise http_error(e)
    return projection.to_dict()
