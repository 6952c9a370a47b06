"""
Admin endpoints: single and bulk transaction actions
"""

from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import get_actor, get_system, http_error
from .schemas import BulkActionRequest, BulkResultResponse, TransactionResponse, TransitionRequest
from .transactions import transaction_response
from ..errors import EngineError
from ..rbac import Actor
from ..system import InvestmentSystem


router = APIRouter()


@router.post("/transactions/bulk", response_model=BulkResultResponse)
async def bulk_action(
    request: BulkActionRequest,
    actor: Optional[Actor] = Depends(get_actor),
    system: InvestmentSystem = Depends(get_system)
):
    """Apply one action to many transactions; partial success is reported per item"""
    try:
        result = system.bulk_transition(
            request.transaction_ids, request.action, actor, request.reason
        )
    except EngineError as e:
        raise http_error(e)

    return {
        "action": result.action.value,
        "succeeded": result.succeeded_ids,
        "failed": [failure.to_dict() for failure in result.failed],
        "summary": result.summary(),
    }


@router.post("/transactions/{transaction_id}/{action}", response_model=TransactionResponse)
async def transaction_action(
    transaction_id: str,
    action: str,
    request: Optional[TransitionRequest] = None,
    actor: Optional[Actor] = Depends(get_actor),
    system: InvestmentSystem = Depends(get_system)
):
    """Apply confirm, fail, approve, reject, process or complete to one transaction"""
    reason = request.reason if request else None
    try:
        transaction = system.transition(transaction_id, action, actor, reason)
    except EngineError as e:
        raise http_error(e)
    return transaction_response(transaction)
