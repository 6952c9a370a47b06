"""
Transaction and balance endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import get_actor, get_system, http_error
from .schemas import BalanceResponse, DepositRequest, TransactionResponse, WithdrawRequest
from ..errors import EngineError
from ..rbac import Actor, Permission
from ..system import InvestmentSystem
from ..transactions import Transaction, TransactionKind, TransactionRequest


router = APIRouter()
users_router = APIRouter()


def transaction_response(transaction: Transaction) -> TransactionResponse:
    data = transaction.to_dict()
    data.pop('metadata', None)
    data['allowed_actions'] = [action.value for action in transaction.allowed_actions]
    return TransactionResponse(**data)


@router.post("/deposit", response_model=TransactionResponse)
async def deposit(
    request: DepositRequest,
    actor: Optional[Actor] = Depends(get_actor),
    system: InvestmentSystem = Depends(get_system)
):
    """Submit a deposit; balance-funded deposits may come back already confirmed"""
    try:
        transaction = system.create_transaction(
            TransactionRequest(
                user_id=request.user_id,
                kind=TransactionKind.DEPOSIT,
                amount=request.amount,
                method=request.method,
                plan_id=request.plan_id,
                currency=request.currency,
                description=request.description,
                metadata=request.metadata,
            ),
            actor,
        )
    except EngineError as e:
        raise http_error(e)
    return transaction_response(transaction)


@router.post("/withdraw", response_model=TransactionResponse)
async def withdraw(
    request: WithdrawRequest,
    actor: Optional[Actor] = Depends(get_actor),
    system: InvestmentSystem = Depends(get_system)
):
    """Request a withdrawal; funds leave the balance only on completion"""
    try:
        transaction = system.create_transaction(
            TransactionRequest(
                user_id=request.user_id,
                kind=TransactionKind.WITHDRAWAL,
                amount=request.amount,
                method=request.method,
                currency=request.currency,
                description=request.description,
                metadata=request.metadata,
            ),
            actor,
        )
    except EngineError as e:
        raise http_error(e)
    return transaction_response(transaction)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    actor: Optional[Actor] = Depends(get_actor),
    system: InvestmentSystem = Depends(get_system)
):
    try:
        system.authorizer.authorize(actor, Permission.VIEW_TRANSACTION)
        transaction = system.engine.get_transaction(transaction_id)
        system.authorizer.authorize_for(actor, Permission.VIEW_TRANSACTION, transaction.user_id)
    except EngineError as e:
        raise http_error(e)
    return transaction_response(transaction)


@users_router.get("/{user_id}/balance", response_model=BalanceResponse)
async def get_balance(
    user_id: str,
    actor: Optional[Actor] = Depends(get_actor),
    system: InvestmentSystem = Depends(get_system)
):
    try:
        system.authorizer.authorize_for(actor, Permission.VIEW_TRANSACTION, user_id)
    except EngineError as e:
        raise http_error(e)
    return system.get_balance(user_id).to_dict()
