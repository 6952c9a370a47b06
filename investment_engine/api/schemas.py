"""
Pydantic schemas for API requests and responses
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# Plan schemas
class PlanResponse(BaseModel):
    id: str
    name: str
    min_amount: str
    max_amount: Optional[str] = None
    daily_profit_percent: str
    duration_days: int
    total_return_percent: str


class ProjectionResponse(BaseModel):
    plan_id: str
    principal: str
    days_elapsed: int
    effective_days: int
    maturity_days: int
    daily_return: str
    total_return: str
    accrued_return: str
    projected_balance: str


# Transaction schemas
class DepositRequest(BaseModel):
    user_id: str
    amount: str = Field(..., description="Decimal amount as string")
    method: str = Field(..., description="Funding method: balance, bitcoin, bank, ...")
    plan_id: Optional[str] = None
    currency: str = "USD"
    description: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WithdrawRequest(BaseModel):
    user_id: str
    amount: str = Field(..., description="Decimal amount as string")
    method: str = Field(..., description="Payout method: bitcoin, bank, ...")
    currency: str = "USD"
    description: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TransactionResponse(BaseModel):
    id: str
    user_id: str
    kind: str
    amount: str
    currency: str
    method: str
    plan_id: Optional[str] = None
    fee: str
    net_amount: Optional[str] = None
    status: str
    status_timestamps: Dict[str, str]
    rejection_reason: Optional[str] = None
    daily_return: Optional[str] = None
    total_return: Optional[str] = None
    maturity_at: Optional[str] = None
    description: str
    created_at: str
    updated_at: str
    allowed_actions: List[str] = Field(default_factory=list)


class BalanceResponse(BaseModel):
    user_id: str
    available: str
    pending: str
    held: str
    spendable: str
    total: str


# Admin schemas
class TransitionRequest(BaseModel):
    reason: Optional[str] = None


class BulkActionRequest(BaseModel):
    transaction_ids: List[str]
    action: str
    reason: Optional[str] = None


class BulkFailureResponse(BaseModel):
    transaction_id: str
    code: str
    reason: str


class BulkResultResponse(BaseModel):
    action: str
    succeeded: List[str]
    failed: List[BulkFailureResponse]
    summary: str
