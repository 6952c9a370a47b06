"""
Return Calculator Module

Deterministic return math for investment plans. Everything here is a pure
function of (plan, principal, days): no I/O, no clocks, no shared state.

Intermediate values stay unrounded; only the figures handed back to callers
are rounded (2 places, half to even), so repeated projections never compound
rounding error.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from .currency import ZERO, percent_of, round_money, to_decimal
from .errors import ValidationError
from .plans import InvestmentPlan


@dataclass(frozen=True)
class Projection:
    """Rounded return figures for one principal under one plan at one point in time"""
    plan_id: str
    principal: Decimal
    days_elapsed: int
    effective_days: int      # days_elapsed clamped to the plan duration
    maturity_days: int
    daily_return: Decimal
    total_return: Decimal
    accrued_return: Decimal
    projected_balance: Decimal

    @property
    def is_mature(self) -> bool:
        return self.days_elapsed >= self.maturity_days

    def to_dict(self) -> Dict[str, object]:
        return {
            'plan_id': self.plan_id,
            'principal': str(self.principal),
            'days_elapsed': self.days_elapsed,
            'effective_days': self.effective_days,
            'maturity_days': self.maturity_days,
            'daily_return': str(self.daily_return),
            'total_return': str(self.total_return),
            'accrued_return': str(self.accrued_return),
            'projected_balance': str(self.projected_balance),
        }


def _principal(value) -> Decimal:
    try:
        principal = to_decimal(value)
    except ValueError as e:
        raise ValidationError(str(e))
    if principal < ZERO:
        raise ValidationError(f"Principal cannot be negative: {principal}")
    return principal


def _base_balance(value) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise ValidationError(str(e))


def _effective_days(plan: InvestmentPlan, days_elapsed: int) -> int:
    if days_elapsed < 0:
        raise ValidationError(f"Days elapsed cannot be negative: {days_elapsed}")
    return min(days_elapsed, plan.duration_days)


def _daily(plan: InvestmentPlan, principal: Decimal) -> Decimal:
    return percent_of(principal, plan.daily_profit_percent)


def daily_return(plan: InvestmentPlan, principal) -> Decimal:
    """principal × daily profit percent / 100"""
    return round_money(_daily(plan, _principal(principal)))


def total_return(plan: InvestmentPlan, principal) -> Decimal:
    """principal × total return percent / 100 (full-term payout)"""
    return round_money(percent_of(_principal(principal), plan.total_return_percent))


def accrued_return(plan: InvestmentPlan, principal, days_elapsed: int) -> Decimal:
    """Profit accrued after ``days_elapsed`` days, capped at the plan duration"""
    principal = _principal(principal)
    return round_money(_daily(plan, principal) * _effective_days(plan, days_elapsed))


def projected_balance(plan: InvestmentPlan, principal, days_elapsed: int,
                      base_balance=ZERO) -> Decimal:
    """
    Balance after ``days_elapsed`` days

    base_balance + principal + daily_return × min(days_elapsed, duration_days).
    Accrual stops at the plan duration; later days return the same figure.
    """
    principal = _principal(principal)
    days = _effective_days(plan, days_elapsed)
    return round_money(_base_balance(base_balance) + principal + _daily(plan, principal) * days)


def project(plan: InvestmentPlan, principal, days_elapsed: int,
            base_balance=ZERO) -> Projection:
    """
    Full projection for a principal under a plan

    Args:
        plan: Investment plan
        principal: Amount invested
        days_elapsed: Days since the investment started
        base_balance: Funds already held, added to the projected balance only

    Returns:
        Projection with every monetary figure rounded half-to-even
    """
    principal = _principal(principal)
    days = _effective_days(plan, days_elapsed)
    daily = _daily(plan, principal)
    return Projection(
        plan_id=plan.id,
        principal=round_money(principal),
        days_elapsed=days_elapsed,
        effective_days=days,
        maturity_days=plan.duration_days,
        daily_return=round_money(daily),
        total_return=round_money(percent_of(principal, plan.total_return_percent)),
        accrued_return=round_money(daily * days),
        projected_balance=round_money(_base_balance(base_balance) + principal + daily * days),
    )


def schedule(plan: InvestmentPlan, principal, base_balance=ZERO) -> List[Projection]:
    """Day-by-day projections from day 0 through maturity"""
    return [
        project(plan, principal, day, base_balance)
        for day in range(plan.duration_days + 1)
    ]


def maturity_date(plan: InvestmentPlan, start: datetime) -> datetime:
    """Date the plan term ends for an investment started at ``start``"""
    return start + timedelta(days=plan.duration_days)


def returns_for(plan: Optional[InvestmentPlan], principal) -> Dict[str, Optional[Decimal]]:
    """daily/total return pair for a transaction, or Nones when it carries no plan"""
    if plan is None:
        return {'daily_return': None, 'total_return': None}
    return {
        'daily_return': daily_return(plan, principal),
        'total_return': total_return(plan, principal),
    }
