"""
Plan Catalog Module

Registry of tiered investment plans. A catalog is built once at startup
(from the built-in tiers or a JSON file) and injected wherever plans are
needed; it is never mutated afterwards, so lookups are safe from any thread.
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .currency import ZERO, to_decimal
from .errors import AmountOutOfRange, NotFound, ValidationError
from .logging_config import get_logger


@dataclass(frozen=True)
class InvestmentPlan:
    """
    Investment plan tier

    ``max_amount`` of None means the tier has no upper bound.
    """
    id: str
    name: str
    min_amount: Decimal
    max_amount: Optional[Decimal]
    daily_profit_percent: Decimal
    duration_days: int
    total_return_percent: Decimal

    def __post_init__(self):
        # Normalize numeric fields to Decimal
        object.__setattr__(self, 'min_amount', to_decimal(self.min_amount))
        if self.max_amount is not None:
            object.__setattr__(self, 'max_amount', to_decimal(self.max_amount))
        object.__setattr__(self, 'daily_profit_percent', to_decimal(self.daily_profit_percent))
        object.__setattr__(self, 'total_return_percent', to_decimal(self.total_return_percent))
        object.__setattr__(self, 'duration_days', int(self.duration_days))

        if not self.id:
            raise ValueError("Plan id is required")
        if self.min_amount < ZERO:
            raise ValueError(f"Plan {self.id}: minimum amount cannot be negative")
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError(f"Plan {self.id}: maximum amount is below minimum amount")
        if self.duration_days < 1:
            raise ValueError(f"Plan {self.id}: duration must be at least one day")
        if self.daily_profit_percent < ZERO or self.total_return_percent < ZERO:
            raise ValueError(f"Plan {self.id}: profit percentages cannot be negative")

    def contains(self, amount: Decimal) -> bool:
        """Check whether an amount falls inside this tier's bounds"""
        amount = to_decimal(amount)
        if amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'min_amount': str(self.min_amount),
            'max_amount': str(self.max_amount) if self.max_amount is not None else None,
            'daily_profit_percent': str(self.daily_profit_percent),
            'duration_days': self.duration_days,
            'total_return_percent': str(self.total_return_percent),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InvestmentPlan':
        max_amount = data.get('max_amount')
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            min_amount=to_decimal(data['min_amount']),
            max_amount=to_decimal(max_amount) if max_amount is not None else None,
            daily_profit_percent=to_decimal(data['daily_profit_percent']),
            duration_days=int(data['duration_days']),
            total_return_percent=to_decimal(data['total_return_percent']),
        )


DEFAULT_PLANS: Tuple[InvestmentPlan, ...] = (
    InvestmentPlan(
        id="starter", name="STARTER PLAN",
        min_amount=Decimal('50'), max_amount=Decimal('999'),
        daily_profit_percent=Decimal('2'), duration_days=3,
        total_return_percent=Decimal('106'),
    ),
    InvestmentPlan(
        id="premium", name="PREMIUM PLAN",
        min_amount=Decimal('1000'), max_amount=Decimal('4999'),
        daily_profit_percent=Decimal('3.5'), duration_days=7,
        total_return_percent=Decimal('124.5'),
    ),
    InvestmentPlan(
        id="delux", name="DELUX PLAN",
        min_amount=Decimal('5000'), max_amount=Decimal('19999'),
        daily_profit_percent=Decimal('5'), duration_days=10,
        total_return_percent=Decimal('150'),
    ),
    InvestmentPlan(
        id="luxury", name="LUXURY PLAN",
        min_amount=Decimal('20000'), max_amount=None,
        daily_profit_percent=Decimal('7.5'), duration_days=30,
        total_return_percent=Decimal('325'),
    ),
)


class PlanCatalog:
    """Ordered, immutable collection of investment plans"""

    def __init__(self, plans: Iterable[InvestmentPlan]):
        plans = tuple(plans)
        index: Dict[str, InvestmentPlan] = {}
        for plan in plans:
            if plan.id in index:
                raise ValueError(f"Duplicate plan id: {plan.id}")
            index[plan.id] = plan
        self._plans = plans
        self._index = index

    @classmethod
    def default(cls) -> 'PlanCatalog':
        """Catalog with the four built-in tiers"""
        return cls(DEFAULT_PLANS)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> 'PlanCatalog':
        return cls(InvestmentPlan.from_dict(dict(record)) for record in records)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'PlanCatalog':
        """Load a catalog from a JSON file containing a list of plan records"""
        with open(path, encoding="utf-8") as fh:
            records = json.load(fh)
        if not isinstance(records, list):
            raise ValueError(f"Plan file {path} must contain a JSON list")
        return cls.from_records(records)

    @property
    def plans(self) -> Tuple[InvestmentPlan, ...]:
        return self._plans

    def __iter__(self) -> Iterator[InvestmentPlan]:
        return iter(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._index

    def find_plan(self, plan_id: str) -> InvestmentPlan:
        """
        Look up a plan by id

        Raises:
            NotFound: If no plan has this id
        """
        plan = self._index.get(plan_id)
        if plan is None:
            raise NotFound("plan", plan_id)
        return plan

    def find_by_name(self, name: str) -> InvestmentPlan:
        """Look up a plan by display name (case-insensitive)"""
        for plan in self._plans:
            if plan.name.lower() == name.lower():
                return plan
        raise NotFound("plan", name)

    def validate_amount(self, plan: InvestmentPlan, amount: Decimal) -> None:
        """
        Check an amount against a plan's bounds

        Raises:
            AmountOutOfRange: If amount < min, or max is set and amount > max
        """
        try:
            amount = to_decimal(amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if not plan.contains(amount):
            raise AmountOutOfRange(plan.min_amount, plan.max_amount, amount)

    def recommend_plan(self, amount: Decimal) -> Optional[InvestmentPlan]:
        """
        Pick the best plan for an amount

        Among plans whose bounds contain the amount, returns the one with the
        highest total return; on ties the earliest declared plan wins.

        Raises:
            ValidationError: If the amount is not a finite number
        """
        try:
            amount = to_decimal(amount)
        except ValueError as e:
            raise ValidationError(str(e))
        best: Optional[InvestmentPlan] = None
        for plan in self._plans:
            if not plan.contains(amount):
                continue
            if best is None or plan.total_return_percent > best.total_return_percent:
                best = plan
        return best

    def to_list(self) -> List[Dict[str, Any]]:
        return [plan.to_dict() for plan in self._plans]


def load_catalog(config) -> PlanCatalog:
    """Build the catalog named by configuration (plans file or built-in tiers)"""
    logger = get_logger("investment_engine.plans")
    if config.plans_file:
        catalog = PlanCatalog.from_json_file(config.plans_file)
        logger.info(f"Loaded {len(catalog)} plans from {config.plans_file}")
        return catalog
    return PlanCatalog.default()
