"""
Engine Error Taxonomy

Every failure the engine surfaces is one of these kinds. None of them is
retried internally; callers decide whether and how to retry.
"""

from decimal import Decimal
from typing import Optional


class EngineError(Exception):
    """Base exception for the investment engine"""

    code = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(EngineError):
    """Malformed input, missing plan data or amount rules violated"""

    code = "validation_error"


class AmountOutOfRange(ValidationError):
    """Amount falls outside the plan's [minimum, maximum] bounds"""

    code = "amount_out_of_range"

    def __init__(self, minimum: Decimal, maximum: Optional[Decimal], amount: Optional[Decimal] = None):
        upper = str(maximum) if maximum is not None else "unbounded"
        super().__init__(f"Amount {amount} is outside plan limits [{minimum}, {upper}]")
        self.minimum = minimum
        self.maximum = maximum
        self.amount = amount

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["min"] = str(self.minimum)
        result["max"] = str(self.maximum) if self.maximum is not None else None
        return result


class InsufficientFunds(ValidationError):
    """Available balance does not cover the requested amount"""

    code = "insufficient_funds"

    def __init__(self, available: Decimal, requested: Decimal):
        super().__init__(f"Insufficient funds: available {available}, requested {requested}")
        self.available = available
        self.requested = requested


class NotFound(EngineError):
    """Unknown transaction or plan"""

    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransition(EngineError):
    """Requested action is not an edge of the transaction's status graph"""

    code = "invalid_transition"

    def __init__(self, transaction_id: str, status: str, action: str):
        super().__init__(f"Cannot {action} transaction {transaction_id} in status {status}")
        self.transaction_id = transaction_id
        self.status = status
        self.action = action


class ConcurrencyConflict(EngineError):
    """Stored status changed between read and compare-and-commit"""

    code = "concurrency_conflict"

    def __init__(self, transaction_id: str, expected: str, actual: Optional[str]):
        super().__init__(
            f"Transaction {transaction_id} was already processed: "
            f"expected status {expected}, found {actual}"
        )
        self.transaction_id = transaction_id
        self.expected = expected
        self.actual = actual


class Forbidden(EngineError):
    """Actor lacks the permission the operation requires"""

    code = "forbidden"

    def __init__(self, actor_id: Optional[str], permission: str):
        super().__init__(f"Actor {actor_id} lacks permission {permission}")
        self.actor_id = actor_id
        self.permission = permission
