"""
Approval Coordinator Module

Single and bulk administrative actions over the transaction engine. Each
item in a bulk call is its own atomic transition; the batch as a whole is
never rolled back, and one failing item never stops the rest.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from .audit import AuditEventType
from .errors import EngineError, ValidationError
from .logging_config import get_logger, log_action
from .rbac import Actor
from .transactions import (
    ACTION_PERMISSIONS, Transaction, TransactionAction, TransactionEngine, parse_action
)


PAST_TENSE: Dict[TransactionAction, str] = {
    TransactionAction.CONFIRM: "confirmed",
    TransactionAction.FAIL: "failed",
    TransactionAction.APPROVE: "approved",
    TransactionAction.REJECT: "rejected",
    TransactionAction.PROCESS: "processed",
    TransactionAction.COMPLETE: "completed",
}


@dataclass(frozen=True)
class BulkFailure:
    """One item of a bulk call that did not go through"""
    transaction_id: str
    code: str       # EngineError.code, e.g. "invalid_transition"
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'transaction_id': self.transaction_id,
            'code': self.code,
            'reason': self.reason,
        }


@dataclass
class BulkResult:
    """Per-item outcome of a bulk action"""
    action: TransactionAction
    succeeded: List[Transaction] = field(default_factory=list)
    failed: List[BulkFailure] = field(default_factory=list)

    @property
    def succeeded_ids(self) -> List[str]:
        return [tx.id for tx in self.succeeded]

    @property
    def failed_ids(self) -> List[str]:
        return [f.transaction_id for f in self.failed]

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        """Operator-facing line such as "8 of 10 approved, 2 failed" """
        return (
            f"{len(self.succeeded)} of {self.total} {PAST_TENSE[self.action]}, "
            f"{len(self.failed)} failed"
        )


class ApprovalCoordinator:
    """Admin-facing wrapper over TransactionEngine transitions"""

    def __init__(self, engine: TransactionEngine):
        self.engine = engine
        self.logger = get_logger("investment_engine.approvals")

    @property
    def max_bulk_size(self) -> int:
        return self.engine.config.max_bulk_size

    def apply_single(
        self,
        transaction_id: str,
        action: Union[str, TransactionAction],
        actor: Actor,
        reason: Optional[str] = None
    ) -> Transaction:
        """Apply one action; errors surface unchanged"""
        return self.engine.transition(transaction_id, action, actor, reason)

    def apply_bulk(
        self,
        transaction_ids: Iterable[str],
        action: Union[str, TransactionAction],
        actor: Actor,
        reason: Optional[str] = None
    ) -> BulkResult:
        """
        Apply one action to many transactions independently

        Duplicate ids are applied once, in first-seen order. Any engine error
        on an item is recorded as a BulkFailure carrying the error code.

        Args:
            transaction_ids: Transactions to act on
            action: Action to apply to each
            actor: Admin performing the action
            reason: Shared rejection reason

        Returns:
            BulkResult with succeeded transactions and failed items

        Raises:
            Forbidden: If the actor lacks the action's permission at all
            ValidationError: If more ids are given than ``max_bulk_size``
        """
        action = parse_action(action)
        self.engine.authorizer.authorize(actor, ACTION_PERMISSIONS[action])

        ids = list(dict.fromkeys(transaction_ids))
        if len(ids) > self.max_bulk_size:
            raise ValidationError(
                f"Bulk {action.value} accepts at most {self.max_bulk_size} transactions, got {len(ids)}"
            )

        result = BulkResult(action=action)
        for transaction_id in ids:
            try:
                transaction = self.engine.transition(transaction_id, action, actor, reason)
            except EngineError as e:
                result.failed.append(BulkFailure(transaction_id, e.code, e.message))
            else:
                result.succeeded.append(transaction)

        log_action(
            self.logger, "info", f"Bulk {action.value}: {result.summary()}",
            user_id=actor.id, action=f"bulk_{action.value}",
            resource="transactions",
            extra={
                "succeeded": result.succeeded_ids,
                "failed": [f.to_dict() for f in result.failed],
            }
        )

        audit_trail = self.engine.audit_trail
        if audit_trail and self.engine.config.enable_audit_logging:
            audit_trail.log_event(
                event_type=AuditEventType.BULK_ACTION,
                entity_type="bulk",
                entity_id=action.value,
                metadata={
                    "succeeded": result.succeeded_ids,
                    "failed": [f.to_dict() for f in result.failed],
                },
                user_id=actor.id,
            )

        return result

    # Alias matching the engine-level operation name
    bulk_transition = apply_bulk

    def confirm(self, transaction_id: str, actor: Actor) -> Transaction:
        return self.apply_single(transaction_id, TransactionAction.CONFIRM, actor)

    def fail(self, transaction_id: str, actor: Actor, reason: Optional[str] = None) -> Transaction:
        return self.apply_single(transaction_id, TransactionAction.FAIL, actor, reason)

    def approve(self, transaction_id: str, actor: Actor) -> Transaction:
        return self.apply_single(transaction_id, TransactionAction.APPROVE, actor)

    def reject(self, transaction_id: str, actor: Actor, reason: Optional[str] = None) -> Transaction:
        return self.apply_single(transaction_id, TransactionAction.REJECT, actor, reason)

    def process(self, transaction_id: str, actor: Actor) -> Transaction:
        return self.apply_single(transaction_id, TransactionAction.PROCESS, actor)

    def complete(self, transaction_id: str, actor: Actor) -> Transaction:
        return self.apply_single(transaction_id, TransactionAction.COMPLETE, actor)
