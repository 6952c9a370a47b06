"""
Transaction Lifecycle Module

Creates deposits and withdrawals and moves them along their kind-specific
status graphs. Every status change that touches a balance is committed through
a single compare-and-commit ledger call on the pre-transition status, so a
confirmation or completion takes effect at most once no matter how many
callers race for it.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from enum import Enum
import uuid

from .audit import AuditTrail, AuditEventType
from .config import EngineConfig, get_config
from .currency import Currency, ZERO, percent_of, round_money, to_decimal
from .errors import ConcurrencyConflict, InvalidTransition, NotFound, ValidationError
from .ledger import BalanceDelta, Ledger, NO_CHANGE
from .logging_config import get_logger, log_action
from .plans import PlanCatalog
from .rbac import Actor, Authorizer, Permission
from .returns import Projection, maturity_date, project as project_returns, returns_for
from .storage import StorageRecord


BALANCE_METHOD = "balance"


class TransactionKind(Enum):
    """Kinds of money movement"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(Enum):
    """Transaction statuses across both kinds"""
    PENDING = "pending"          # Created, awaiting an admin or system decision
    CONFIRMED = "confirmed"      # Deposit credited (terminal)
    FAILED = "failed"            # Deposit refused (terminal)
    APPROVED = "approved"        # Withdrawal accepted for payout
    REJECTED = "rejected"        # Withdrawal refused (terminal)
    PROCESSING = "processing"    # Withdrawal payout in flight
    COMPLETED = "completed"      # Withdrawal paid out and debited (terminal)


class TransactionAction(Enum):
    """Actions that move a transaction between statuses"""
    CONFIRM = "confirm"
    FAIL = "fail"
    APPROVE = "approve"
    REJECT = "reject"
    PROCESS = "process"
    COMPLETE = "complete"


# kind -> status -> action -> next status
TRANSITIONS: Dict[TransactionKind, Dict[TransactionStatus, Dict[TransactionAction, TransactionStatus]]] = {
    TransactionKind.DEPOSIT: {
        TransactionStatus.PENDING: {
            TransactionAction.CONFIRM: TransactionStatus.CONFIRMED,
            TransactionAction.FAIL: TransactionStatus.FAILED,
        },
    },
    TransactionKind.WITHDRAWAL: {
        TransactionStatus.PENDING: {
            TransactionAction.APPROVE: TransactionStatus.APPROVED,
            TransactionAction.REJECT: TransactionStatus.REJECTED,
        },
        TransactionStatus.APPROVED: {
            TransactionAction.PROCESS: TransactionStatus.PROCESSING,
        },
        TransactionStatus.PROCESSING: {
            TransactionAction.COMPLETE: TransactionStatus.COMPLETED,
        },
    },
}

TERMINAL_STATUSES = frozenset({
    TransactionStatus.CONFIRMED,
    TransactionStatus.FAILED,
    TransactionStatus.REJECTED,
    TransactionStatus.COMPLETED,
})

ACTION_PERMISSIONS: Dict[TransactionAction, Permission] = {
    TransactionAction.CONFIRM: Permission.CONFIRM_DEPOSIT,
    TransactionAction.FAIL: Permission.REJECT_TRANSACTION,
    TransactionAction.APPROVE: Permission.APPROVE_TRANSACTION,
    TransactionAction.REJECT: Permission.REJECT_TRANSACTION,
    TransactionAction.PROCESS: Permission.PROCESS_WITHDRAWAL,
    TransactionAction.COMPLETE: Permission.COMPLETE_WITHDRAWAL,
}


def allowed_actions(kind: TransactionKind, status: TransactionStatus) -> List[TransactionAction]:
    """Actions available from a status; empty for terminal statuses"""
    return list(TRANSITIONS[kind].get(status, {}))


def parse_action(action: Union[str, TransactionAction]) -> TransactionAction:
    if isinstance(action, TransactionAction):
        return action
    try:
        return TransactionAction(str(action).lower())
    except ValueError:
        raise ValidationError(f"Unknown action: {action}")


@dataclass
class TransactionRequest:
    """Input for creating a deposit or withdrawal"""
    user_id: str
    kind: Union[str, TransactionKind]
    amount: Union[Decimal, str, int]
    method: str
    plan_id: Optional[str] = None
    currency: Union[str, Currency] = Currency.USD
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Transaction(StorageRecord):
    """
    Deposit or withdrawal with its status history

    ``fee`` and ``net_amount`` apply to withdrawals; ``plan_id`` and the
    return figures apply to plan-backed deposits.
    """
    user_id: str
    kind: TransactionKind
    amount: Decimal
    currency: Currency
    method: str
    plan_id: Optional[str] = None
    fee: Decimal = ZERO
    net_amount: Optional[Decimal] = None
    status: TransactionStatus = TransactionStatus.PENDING
    status_timestamps: Dict[str, datetime] = field(default_factory=dict)
    rejection_reason: Optional[str] = None
    daily_return: Optional[Decimal] = None
    total_return: Optional[Decimal] = None
    maturity_at: Optional[datetime] = None
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_balance_funded(self) -> bool:
        return self.kind == TransactionKind.DEPOSIT and self.method.lower() == BALANCE_METHOD

    @property
    def allowed_actions(self) -> List[TransactionAction]:
        return allowed_actions(self.kind, self.status)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            **self.record_header(),
            'user_id': self.user_id,
            'kind': self.kind.value,
            'amount': str(self.amount),
            'currency': self.currency.code,
            'method': self.method,
            'plan_id': self.plan_id,
            'fee': str(self.fee),
            'net_amount': str(self.net_amount) if self.net_amount is not None else None,
            'status': self.status.value,
            'status_timestamps': {k: v.isoformat() for k, v in self.status_timestamps.items()},
            'rejection_reason': self.rejection_reason,
            'daily_return': str(self.daily_return) if self.daily_return is not None else None,
            'total_return': str(self.total_return) if self.total_return is not None else None,
            'maturity_at': self.maturity_at.isoformat() if self.maturity_at else None,
            'description': self.description,
            'metadata': self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """Convert dictionary to Transaction"""
        def optional_decimal(key):
            value = data.get(key)
            return Decimal(value) if value is not None else None

        return cls(
            **cls.parse_header(data),
            user_id=data['user_id'],
            kind=TransactionKind(data['kind']),
            amount=Decimal(data['amount']),
            currency=Currency[data['currency']],
            method=data['method'],
            plan_id=data.get('plan_id'),
            fee=Decimal(data.get('fee') or '0'),
            net_amount=optional_decimal('net_amount'),
            status=TransactionStatus(data['status']),
            status_timestamps={
                k: datetime.fromisoformat(v)
                for k, v in (data.get('status_timestamps') or {}).items()
            },
            rejection_reason=data.get('rejection_reason'),
            daily_return=optional_decimal('daily_return'),
            total_return=optional_decimal('total_return'),
            maturity_at=datetime.fromisoformat(data['maturity_at']) if data.get('maturity_at') else None,
            description=data.get('description', ''),
            metadata=data.get('metadata') or {},
        )


class TransactionEngine:
    """
    Creates transactions and applies status transitions

    The engine holds no balance state of its own; every balance read and
    write goes through the injected ledger.
    """

    def __init__(
        self,
        catalog: PlanCatalog,
        ledger: Ledger,
        authorizer: Authorizer,
        audit_trail: Optional[AuditTrail] = None,
        config: Optional[EngineConfig] = None
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.authorizer = authorizer
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.withdrawal_fee_percent = to_decimal(self.config.withdrawal_fee_percent)
        self.logger = get_logger("investment_engine.transactions")

    def create_transaction(self, request: TransactionRequest, actor: Actor) -> Transaction:
        """
        Create a deposit or withdrawal in ``pending`` status

        Balance-funded deposits move the principal from available to pending
        in the same ledger call that stores the transaction, and are then
        confirmed by the system actor when auto-confirmation is enabled.

        Args:
            request: Transaction input
            actor: Caller creating the transaction

        Returns:
            Created Transaction (already ``confirmed`` for auto-confirmed
            balance-funded deposits)

        Raises:
            Forbidden: If the actor may not create transactions, or acts for
                another user without ``ACT_FOR_ANY_USER``
            ValidationError: If the input is malformed
            NotFound: If the requested plan does not exist
            AmountOutOfRange: If the amount is outside the plan's bounds
            InsufficientFunds: If the user's spendable balance (available less
                funds held for open withdrawals) is too low
        """
        self.authorizer.authorize_for(actor, Permission.CREATE_TRANSACTION, request.user_id)

        kind, amount, currency, method = self._validate_request(request)
        now = datetime.now(timezone.utc)

        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=request.user_id,
            kind=kind,
            amount=amount,
            currency=currency,
            method=method,
            status_timestamps={"created": now},
            description=request.description or f"{kind.value.capitalize()} via {method}",
            metadata=dict(request.metadata or {}),
        )

        delta = NO_CHANGE
        require_available = None

        if kind == TransactionKind.DEPOSIT:
            if request.plan_id:
                # Plan and bounds are checked before anything is stored
                plan = self.catalog.find_plan(request.plan_id)
                self.catalog.validate_amount(plan, amount)
                figures = returns_for(plan, amount)
                transaction.plan_id = plan.id
                transaction.daily_return = figures['daily_return']
                transaction.total_return = figures['total_return']
                transaction.maturity_at = maturity_date(plan, now)
            if transaction.is_balance_funded:
                delta = BalanceDelta(available=-amount, pending=amount)
                require_available = amount
        else:
            if request.plan_id:
                raise ValidationError("Withdrawals cannot reference an investment plan")
            transaction.fee = round_money(percent_of(amount, self.withdrawal_fee_percent))
            transaction.net_amount = amount - transaction.fee
            # Reserve the amount now; it leaves the available balance on completion
            delta = BalanceDelta(held=amount)
            require_available = amount

        self.ledger.insert_transaction(
            transaction.to_dict(), transaction.user_id, delta, require_available
        )

        log_action(
            self.logger, "info", f"Transaction created: {kind.value}",
            user_id=actor.id, action="create_transaction",
            resource=f"transaction:{transaction.id}",
            extra={
                "transaction_id": transaction.id,
                "owner": transaction.user_id,
                "kind": kind.value,
                "amount": str(amount),
                "method": method,
                "plan_id": transaction.plan_id,
                "fee": str(transaction.fee),
            }
        )

        self._audit(
            AuditEventType.TRANSACTION_CREATED, transaction.id, actor,
            {
                "kind": kind.value,
                "owner": transaction.user_id,
                "amount": amount,
                "currency": currency.code,
                "method": method,
                "plan_id": transaction.plan_id,
                "fee": transaction.fee,
            }
        )

        if transaction.is_balance_funded and self.config.auto_confirm_balance_deposits:
            try:
                return self.transition(transaction.id, TransactionAction.CONFIRM, Actor.system())
            except (ConcurrencyConflict, InvalidTransition):
                # An administrator moved the deposit first; report where it landed
                return self.get_transaction(transaction.id)

        return transaction

    def transition(
        self,
        transaction_id: str,
        action: Union[str, TransactionAction],
        actor: Actor,
        reason: Optional[str] = None
    ) -> Transaction:
        """
        Apply an action to a transaction

        Args:
            transaction_id: Transaction to move
            action: Action to apply
            actor: Caller applying the action
            reason: Rejection or failure reason; blank rejections get the
                configured default

        Returns:
            Updated Transaction

        Raises:
            Forbidden: If the actor lacks the action's permission
            NotFound: If the transaction does not exist
            InvalidTransition: If the action is not an edge from the current status
            ConcurrencyConflict: If another caller moved the transaction first
        """
        action = parse_action(action)
        self.authorizer.authorize(actor, ACTION_PERMISSIONS[action])

        transaction = self.get_transaction(transaction_id)
        next_status = TRANSITIONS[transaction.kind].get(transaction.status, {}).get(action)
        if next_status is None:
            raise InvalidTransition(transaction.id, transaction.status.value, action.value)

        now = datetime.now(timezone.utc)
        timestamps = {k: v.isoformat() for k, v in transaction.status_timestamps.items()}
        timestamps[next_status.value] = now.isoformat()
        changes: Dict[str, Any] = {'status_timestamps': timestamps}

        if action == TransactionAction.REJECT:
            changes['rejection_reason'] = (reason or "").strip() or self.config.default_rejection_reason
        elif action == TransactionAction.FAIL and reason and reason.strip():
            changes['rejection_reason'] = reason.strip()

        delta = self._balance_effect(transaction, action)

        try:
            record = self.ledger.commit_if_status(
                transaction.id,
                transaction.status.value,
                next_status.value,
                delta,
                changes,
            )
        except ConcurrencyConflict as e:
            log_action(
                self.logger, "warning", f"Concurrent update on transaction {transaction.id}",
                user_id=actor.id, action=action.value,
                resource=f"transaction:{transaction.id}",
                extra={"expected": e.expected, "actual": e.actual}
            )
            self._audit(
                AuditEventType.TRANSACTION_CONFLICT, transaction.id, actor,
                {"action": action.value, "expected": e.expected, "actual": e.actual}
            )
            raise

        updated = Transaction.from_dict(record)

        log_action(
            self.logger, "info",
            f"Transaction {action.value}: {transaction.status.value} -> {next_status.value}",
            user_id=actor.id, action=action.value,
            resource=f"transaction:{transaction.id}",
            extra={
                "transaction_id": transaction.id,
                "from_status": transaction.status.value,
                "to_status": next_status.value,
                "available_delta": str(delta.available),
                "pending_delta": str(delta.pending),
                "held_delta": str(delta.held),
            }
        )

        self._audit(
            AuditEventType.TRANSACTION_TRANSITIONED, transaction.id, actor,
            {
                "action": action.value,
                "from_status": transaction.status.value,
                "to_status": next_status.value,
                "rejection_reason": updated.rejection_reason,
            }
        )

        return updated

    def get_transaction(self, transaction_id: str) -> Transaction:
        """
        Raises:
            NotFound: If the transaction does not exist
        """
        record = self.ledger.get_transaction(transaction_id)
        if record is None:
            raise NotFound("transaction", transaction_id)
        return Transaction.from_dict(record)

    def list_transactions(
        self,
        user_id: Optional[str] = None,
        status: Optional[Union[str, TransactionStatus]] = None
    ) -> List[Transaction]:
        if isinstance(status, TransactionStatus):
            status = status.value
        records = self.ledger.list_transactions(user_id=user_id, status=status)
        return [Transaction.from_dict(record) for record in records]

    def project(
        self,
        plan_id: str,
        amount,
        days_elapsed: int,
        base_balance: Optional[Decimal] = None,
        user_id: Optional[str] = None
    ) -> Projection:
        """
        Project returns for an amount under a plan

        When ``base_balance`` is omitted and ``user_id`` is given, the user's
        current total balance from the ledger is used as the base.
        """
        plan = self.catalog.find_plan(plan_id)
        if base_balance is None:
            base_balance = self.ledger.get_balance(user_id).total if user_id else ZERO
        return project_returns(plan, amount, days_elapsed, base_balance)

    def _validate_request(self, request: TransactionRequest):
        if not request.user_id:
            raise ValidationError("user_id is required")

        try:
            kind = request.kind if isinstance(request.kind, TransactionKind) \
                else TransactionKind(str(request.kind).lower())
        except ValueError:
            raise ValidationError(f"Unknown transaction kind: {request.kind}")

        try:
            amount = to_decimal(request.amount)
        except ValueError as e:
            raise ValidationError(str(e))
        if amount <= ZERO:
            raise ValidationError(f"Amount must be positive: {request.amount}")

        try:
            currency = request.currency if isinstance(request.currency, Currency) \
                else Currency.from_code(str(request.currency))
        except ValueError as e:
            raise ValidationError(str(e))

        method = (request.method or "").strip()
        if not method:
            raise ValidationError("Payment method is required")

        return kind, amount, currency, method

    def _balance_effect(self, transaction: Transaction, action: TransactionAction) -> BalanceDelta:
        """Balance delta committed together with an action's status change"""
        if transaction.kind == TransactionKind.DEPOSIT:
            if action == TransactionAction.CONFIRM and not transaction.is_balance_funded:
                return BalanceDelta(available=transaction.amount)
            if action == TransactionAction.FAIL and transaction.is_balance_funded:
                # Release the principal locked at creation
                return BalanceDelta(available=transaction.amount, pending=-transaction.amount)
            return NO_CHANGE

        if action == TransactionAction.COMPLETE:
            # The fee was disclosed up front; the full amount leaves the balance
            return BalanceDelta(available=-transaction.amount, held=-transaction.amount)
        if action == TransactionAction.REJECT:
            return BalanceDelta(held=-transaction.amount)
        return NO_CHANGE

    def _audit(self, event_type: AuditEventType, transaction_id: str,
               actor: Actor, metadata: Dict[str, Any]) -> None:
        if self.audit_trail and self.config.enable_audit_logging:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="transaction",
                entity_id=transaction_id,
                metadata=metadata,
                user_id=actor.id,
            )
