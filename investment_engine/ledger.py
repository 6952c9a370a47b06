"""
Balance Ledger Module

Owns per-user balances and stored transaction records. Every mutation goes
through one atomic ledger call, so a status change and its balance effect
are always written together or not at all.

Balances are re-read inside the critical section on every call; nothing is
cached between calls.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
import threading
from typing import Any, Dict, List, Optional

from .audit import AuditTrail, AuditEventType
from .currency import ZERO, to_decimal
from .errors import ConcurrencyConflict, InsufficientFunds, NotFound, ValidationError
from .logging_config import get_logger, log_action
from .storage import StorageInterface


@dataclass(frozen=True)
class UserBalance:
    """Funds held for one user"""
    user_id: str
    available: Decimal = ZERO
    pending: Decimal = ZERO  # principal locked by balance-funded deposits
    held: Decimal = ZERO  # part of available reserved for open withdrawals

    @property
    def total(self) -> Decimal:
        return self.available + self.pending

    @property
    def spendable(self) -> Decimal:
        """Available funds not reserved by an open withdrawal"""
        return self.available - self.held

    def to_dict(self) -> Dict[str, str]:
        return {
            'user_id': self.user_id,
            'available': str(self.available),
            'pending': str(self.pending),
            'held': str(self.held),
            'spendable': str(self.spendable),
            'total': str(self.total),
        }


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change applied to a user's balance"""
    available: Decimal = ZERO
    pending: Decimal = ZERO
    held: Decimal = ZERO

    @property
    def is_zero(self) -> bool:
        return self.available == ZERO and self.pending == ZERO and self.held == ZERO


NO_CHANGE = BalanceDelta()


class Ledger(ABC):
    """
    Balance and transaction store the engine commits through

    Implementations must make ``insert_transaction`` and ``commit_if_status``
    atomic with respect to each other and to concurrent callers.
    """

    @abstractmethod
    def get_balance(self, user_id: str) -> UserBalance:
        """Current balance; users with no history have a zero balance"""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """Stored transaction record, or None"""
        pass

    @abstractmethod
    def insert_transaction(
        self,
        record: Dict[str, Any],
        user_id: str,
        balance_delta: BalanceDelta = NO_CHANGE,
        require_available: Optional[Decimal] = None
    ) -> Dict[str, Any]:
        """
        Store a new transaction record and apply a balance delta as one unit

        Raises:
            InsufficientFunds: If ``require_available`` exceeds the spendable
                balance (available less held), or the delta would overdraw it
        """
        pass

    @abstractmethod
    def commit_if_status(
        self,
        transaction_id: str,
        expected_status: str,
        new_status: str,
        balance_delta: BalanceDelta = NO_CHANGE,
        changes: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Compare-and-commit a status change with its balance effect

        Raises:
            NotFound: If the transaction does not exist
            ConcurrencyConflict: If the stored status is no longer ``expected_status``
            InsufficientFunds: If the delta would overdraw the owner's balance
        """
        pass

    @abstractmethod
    def list_transactions(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def credit(self, user_id: str, amount: Decimal) -> UserBalance:
        """Administrative adjustment of a user's available balance"""
        pass


class StorageLedger(Ledger):
    """
    Ledger over a StorageInterface backend

    A process-wide lock plus ``storage.atomic()`` turns each call into a
    single critical section; the storage transaction gives all-or-nothing
    writes when a backend supports them.
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: Optional[AuditTrail] = None,
        transactions_table: str = "transactions",
        balances_table: str = "balances"
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.transactions_table = transactions_table
        self.balances_table = balances_table
        self._lock = threading.RLock()
        self.logger = get_logger("investment_engine.ledger")

    def get_balance(self, user_id: str) -> UserBalance:
        with self._lock:
            return self._read_balance(user_id)

    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        return self.storage.load(self.transactions_table, transaction_id)

    def insert_transaction(
        self,
        record: Dict[str, Any],
        user_id: str,
        balance_delta: BalanceDelta = NO_CHANGE,
        require_available: Optional[Decimal] = None
    ) -> Dict[str, Any]:
        transaction_id = record['id']
        with self._lock:
            with self.storage.atomic():
                if self.storage.exists(self.transactions_table, transaction_id):
                    raise ValidationError(f"Transaction {transaction_id} already exists")

                balance = self._read_balance(user_id)
                if require_available is not None and balance.spendable < require_available:
                    raise InsufficientFunds(balance.spendable, require_available)

                updated = self._apply_delta(balance, balance_delta, transaction_id)
                self.storage.save(self.transactions_table, transaction_id, record)

        self._audit_change(balance, updated, transaction_id)
        return record

    def commit_if_status(
        self,
        transaction_id: str,
        expected_status: str,
        new_status: str,
        balance_delta: BalanceDelta = NO_CHANGE,
        changes: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        with self._lock:
            with self.storage.atomic():
                record = self.storage.load(self.transactions_table, transaction_id)
                if record is None:
                    raise NotFound("transaction", transaction_id)

                actual = record.get('status')
                if actual != expected_status:
                    raise ConcurrencyConflict(transaction_id, expected_status, actual)

                balance = self._read_balance(record['user_id'])
                updated = self._apply_delta(balance, balance_delta, transaction_id)

                record.update(changes or {})
                record['status'] = new_status
                record['updated_at'] = datetime.now(timezone.utc).isoformat()
                self.storage.save(self.transactions_table, transaction_id, record)

        self._audit_change(balance, updated, transaction_id)
        return record

    def list_transactions(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if user_id is not None:
            filters['user_id'] = user_id
        if status is not None:
            filters['status'] = status

        records = self.storage.find(self.transactions_table, filters)
        records.sort(key=lambda r: r.get('created_at', ''))
        return records

    def credit(self, user_id: str, amount: Decimal) -> UserBalance:
        amount = to_decimal(amount)
        with self._lock:
            with self.storage.atomic():
                balance = self._read_balance(user_id)
                updated = self._apply_delta(balance, BalanceDelta(available=amount), "adjustment")

        self._audit_change(balance, updated, "adjustment")
        return updated

    def _read_balance(self, user_id: str) -> UserBalance:
        data = self.storage.load(self.balances_table, user_id)
        if not data:
            return UserBalance(user_id=user_id)
        return UserBalance(
            user_id=user_id,
            available=Decimal(data['available']),
            pending=Decimal(data['pending']),
            held=Decimal(data.get('held', '0')),
        )

    def _apply_delta(self, balance: UserBalance, delta: BalanceDelta,
                     reference: str) -> UserBalance:
        """Write balance + delta; caller must hold the lock inside storage.atomic()"""
        if delta.is_zero:
            return balance

        updated = UserBalance(
            user_id=balance.user_id,
            available=balance.available + delta.available,
            pending=balance.pending + delta.pending,
            held=balance.held + delta.held,
        )
        if updated.available < ZERO or updated.spendable < ZERO:
            raise InsufficientFunds(balance.spendable, delta.held - delta.available)
        if updated.pending < ZERO:
            raise ValidationError(
                f"Pending balance for {balance.user_id} cannot go below zero"
            )
        if updated.held < ZERO:
            raise ValidationError(
                f"Held balance for {balance.user_id} cannot go below zero"
            )

        self.storage.save(self.balances_table, balance.user_id, {
            'user_id': balance.user_id,
            'available': str(updated.available),
            'pending': str(updated.pending),
            'held': str(updated.held),
        })

        log_action(
            self.logger, "debug", "Balance changed",
            user_id=balance.user_id, action="balance_change",
            resource=f"balance:{balance.user_id}",
            extra={
                "reference": reference,
                "available_delta": str(delta.available),
                "pending_delta": str(delta.pending),
                "held_delta": str(delta.held),
            }
        )

        return updated

    def _audit_change(self, before: UserBalance, after: UserBalance, reference: str) -> None:
        # Runs after the critical section; the audit trail takes its own lock
        if not self.audit_trail or before == after:
            return
        self.audit_trail.log_event(
            event_type=AuditEventType.BALANCE_CHANGED,
            entity_type="balance",
            entity_id=before.user_id,
            metadata={
                "reference": reference,
                "available_before": before.available,
                "available_after": after.available,
                "pending_before": before.pending,
                "pending_after": after.pending,
                "held_before": before.held,
                "held_after": after.held,
            }
        )
