"""
Investment System

Wires storage, audit trail, ledger, plan catalog, authorizer, transaction
engine and approval coordinator into one object. Application entry points
(the HTTP API, scripts, tests) build one of these and call through it.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union

from .approvals import ApprovalCoordinator, BulkResult
from .audit import AuditTrail
from .config import EngineConfig, get_config
from .ledger import StorageLedger, UserBalance
from .logging_config import get_logger
from .plans import PlanCatalog, load_catalog
from .rbac import Actor, Authorizer, RoleAuthorizer
from .returns import Projection
from .storage import StorageInterface, create_storage
from .transactions import Transaction, TransactionAction, TransactionEngine, TransactionRequest


class InvestmentSystem:
    """Investment engine with all components initialized"""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        storage: Optional[StorageInterface] = None,
        catalog: Optional[PlanCatalog] = None,
        authorizer: Optional[Authorizer] = None
    ):
        self.config = config or get_config()
        self.logger = get_logger("investment_engine.system")

        self.storage = storage or create_storage(self.config.database_url)
        self.audit_trail = AuditTrail(self.storage) if self.config.enable_audit_logging else None
        self.ledger = StorageLedger(self.storage, self.audit_trail)
        self.catalog = catalog or load_catalog(self.config)
        self.authorizer = authorizer or RoleAuthorizer()

        self.engine = TransactionEngine(
            self.catalog, self.ledger, self.authorizer,
            audit_trail=self.audit_trail, config=self.config
        )
        self.coordinator = ApprovalCoordinator(self.engine)

        self.logger.info(
            f"Investment system ready: {len(self.catalog)} plans, storage {self.config.database_url}"
        )

    def create_transaction(self, request: TransactionRequest, actor: Actor) -> Transaction:
        return self.engine.create_transaction(request, actor)

    def transition(
        self,
        transaction_id: str,
        action: Union[str, TransactionAction],
        actor: Actor,
        reason: Optional[str] = None
    ) -> Transaction:
        return self.coordinator.apply_single(transaction_id, action, actor, reason)

    def bulk_transition(
        self,
        transaction_ids: Iterable[str],
        action: Union[str, TransactionAction],
        actor: Actor,
        reason: Optional[str] = None
    ) -> BulkResult:
        return self.coordinator.apply_bulk(transaction_ids, action, actor, reason)

    def project(
        self,
        plan_id: str,
        amount,
        days_elapsed: int,
        base_balance: Optional[Decimal] = None,
        user_id: Optional[str] = None
    ) -> Projection:
        return self.engine.project(plan_id, amount, days_elapsed, base_balance, user_id)

    def get_balance(self, user_id: str) -> UserBalance:
        return self.ledger.get_balance(user_id)

    def close(self) -> None:
        self.storage.close()
