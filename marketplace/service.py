"""Facade exposing the marketplace operations over one shared store."""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, List, Optional, TypeVar

from backend.database import Database, get_database
from backend.models.marketplace import Dataset, MarketplaceRepository, TrainingJob

from .balances import BalanceLedger
from .collaborators import HeightSource, LedgerClock, LocalDebugTransfer, ValueTransfer
from .config import MarketplaceConfig, get_config
from .errors import MarketplaceError
from .jobs import JobLedger
from .metrics import MarketplaceMetrics
from .registry import DatasetRegistry

LOGGER = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def _instrumented(operation: str) -> Callable[[_F], _F]:
    """Count outcomes of ``operation``; rejections are re-raised untouched."""

    def decorator(func: _F) -> _F:
        @functools.wraps(func)
        def wrapper(self: "Marketplace", *args: Any, **kwargs: Any) -> Any:
            try:
                result = func(self, *args, **kwargs)
            except MarketplaceError as exc:
                self.metrics.record_rejection(operation, exc.kind.value)
                LOGGER.debug("%s rejected with %s: %s", operation, exc.kind.value, exc.message)
                raise
            self.metrics.record_success(operation)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


class Marketplace:
    """Dataset registry, job ledger and balance ledger sharing one database.

    Every mutating operation runs in a single database transaction, so it
    either applies entirely or leaves the store untouched.
    """

    def __init__(
        self,
        database: Database | None = None,
        *,
        config: MarketplaceConfig | None = None,
        clock: HeightSource | None = None,
        transfers: ValueTransfer | None = None,
        metrics: MarketplaceMetrics | None = None,
    ) -> None:
        self.config = config or get_config()
        self.database = database or get_database(self.config.database_url)
        self.clock = clock or LedgerClock()
        self.transfers = transfers or LocalDebugTransfer()
        self.metrics = metrics or MarketplaceMetrics()
        repository = MarketplaceRepository(self.database)
        self.balances = BalanceLedger(repository, transfers=self.transfers, metrics=self.metrics)
        self.registry = DatasetRegistry(repository, clock=self.clock)
        self.jobs = JobLedger(
            repository,
            self.balances,
            clock=self.clock,
            config=self.config,
            metrics=self.metrics,
        )

    # ------------------------------------------------------------------
    # Dataset registry
    @_instrumented("register_dataset")
    def register_dataset(
        self, caller: str, name: str, metadata_url: str, price_per_use: int, category: str
    ) -> int:
        return self.registry.register_dataset(caller, name, metadata_url, price_per_use, category)

    @_instrumented("update_dataset")
    def update_dataset(
        self,
        caller: str,
        dataset_id: int,
        name: str,
        metadata_url: str,
        price_per_use: int,
        active: bool,
        category: str,
    ) -> Dataset:
        return self.registry.update_dataset(
            caller, dataset_id, name, metadata_url, price_per_use, active, category
        )

    @_instrumented("get_dataset")
    def get_dataset(self, dataset_id: int) -> Optional[Dataset]:
        return self.registry.get_dataset(dataset_id)

    # ------------------------------------------------------------------
    # Job ledger
    @_instrumented("create_training_job")
    def create_training_job(self, caller: str, name: str, dataset_ids: List[int]) -> int:
        return self.jobs.create_training_job(caller, name, dataset_ids)

    @_instrumented("accept_training_job")
    def accept_training_job(self, caller: str, job_id: int) -> TrainingJob:
        return self.jobs.accept_training_job(caller, job_id)

    @_instrumented("complete_training_job")
    def complete_training_job(self, caller: str, job_id: int, result_url: str) -> TrainingJob:
        return self.jobs.complete_training_job(caller, job_id, result_url)

    @_instrumented("cancel_training_job")
    def cancel_training_job(self, caller: str, job_id: int) -> TrainingJob:
        return self.jobs.cancel_training_job(caller, job_id)

    @_instrumented("fail_training_job")
    def fail_training_job(self, caller: str, job_id: int) -> TrainingJob:
        return self.jobs.fail_training_job(caller, job_id)

    @_instrumented("get_training_job")
    def get_training_job(self, job_id: int) -> Optional[TrainingJob]:
        return self.jobs.get_training_job(job_id)

    # ------------------------------------------------------------------
    # Balance ledger
    @_instrumented("get_user_balance")
    def get_user_balance(self, identity: str) -> int:
        return self.balances.get_user_balance(identity)

    @_instrumented("deposit_funds")
    def deposit_funds(self, caller: str, amount: int) -> int:
        return self.balances.deposit_funds(caller, amount)

    @_instrumented("withdraw_funds")
    def withdraw_funds(self, caller: str, amount: int) -> int:
        return self.balances.withdraw_funds(caller, amount)

    # ------------------------------------------------------------------
    # Platform
    def get_platform_fee(self) -> int:
        """Platform-fee percentage taken from released escrow.

        Defaults to 3. Unlike a hard-wired constant it follows
        ``platform_fee_pct`` from the loaded configuration, which
        ``MARKETPLACE_PLATFORM_FEE_PCT`` can override.
        """

        return self.config.platform_fee_pct

    def get_last_dataset_id(self) -> int:
        return self.registry.last_dataset_id()

    def get_last_job_id(self) -> int:
        return self.jobs.last_job_id()

    def metrics_text(self) -> bytes:
        return self.metrics.render()


__all__ = ["Marketplace"]
