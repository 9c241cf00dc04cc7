"""Per-identity internal balances and the deposit/withdraw entry points."""

from __future__ import annotations

import logging

from backend.models.marketplace import MarketplaceRepository

from .collaborators import TransferRejected, ValueTransfer
from .errors import InsufficientFundsError, InvalidParametersError, PaymentFailedError
from .metrics import MarketplaceMetrics
from .models import MAX_UINT, AmountIn, parse_payload, require_identity

LOGGER = logging.getLogger(__name__)


class BalanceLedger:
    """Owns the balance table.

    :meth:`credit` and :meth:`debit` run inside a transaction opened by the
    caller so that job transitions and their balance movements commit together.
    """

    def __init__(
        self,
        repository: MarketplaceRepository,
        *,
        transfers: ValueTransfer,
        metrics: MarketplaceMetrics,
    ) -> None:
        self._repo = repository
        self._db = repository.database
        self._transfers = transfers
        self._metrics = metrics

    # ------------------------------------------------------------------
    # Cursor-scoped mutations
    def credit(self, cur, identity: str, amount: int) -> int:
        balance = self._repo.fetch_balance(cur, identity)
        if balance + amount > MAX_UINT:
            raise InvalidParametersError(f"crediting {amount} would overflow the balance of {identity}")
        balance += amount
        self._repo.store_balance(cur, identity, balance)
        return balance

    def debit(self, cur, identity: str, amount: int) -> int:
        balance = self._repo.fetch_balance(cur, identity)
        if balance < amount:
            raise InsufficientFundsError(f"{identity} holds {balance}, needs {amount}")
        balance -= amount
        self._repo.store_balance(cur, identity, balance)
        return balance

    # ------------------------------------------------------------------
    # Public operations
    def get_user_balance(self, identity: str) -> int:
        identity = require_identity(identity)
        with self._db.transaction() as cur:
            return self._repo.fetch_balance(cur, identity)

    def deposit_funds(self, caller: str, amount: int) -> int:
        """Credit ``amount`` and pull it from ``caller``'s external holding.

        The pull is the last step before the credit commits, so a rejected
        pull leaves the balance untouched.
        """

        caller = require_identity(caller)
        amount = parse_payload(AmountIn, amount=amount).amount
        with self._db.transaction() as cur:
            balance = self.credit(cur, caller, amount)
            try:
                self._transfers.pull(caller, amount)
            except TransferRejected as exc:
                LOGGER.warning("Deposit of %s from %s rejected: %s", amount, caller, exc)
                raise PaymentFailedError(f"deposit rejected: {exc}") from exc
        self._metrics.record_flow("deposit", amount)
        LOGGER.info("Deposited %s for %s (balance %s)", amount, caller, balance)
        return balance

    def withdraw_funds(self, caller: str, amount: int) -> int:
        """Debit ``amount`` and push it to ``caller``'s external holding.

        The debit commits before anything is pushed, so value never leaves the
        ledger without a durable debit behind it. A rejected push is
        compensated by crediting the amount back in a second transaction.
        """

        caller = require_identity(caller)
        amount = parse_payload(AmountIn, amount=amount).amount
        with self._db.transaction() as cur:
            balance = self.debit(cur, caller, amount)
        try:
            self._transfers.push(caller, amount)
        except TransferRejected as exc:
            LOGGER.warning("Withdrawal of %s to %s rejected, restoring balance: %s", amount, caller, exc)
            with self._db.transaction() as cur:
                self.credit(cur, caller, amount)
            raise PaymentFailedError(f"withdrawal rejected: {exc}") from exc
        self._metrics.record_flow("withdraw", amount)
        LOGGER.info("Withdrew %s for %s (balance %s)", amount, caller, balance)
        return balance


__all__ = ["BalanceLedger"]
