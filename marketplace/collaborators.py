"""External collaborators consumed by the ledgers: height source and value transfer."""

from __future__ import annotations

import threading
from typing import Dict, Mapping, Optional, Protocol


class TransferRejected(RuntimeError):
    """Raised by a :class:`ValueTransfer` when it refuses to move funds."""


class HeightSource(Protocol):
    """Monotonically non-decreasing ledger height used for record timestamps."""

    def current_height(self) -> int:  # pragma: no cover - protocol
        """Return the height at which the current operation executes."""


class ValueTransfer(Protocol):
    """Moves value between a participant's external holding and the ledger."""

    def pull(self, identity: str, amount: int) -> None:  # pragma: no cover - protocol
        """Move ``amount`` from ``identity``'s external holding into the ledger."""

    def push(self, identity: str, amount: int) -> None:  # pragma: no cover - protocol
        """Move ``amount`` from the ledger back to ``identity``'s external holding."""


class LedgerClock:
    """Manually advanced height source for development and testing."""

    def __init__(self, start: int = 1) -> None:
        if start < 0:
            raise ValueError("start height must be non-negative")
        self._height = start
        self._lock = threading.Lock()

    def current_height(self) -> int:
        with self._lock:
            return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("heights never move backwards")
        with self._lock:
            self._height += blocks
            return self._height


class LocalDebugTransfer:
    """In-memory wallets standing in for the hosting chain's transfer primitive."""

    def __init__(self, holdings: Optional[Mapping[str, int]] = None) -> None:
        self._holdings: Dict[str, int] = dict(holdings or {})
        self._lock = threading.Lock()
        self.reject_all = False

    def holding(self, identity: str) -> int:
        with self._lock:
            return self._holdings.get(identity, 0)

    def fund(self, identity: str, amount: int) -> None:
        with self._lock:
            self._holdings[identity] = self._holdings.get(identity, 0) + amount

    def pull(self, identity: str, amount: int) -> None:
        with self._lock:
            if self.reject_all:
                raise TransferRejected("transfers are disabled")
            available = self._holdings.get(identity, 0)
            if available < amount:
                raise TransferRejected(f"{identity} holds {available}, cannot send {amount}")
            self._holdings[identity] = available - amount

    def push(self, identity: str, amount: int) -> None:
        with self._lock:
            if self.reject_all:
                raise TransferRejected("transfers are disabled")
            self._holdings[identity] = self._holdings.get(identity, 0) + amount


__all__ = ["HeightSource", "LedgerClock", "LocalDebugTransfer", "TransferRejected", "ValueTransfer"]
