"""Pytest fixtures configuring an isolated marketplace database."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.database import Database, set_database
from backend.migrations import MIGRATIONS
from marketplace.collaborators import LedgerClock, LocalDebugTransfer
from marketplace.config import MarketplaceConfig, get_config
from marketplace.service import Marketplace


@pytest.fixture(autouse=True)
def isolated_marketplace_database(monkeypatch: pytest.MonkeyPatch) -> Iterator[Database]:
    monkeypatch.setenv("MARKETPLACE_DATABASE_URL", "sqlite:///:memory:")
    for key in (
        "MARKETPLACE_CONFIG",
        "MARKETPLACE_PLATFORM_FEE_PCT",
        "MARKETPLACE_SETTLEMENT_POLICY",
        "MARKETPLACE_TREASURY",
    ):
        monkeypatch.delenv(key, raising=False)
    get_config.cache_clear()
    database = Database(os.environ["MARKETPLACE_DATABASE_URL"])
    database.run_migrations(MIGRATIONS)
    set_database(database)
    try:
        yield database
    finally:
        database.close()
        set_database(None)
        get_config.cache_clear()


@pytest.fixture
def clock() -> LedgerClock:
    return LedgerClock(start=100)


@pytest.fixture
def wallets() -> LocalDebugTransfer:
    return LocalDebugTransfer({"alice": 1_000, "bob": 1_000, "carol": 1_000, "provider": 0})


@pytest.fixture
def market(isolated_marketplace_database: Database, clock: LedgerClock, wallets: LocalDebugTransfer) -> Marketplace:
    return Marketplace(
        isolated_marketplace_database,
        config=MarketplaceConfig(),
        clock=clock,
        transfers=wallets,
    )
