from __future__ import annotations

import pytest

from backend.database import Database
from backend.models.marketplace import JobStatus
from marketplace import Marketplace, MarketplaceConfig
from marketplace.collaborators import LedgerClock, LocalDebugTransfer
from marketplace.errors import InsufficientFundsError, InvalidParametersError, NotFoundError


def test_end_to_end_training_job(market: Marketplace, clock: LedgerClock) -> None:
    dataset_id = market.register_dataset("alice", "weather", "ipfs://weather", 20, "climate")
    assert market.deposit_funds("bob", 100) == 100

    job_id = market.create_training_job("bob", "forecast", [dataset_id])
    assert market.get_user_balance("bob") == 80
    assert market.get_training_job(job_id).to_dict()["status"] == "Pending"

    accepted = market.accept_training_job("provider", job_id)
    assert accepted.status is JobStatus.PROCESSING

    clock.advance()
    completed = market.complete_training_job("provider", job_id, "ipfs://model")
    assert completed.status is JobStatus.COMPLETED
    assert market.get_dataset(dataset_id).access_count == 1
    assert market.get_user_balance("provider") == 20

    with pytest.raises(InvalidParametersError):
        market.complete_training_job("provider", job_id, "ipfs://model")
    assert market.get_dataset(dataset_id).access_count == 1


def test_platform_fee_reflects_configuration(isolated_marketplace_database: Database) -> None:
    default = Marketplace(isolated_marketplace_database, config=MarketplaceConfig())
    custom = Marketplace(isolated_marketplace_database, config=MarketplaceConfig(platform_fee_pct=10))
    assert default.get_platform_fee() == 3
    assert custom.get_platform_fee() == 10


def test_default_construction_uses_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MARKETPLACE_PLATFORM_FEE_PCT", "7")
    market = Marketplace()
    assert market.get_platform_fee() == 7
    assert market.get_last_dataset_id() == 0
    assert market.get_user_balance("anyone") == 0


def test_operations_share_one_store(isolated_marketplace_database: Database, wallets: LocalDebugTransfer) -> None:
    first = Marketplace(isolated_marketplace_database, config=MarketplaceConfig(), transfers=wallets)
    second = Marketplace(isolated_marketplace_database, config=MarketplaceConfig(), transfers=wallets)

    dataset_id = first.register_dataset("alice", "shared", "", 5, "x")
    second.deposit_funds("bob", 5)
    job_id = second.create_training_job("bob", "job", [dataset_id])

    assert first.get_training_job(job_id).total_cost == 5
    assert first.get_user_balance("bob") == 0


def test_metrics_count_outcomes_and_flows(market: Marketplace) -> None:
    dataset_id = market.register_dataset("alice", "a", "", 10, "x")
    market.deposit_funds("bob", 50)
    with pytest.raises(NotFoundError):
        market.create_training_job("bob", "job", [dataset_id, 77])
    market.create_training_job("bob", "job", [dataset_id])

    sample = market.metrics.sample
    assert sample("marketplace_operations_total", {"operation": "register_dataset", "outcome": "ok"}) == 1
    assert sample("marketplace_operations_total", {"operation": "create_training_job", "outcome": "ok"}) == 1
    assert sample("marketplace_operations_total", {"operation": "create_training_job", "outcome": "rejected"}) == 1
    assert sample("marketplace_rejections_total", {"operation": "create_training_job", "kind": "NotFound"}) == 1
    assert sample("marketplace_value_moved_total", {"flow": "deposit"}) == 50
    assert sample("marketplace_value_moved_total", {"flow": "escrow_hold"}) == 10

    text = market.metrics_text().decode()
    assert "marketplace_operations_total" in text
    assert 'flow="escrow_hold"' in text


def test_rejected_operations_do_not_record_flows(market: Marketplace) -> None:
    with pytest.raises(InsufficientFundsError):
        market.withdraw_funds("bob", 10)
    assert market.metrics.sample("marketplace_value_moved_total", {"flow": "withdraw"}) == 0
    assert (
        market.metrics.sample("marketplace_rejections_total", {"operation": "withdraw_funds", "kind": "InsufficientFunds"})
        == 1
    )
