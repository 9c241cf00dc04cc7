from __future__ import annotations

import pytest

from backend.database import Database
from backend.models.marketplace import JobStatus
from marketplace.collaborators import LedgerClock, LocalDebugTransfer
from marketplace.config import MarketplaceConfig
from marketplace.errors import (
    ErrorKind,
    InsufficientFundsError,
    InvalidParametersError,
    NotAuthorizedError,
    NotFoundError,
)
from marketplace.service import Marketplace


@pytest.fixture
def priced(market: Marketplace) -> dict[str, int]:
    """Two datasets owned by alice priced 10 and 15, and bob funded with 100."""

    first = market.register_dataset("alice", "a", "ipfs://a", 10, "vision")
    second = market.register_dataset("alice", "b", "ipfs://b", 15, "vision")
    market.deposit_funds("bob", 100)
    return {"A": first, "B": second}


def test_cost_sums_repeated_entries(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "finetune", [priced["A"], priced["A"], priced["B"]])
    job = market.get_training_job(job_id)

    assert job.total_cost == 35
    assert job.dataset_ids == (priced["A"], priced["A"], priced["B"])
    assert job.status is JobStatus.PENDING
    assert job.computation_provider is None
    assert job.result_url is None and job.completed_at is None
    assert job.created_at == 100
    assert market.get_user_balance("bob") == 65


def test_creation_debits_only_the_creator(market: Marketplace, priced) -> None:
    market.deposit_funds("carol", 50)
    market.create_training_job("bob", "job", [priced["B"]])
    assert market.get_user_balance("bob") == 85
    assert market.get_user_balance("carol") == 50
    assert market.get_user_balance("alice") == 0
    assert market.get_user_balance("platform-treasury") == 0


def test_job_ids_are_sequential(market: Marketplace, priced) -> None:
    first = market.create_training_job("bob", "one", [priced["A"]])
    second = market.create_training_job("bob", "two", [])
    assert (first, second) == (1, 2)
    assert market.get_last_job_id() == 2
    assert market.get_training_job(second).total_cost == 0


@pytest.mark.parametrize("reference", ["missing", "inactive"])
def test_unavailable_dataset_fails_whole_call(market: Marketplace, priced, reference) -> None:
    if reference == "inactive":
        market.update_dataset("alice", priced["B"], "b", "ipfs://b", 15, False, "vision")
        bad_id = priced["B"]
    else:
        bad_id = 999

    with pytest.raises(NotFoundError):
        market.create_training_job("bob", "job", [priced["A"], bad_id])

    assert market.get_user_balance("bob") == 100
    assert market.get_last_job_id() == 0


def test_insufficient_funds_leaves_state_untouched(market: Marketplace, priced) -> None:
    with pytest.raises(InsufficientFundsError) as excinfo:
        market.create_training_job("carol", "job", [priced["A"]])
    assert excinfo.value.kind is ErrorKind.INSUFFICIENT_FUNDS
    assert market.get_user_balance("carol") == 0
    assert market.get_last_job_id() == 0


def test_more_than_twenty_datasets_is_invalid(market: Marketplace, priced) -> None:
    with pytest.raises(InvalidParametersError):
        market.create_training_job("bob", "job", [priced["A"]] * 21)
    assert market.get_user_balance("bob") == 100


def test_accept_assigns_provider_once(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"]])
    job = market.accept_training_job("provider", job_id)

    assert job.status is JobStatus.PROCESSING
    assert job.computation_provider == "provider"
    assert market.get_user_balance("bob") == 90

    with pytest.raises(InvalidParametersError):
        market.accept_training_job("other", job_id)
    assert market.get_training_job(job_id).computation_provider == "provider"


def test_accept_unknown_job(market: Marketplace) -> None:
    with pytest.raises(NotFoundError):
        market.accept_training_job("provider", 5)


def test_only_assigned_provider_completes(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"]])
    with pytest.raises(NotAuthorizedError):
        market.complete_training_job("provider", job_id, "ipfs://result")

    market.accept_training_job("provider", job_id)
    for intruder in ("bob", "alice", "someone"):
        with pytest.raises(NotAuthorizedError):
            market.complete_training_job(intruder, job_id, "ipfs://result")
    assert market.get_training_job(job_id).status is JobStatus.PROCESSING


def test_completion_counts_every_occurrence(market: Marketplace, priced, clock: LedgerClock) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"], priced["B"], priced["A"]])
    market.accept_training_job("provider", job_id)
    clock.advance(3)
    job = market.complete_training_job("provider", job_id, "ipfs://model")

    assert job.status is JobStatus.COMPLETED
    assert job.result_url == "ipfs://model"
    assert job.completed_at == 103
    assert market.get_dataset(priced["A"]).access_count == 2
    assert market.get_dataset(priced["B"]).access_count == 1
    assert market.get_training_job(job_id) == job


def test_completion_rejects_oversized_result_url(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"]])
    market.accept_training_job("provider", job_id)
    with pytest.raises(InvalidParametersError):
        market.complete_training_job("provider", job_id, "u" * 257)
    assert market.get_dataset(priced["A"]).access_count == 0


def test_completion_releases_escrow_minus_fee(market: Marketplace, priced) -> None:
    market.deposit_funds("bob", 900)
    job_id = market.create_training_job("bob", "job", [priced["A"]] * 10)
    market.accept_training_job("provider", job_id)
    market.complete_training_job("provider", job_id, "ipfs://model")

    assert market.get_platform_fee() == 3
    assert market.get_user_balance("provider") == 97
    assert market.get_user_balance("platform-treasury") == 3
    assert market.get_user_balance("bob") == 900


def test_hold_policy_keeps_escrow(isolated_marketplace_database: Database, wallets: LocalDebugTransfer) -> None:
    market = Marketplace(
        isolated_marketplace_database,
        config=MarketplaceConfig(settlement_policy="hold"),
        clock=LedgerClock(),
        transfers=wallets,
    )
    dataset_id = market.register_dataset("alice", "a", "", 50, "x")
    market.deposit_funds("bob", 50)
    job_id = market.create_training_job("bob", "job", [dataset_id])
    market.accept_training_job("provider", job_id)
    market.complete_training_job("provider", job_id, "ipfs://model")

    assert market.get_user_balance("bob") == 0
    assert market.get_user_balance("provider") == 0
    assert market.get_user_balance("platform-treasury") == 0


def test_creator_cancels_pending_job_for_refund(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"], priced["B"]])
    with pytest.raises(NotAuthorizedError):
        market.cancel_training_job("provider", job_id)

    job = market.cancel_training_job("bob", job_id)
    assert job.status is JobStatus.FAILED
    assert job.computation_provider is None
    assert market.get_user_balance("bob") == 100

    with pytest.raises(InvalidParametersError):
        market.cancel_training_job("bob", job_id)
    with pytest.raises(InvalidParametersError):
        market.accept_training_job("provider", job_id)


def test_cancel_after_acceptance_is_invalid(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"]])
    market.accept_training_job("provider", job_id)
    with pytest.raises(InvalidParametersError):
        market.cancel_training_job("bob", job_id)
    assert market.get_user_balance("bob") == 90


def test_provider_failure_refunds_creator(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["B"]])
    with pytest.raises(NotAuthorizedError):
        market.fail_training_job("provider", job_id)

    market.accept_training_job("provider", job_id)
    with pytest.raises(NotAuthorizedError):
        market.fail_training_job("bob", job_id)

    job = market.fail_training_job("provider", job_id)
    assert job.status is JobStatus.FAILED
    assert job.completed_at is None
    assert market.get_user_balance("bob") == 100
    assert market.get_user_balance("provider") == 0
    assert market.get_dataset(priced["B"]).access_count == 0

    with pytest.raises(InvalidParametersError):
        market.complete_training_job("provider", job_id, "ipfs://late")


def test_get_unknown_job_returns_none(market: Marketplace) -> None:
    assert market.get_training_job(1) is None


def test_deactivated_dataset_still_counts_access_for_jobs_already_created(market: Marketplace, priced) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"], priced["B"]])
    market.update_dataset("alice", priced["A"], "a", "ipfs://a", 10, False, "vision")
    market.accept_training_job("provider", job_id)
    market.complete_training_job("provider", job_id, "ipfs://model")

    dataset = market.get_dataset(priced["A"])
    assert dataset.active is False
    assert dataset.access_count == 1
    assert market.get_dataset(priced["B"]).access_count == 1
    with pytest.raises(NotFoundError):
        market.create_training_job("bob", "again", [priced["A"]])


@pytest.mark.parametrize(
    ("copies", "expected_payout", "expected_fee"),
    [(1, 10, 0), (2, 20, 0), (4, 39, 1), (7, 68, 2)],
)
def test_fee_is_rounded_down_and_escrow_fully_distributed(
    market: Marketplace, priced, copies: int, expected_payout: int, expected_fee: int
) -> None:
    job_id = market.create_training_job("bob", "job", [priced["A"]] * copies)
    market.accept_training_job("provider", job_id)
    job = market.complete_training_job("provider", job_id, "ipfs://model")

    payout = market.get_user_balance("provider")
    fee = market.get_user_balance("platform-treasury")
    assert (payout, fee) == (expected_payout, expected_fee)
    assert payout + fee == job.total_cost
