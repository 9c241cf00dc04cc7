"""Training-job lifecycle: escrowed creation, acceptance, completion and failure."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from backend.models.marketplace import JobStatus, MarketplaceRepository, TrainingJob

from .balances import BalanceLedger
from .collaborators import HeightSource
from .config import MarketplaceConfig, fee_split
from .costing import access_increments, aggregate_cost, all_available, resolve_datasets
from .errors import InvalidParametersError, NotAuthorizedError, NotFoundError
from .metrics import MarketplaceMetrics
from .models import MAX_UINT, CompletionIn, TrainingJobIn, parse_payload, require_identity, require_record_id

LOGGER = logging.getLogger(__name__)

JOB_COUNTER = "last_job_id"

Flows = List[Tuple[str, int]]


def _advance(job: TrainingJob, target: JobStatus, *, expected: JobStatus) -> None:
    """Move ``job`` to ``target``, rejecting any status other than ``expected``."""

    if job.status is not expected or not job.status.can_transition_to(target):
        raise InvalidParametersError(
            f"job {job.id} is {job.status.value}; {target.value} requires {expected.value}"
        )
    job.status = target


class JobLedger:
    """Owns training-job records and drives the escrow movements tied to them.

    Funds are held from the creator's balance at creation. On completion the
    configured settlement policy either releases them to the provider (minus
    the platform fee) or leaves them held; cancellation and failure refund the
    creator in full.
    """

    def __init__(
        self,
        repository: MarketplaceRepository,
        balances: BalanceLedger,
        *,
        clock: HeightSource,
        config: MarketplaceConfig,
        metrics: MarketplaceMetrics,
    ) -> None:
        self._repo = repository
        self._db = repository.database
        self._balances = balances
        self._clock = clock
        self._config = config
        self._metrics = metrics

    def create_training_job(self, caller: str, name: str, dataset_ids: List[int]) -> int:
        caller = require_identity(caller)
        payload = parse_payload(TrainingJobIn, name=name, dataset_ids=dataset_ids)
        dataset_ids_tuple = tuple(payload.dataset_ids)
        with self._db.transaction() as cur:
            resolved = resolve_datasets(dataset_ids_tuple, lambda dataset_id: self._repo.fetch_dataset(cur, dataset_id))
            if not all_available(resolved):
                missing = [
                    dataset_id
                    for dataset_id, dataset in zip(dataset_ids_tuple, resolved)
                    if dataset is None or not dataset.active
                ]
                raise NotFoundError(f"datasets missing or inactive: {missing}")
            total_cost = aggregate_cost(resolved)
            if total_cost > MAX_UINT:
                raise InvalidParametersError("job cost exceeds the ledger's integer range")
            self._balances.debit(cur, caller, total_cost)
            job_id = self._repo.allocate_id(cur, JOB_COUNTER)
            self._repo.insert_job(
                cur,
                TrainingJob(
                    id=job_id,
                    creator=caller,
                    name=payload.name,
                    dataset_ids=dataset_ids_tuple,
                    computation_provider=None,
                    status=JobStatus.PENDING,
                    result_url=None,
                    total_cost=total_cost,
                    created_at=self._clock.current_height(),
                ),
            )
        self._metrics.record_flow("escrow_hold", total_cost)
        LOGGER.info("Job %s created by %s over %d datasets, escrowed %s", job_id, caller, len(dataset_ids_tuple), total_cost)
        return job_id

    def accept_training_job(self, caller: str, job_id: int) -> TrainingJob:
        caller = require_identity(caller)
        job_id = require_record_id(job_id)
        with self._db.transaction() as cur:
            job = self._load(cur, job_id)
            _advance(job, JobStatus.PROCESSING, expected=JobStatus.PENDING)
            job.computation_provider = caller
            self._repo.update_job(cur, job)
        LOGGER.info("Job %s accepted by %s", job_id, caller)
        return job

    def complete_training_job(self, caller: str, job_id: int, result_url: str) -> TrainingJob:
        caller = require_identity(caller)
        job_id = require_record_id(job_id)
        payload = parse_payload(CompletionIn, result_url=result_url)
        flows: Flows = []
        with self._db.transaction() as cur:
            job = self._load(cur, job_id)
            if job.computation_provider != caller:
                raise NotAuthorizedError(f"{caller} is not the provider assigned to job {job_id}")
            _advance(job, JobStatus.COMPLETED, expected=JobStatus.PROCESSING)
            job.result_url = payload.result_url
            job.completed_at = self._clock.current_height()
            self._repo.update_job(cur, job)
            for dataset_id, occurrences in access_increments(job.dataset_ids).items():
                self._repo.add_access(cur, dataset_id, occurrences)
            flows.extend(self._settle(cur, job, provider=caller))
        self._record(flows)
        LOGGER.info("Job %s completed by %s at height %s", job_id, caller, job.completed_at)
        return job

    def cancel_training_job(self, caller: str, job_id: int) -> TrainingJob:
        """Creator withdraws a job nobody has accepted; escrow is refunded."""

        caller = require_identity(caller)
        job_id = require_record_id(job_id)
        with self._db.transaction() as cur:
            job = self._load(cur, job_id)
            if job.creator != caller:
                raise NotAuthorizedError(f"{caller} did not create job {job_id}")
            _advance(job, JobStatus.FAILED, expected=JobStatus.PENDING)
            self._repo.update_job(cur, job)
            self._balances.credit(cur, job.creator, job.total_cost)
        self._record([("refund", job.total_cost)])
        LOGGER.info("Job %s cancelled by its creator, refunded %s", job_id, job.total_cost)
        return job

    def fail_training_job(self, caller: str, job_id: int) -> TrainingJob:
        """Assigned provider reports it cannot finish; escrow returns to the creator."""

        caller = require_identity(caller)
        job_id = require_record_id(job_id)
        with self._db.transaction() as cur:
            job = self._load(cur, job_id)
            if job.computation_provider != caller:
                raise NotAuthorizedError(f"{caller} is not the provider assigned to job {job_id}")
            _advance(job, JobStatus.FAILED, expected=JobStatus.PROCESSING)
            self._repo.update_job(cur, job)
            self._balances.credit(cur, job.creator, job.total_cost)
        self._record([("refund", job.total_cost)])
        LOGGER.info("Job %s failed by provider %s, refunded %s to %s", job_id, caller, job.total_cost, job.creator)
        return job

    def get_training_job(self, job_id: int) -> Optional[TrainingJob]:
        job_id = require_record_id(job_id)
        with self._db.transaction() as cur:
            return self._repo.fetch_job(cur, job_id)

    def last_job_id(self) -> int:
        with self._db.transaction() as cur:
            return self._repo.read_counter(cur, JOB_COUNTER)

    # ------------------------------------------------------------------
    def _load(self, cur, job_id: int) -> TrainingJob:
        job = self._repo.fetch_job(cur, job_id)
        if job is None:
            raise NotFoundError(f"job {job_id} does not exist")
        return job

    def _settle(self, cur, job: TrainingJob, *, provider: str) -> Flows:
        """Release a completed job's escrow to ``provider`` under the configured policy."""

        if self._config.settlement_policy == "hold" or job.total_cost == 0:
            return []
        payout, fee = fee_split(job.total_cost, self._config.platform_fee_pct)
        self._balances.credit(cur, provider, payout)
        if fee:
            self._balances.credit(cur, self._config.treasury_identity, fee)
        return [("escrow_release", payout), ("fee", fee)]

    def _record(self, flows: Flows) -> None:
        for flow, amount in flows:
            self._metrics.record_flow(flow, amount)


__all__ = ["JOB_COUNTER", "JobLedger"]
