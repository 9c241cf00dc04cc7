"""Persistence models for datasets, training jobs, balances and id counters."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from backend.database import Database, get_database


_DATASET_COLUMNS = (
    "id, owner, name, metadata_url, category, price_per_use, access_count, active, created_at"
)
_JOB_COLUMNS = (
    "id, creator, name, dataset_ids, computation_provider, status, result_url, total_cost, created_at, completed_at"
)


class JobStatus(str, Enum):
    """Lifecycle states of a training job."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in _TRANSITIONS[self]

    @property
    def terminal(self) -> bool:
        return not _TRANSITIONS[self]


_TRANSITIONS: Mapping[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass(slots=True)
class Dataset:
    id: int
    owner: str
    name: str
    metadata_url: str
    category: str
    price_per_use: int
    access_count: int
    active: bool
    created_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "metadataUrl": self.metadata_url,
            "category": self.category,
            "pricePerUse": self.price_per_use,
            "accessCount": self.access_count,
            "active": self.active,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class TrainingJob:
    id: int
    creator: str
    name: str
    dataset_ids: Tuple[int, ...]
    computation_provider: Optional[str]
    status: JobStatus
    result_url: Optional[str]
    total_cost: int
    created_at: int
    completed_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "creator": self.creator,
            "name": self.name,
            "datasetIds": list(self.dataset_ids),
            "computationProvider": self.computation_provider,
            "status": self.status.value,
            "resultUrl": self.result_url,
            "totalCost": self.total_cost,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
        }


def _serialize_ids(dataset_ids: Tuple[int, ...]) -> str:
    return json.dumps(list(dataset_ids))


def _deserialize_ids(payload: Any) -> Tuple[int, ...]:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    return tuple(int(item) for item in json.loads(payload or "[]"))


class MarketplaceRepository:
    """Row-level access to the marketplace tables.

    Every helper takes the cursor of a transaction opened by the caller, so a
    ledger operation can combine several reads and writes into one atomic
    unit via :meth:`backend.database.Database.transaction`.
    """

    def __init__(self, database: Database | None = None) -> None:
        self._db = database or get_database()

    @property
    def database(self) -> Database:
        return self._db

    # ------------------------------------------------------------------
    # Counters
    def allocate_id(self, cur, counter: str) -> int:
        placeholder = self._db.placeholder()
        cur.execute(
            f"UPDATE marketplace_counters SET value = value + 1 WHERE name = {placeholder}",
            (counter,),
        )
        return self.read_counter(cur, counter)

    def read_counter(self, cur, counter: str) -> int:
        placeholder = self._db.placeholder()
        cur.execute(f"SELECT value FROM marketplace_counters WHERE name = {placeholder}", (counter,))
        row = cur.fetchone()
        if row is None:
            raise LookupError(f"Counter {counter!r} is missing; were migrations applied?")
        return int(row[0])

    # ------------------------------------------------------------------
    # Datasets
    def insert_dataset(self, cur, dataset: Dataset) -> None:
        placeholder = self._db.placeholder()
        values = ", ".join([placeholder] * 9)
        cur.execute(
            f"INSERT INTO marketplace_datasets ({_DATASET_COLUMNS}) VALUES ({values})",
            (
                dataset.id,
                dataset.owner,
                dataset.name,
                dataset.metadata_url,
                dataset.category,
                dataset.price_per_use,
                dataset.access_count,
                dataset.active,
                dataset.created_at,
            ),
        )

    def fetch_dataset(self, cur, dataset_id: int) -> Optional[Dataset]:
        placeholder = self._db.placeholder()
        cur.execute(
            f"SELECT {_DATASET_COLUMNS} FROM marketplace_datasets WHERE id = {placeholder}",
            (dataset_id,),
        )
        row = cur.fetchone()
        return self._row_to_dataset(row) if row else None

    def update_dataset(self, cur, dataset: Dataset) -> None:
        placeholder = self._db.placeholder()
        cur.execute(
            f"""
            UPDATE marketplace_datasets
               SET name = {placeholder},
                   metadata_url = {placeholder},
                   category = {placeholder},
                   price_per_use = {placeholder},
                   active = {placeholder}
             WHERE id = {placeholder}
            """,
            (
                dataset.name,
                dataset.metadata_url,
                dataset.category,
                dataset.price_per_use,
                dataset.active,
                dataset.id,
            ),
        )

    def add_access(self, cur, dataset_id: int, count: int) -> None:
        placeholder = self._db.placeholder()
        cur.execute(
            f"UPDATE marketplace_datasets SET access_count = access_count + {placeholder} WHERE id = {placeholder}",
            (count, dataset_id),
        )

    # ------------------------------------------------------------------
    # Training jobs
    def insert_job(self, cur, job: TrainingJob) -> None:
        placeholder = self._db.placeholder()
        values = ", ".join([placeholder] * 10)
        cur.execute(
            f"INSERT INTO marketplace_training_jobs ({_JOB_COLUMNS}) VALUES ({values})",
            (
                job.id,
                job.creator,
                job.name,
                _serialize_ids(job.dataset_ids),
                job.computation_provider,
                job.status.value,
                job.result_url,
                job.total_cost,
                job.created_at,
                job.completed_at,
            ),
        )

    def fetch_job(self, cur, job_id: int) -> Optional[TrainingJob]:
        placeholder = self._db.placeholder()
        cur.execute(
            f"SELECT {_JOB_COLUMNS} FROM marketplace_training_jobs WHERE id = {placeholder}",
            (job_id,),
        )
        row = cur.fetchone()
        return self._row_to_job(row) if row else None

    def update_job(self, cur, job: TrainingJob) -> None:
        placeholder = self._db.placeholder()
        cur.execute(
            f"""
            UPDATE marketplace_training_jobs
               SET computation_provider = {placeholder},
                   status = {placeholder},
                   result_url = {placeholder},
                   completed_at = {placeholder}
             WHERE id = {placeholder}
            """,
            (job.computation_provider, job.status.value, job.result_url, job.completed_at, job.id),
        )

    # ------------------------------------------------------------------
    # Balances
    def fetch_balance(self, cur, identity: str) -> int:
        placeholder = self._db.placeholder()
        cur.execute(f"SELECT amount FROM marketplace_balances WHERE identity = {placeholder}", (identity,))
        row = cur.fetchone()
        return int(row[0]) if row else 0

    def store_balance(self, cur, identity: str, amount: int) -> None:
        placeholder = self._db.placeholder()
        cur.execute(
            f"""
            INSERT INTO marketplace_balances (identity, amount)
            VALUES ({placeholder}, {placeholder})
            ON CONFLICT (identity) DO UPDATE SET amount = excluded.amount
            """,
            (identity, amount),
        )

    # ------------------------------------------------------------------
    # Row adapters
    def _row_to_dataset(self, row) -> Dataset:
        return Dataset(
            id=int(row[0]),
            owner=row[1],
            name=row[2],
            metadata_url=row[3],
            category=row[4],
            price_per_use=int(row[5]),
            access_count=int(row[6]),
            active=bool(row[7]),
            created_at=int(row[8]),
        )

    def _row_to_job(self, row) -> TrainingJob:
        return TrainingJob(
            id=int(row[0]),
            creator=row[1],
            name=row[2],
            dataset_ids=_deserialize_ids(row[3]),
            computation_provider=row[4],
            status=JobStatus(row[5]),
            result_url=row[6],
            total_cost=int(row[7]),
            created_at=int(row[8]),
            completed_at=int(row[9]) if row[9] is not None else None,
        )


__all__ = ["Dataset", "JobStatus", "MarketplaceRepository", "TrainingJob"]
