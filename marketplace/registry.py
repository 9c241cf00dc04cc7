"""Dataset listings: registration, owner-only updates and lookups."""

from __future__ import annotations

import logging
from typing import Optional

from backend.models.marketplace import Dataset, MarketplaceRepository

from .collaborators import HeightSource
from .errors import NotAuthorizedError, NotFoundError
from .models import DatasetIn, DatasetUpdateIn, parse_payload, require_identity, require_record_id

LOGGER = logging.getLogger(__name__)

DATASET_COUNTER = "last_dataset_id"


class DatasetRegistry:
    def __init__(self, repository: MarketplaceRepository, *, clock: HeightSource) -> None:
        self._repo = repository
        self._db = repository.database
        self._clock = clock

    def register_dataset(
        self,
        caller: str,
        name: str,
        metadata_url: str,
        price_per_use: int,
        category: str,
    ) -> int:
        """List a new active dataset owned by ``caller`` and return its id."""

        caller = require_identity(caller)
        payload = parse_payload(
            DatasetIn,
            name=name,
            metadata_url=metadata_url,
            price_per_use=price_per_use,
            category=category,
        )
        with self._db.transaction() as cur:
            dataset_id = self._repo.allocate_id(cur, DATASET_COUNTER)
            self._repo.insert_dataset(
                cur,
                Dataset(
                    id=dataset_id,
                    owner=caller,
                    name=payload.name,
                    metadata_url=payload.metadata_url,
                    category=payload.category,
                    price_per_use=payload.price_per_use,
                    access_count=0,
                    active=True,
                    created_at=self._clock.current_height(),
                ),
            )
        LOGGER.info("Dataset %s registered by %s at price %s", dataset_id, caller, payload.price_per_use)
        return dataset_id

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
        """Replace the mutable listing fields; only the owner may do so.

        ``id``, ``owner``, ``created_at`` and ``access_count`` are preserved.
        """

        caller = require_identity(caller)
        dataset_id = require_record_id(dataset_id)
        payload = parse_payload(
            DatasetUpdateIn,
            name=name,
            metadata_url=metadata_url,
            price_per_use=price_per_use,
            active=active,
            category=category,
        )
        with self._db.transaction() as cur:
            dataset = self._repo.fetch_dataset(cur, dataset_id)
            if dataset is None:
                raise NotFoundError(f"dataset {dataset_id} does not exist")
            if dataset.owner != caller:
                raise NotAuthorizedError(f"{caller} does not own dataset {dataset_id}")
            dataset.name = payload.name
            dataset.metadata_url = payload.metadata_url
            dataset.price_per_use = payload.price_per_use
            dataset.active = payload.active
            dataset.category = payload.category
            self._repo.update_dataset(cur, dataset)
        LOGGER.info("Dataset %s updated by %s (active=%s)", dataset_id, caller, dataset.active)
        return dataset

    def get_dataset(self, dataset_id: int) -> Optional[Dataset]:
        dataset_id = require_record_id(dataset_id)
        with self._db.transaction() as cur:
            return self._repo.fetch_dataset(cur, dataset_id)

    def last_dataset_id(self) -> int:
        with self._db.transaction() as cur:
            return self._repo.read_counter(cur, DATASET_COUNTER)


__all__ = ["DATASET_COUNTER", "DatasetRegistry"]
