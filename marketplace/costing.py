"""Folds over a job's dataset list: availability check, cost and access tally."""

from __future__ import annotations

from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from backend.models.marketplace import Dataset

DatasetLookup = Callable[[int], Optional[Dataset]]


def resolve_datasets(dataset_ids: Sequence[int], lookup: DatasetLookup) -> List[Optional[Dataset]]:
    """Resolve every entry in list order; unknown ids resolve to ``None``."""

    return [lookup(dataset_id) for dataset_id in dataset_ids]


def all_available(resolved: Iterable[Optional[Dataset]]) -> bool:
    """Conjunction of "exists and is active" over every entry."""

    available = True
    for dataset in resolved:
        available = available and dataset is not None and dataset.active
    return available


def aggregate_cost(resolved: Iterable[Optional[Dataset]]) -> int:
    """Sum ``price_per_use`` per entry; repeated ids are charged once per occurrence.

    Entries that failed to resolve contribute nothing.
    """

    total = 0
    for dataset in resolved:
        if dataset is not None:
            total += dataset.price_per_use
    return total


def access_increments(dataset_ids: Sequence[int]) -> Dict[int, int]:
    """Occurrences of each dataset id, keyed in first-seen order."""

    return dict(Counter(dataset_ids))


__all__ = ["DatasetLookup", "access_increments", "aggregate_cost", "all_available", "resolve_datasets"]
