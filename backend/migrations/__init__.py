"""Ordered migration registry applied by :func:`backend.database.get_database`."""

from __future__ import annotations

from typing import List

from backend.database import Migration

from .marketplace import Migration0001Initial

MIGRATIONS: List[Migration] = [Migration0001Initial()]

__all__ = ["MIGRATIONS"]
