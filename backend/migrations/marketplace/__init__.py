"""Schema migrations for the marketplace ledgers."""

from .migration_0001_initial import Migration0001Initial

__all__ = ["Migration0001Initial"]
