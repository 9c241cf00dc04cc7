"""Configuration helpers for the marketplace ledgers."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_PLATFORM_FEE_PCT = 3
SETTLEMENT_POLICIES = ("provider", "hold")

_CONFIG_ENV = "MARKETPLACE_CONFIG"


def _coerce_percentage(raw: object) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        text = str(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
    else:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if value != value.to_integral_value() or value < 0 or value > 100:
        return None
    return int(value)


@dataclass(frozen=True)
class MarketplaceConfig:
    """Loaded marketplace configuration.

    Attributes:
        database_url: Connection string handed to :class:`backend.database.Database`.
            ``None`` defers to ``MARKETPLACE_DATABASE_URL`` or the SQLite default.
        platform_fee_pct: Whole percentage of a completed job's escrow routed to
            ``treasury_identity`` when settling.
        settlement_policy: ``provider`` releases escrow to the assigned provider on
            completion; ``hold`` leaves it escrowed.
        treasury_identity: Balance key that accrues platform fees.
    """

    database_url: Optional[str] = None
    platform_fee_pct: int = DEFAULT_PLATFORM_FEE_PCT
    settlement_policy: str = "provider"
    treasury_identity: str = "platform-treasury"

    def __post_init__(self) -> None:
        fee = self.platform_fee_pct
        if isinstance(fee, bool) or not isinstance(fee, int) or not 0 <= fee <= 100:
            raise ValueError("platform_fee_pct must be a whole number between 0 and 100")
        if self.settlement_policy not in SETTLEMENT_POLICIES:
            raise ValueError(f"settlement_policy must be one of {', '.join(SETTLEMENT_POLICIES)}")
        if not isinstance(self.treasury_identity, str) or not self.treasury_identity:
            raise ValueError("treasury_identity must be a non-empty string")
        if self.database_url is not None and not isinstance(self.database_url, str):
            raise ValueError("database_url must be a string when provided")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "MarketplaceConfig":
        def _resolve(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return default

        fee = _resolve("platform_fee_pct", "platformFeePct", "feePct", default=DEFAULT_PLATFORM_FEE_PCT)
        parsed_fee = _coerce_percentage(fee)
        if parsed_fee is None:
            raise ValueError(f"invalid platform fee percentage: {fee!r}")
        return cls(
            database_url=_resolve("database_url", "databaseUrl"),
            platform_fee_pct=parsed_fee,
            settlement_policy=str(_resolve("settlement_policy", "settlementPolicy", default="provider")),
            treasury_identity=str(_resolve("treasury_identity", "treasuryIdentity", default="platform-treasury")),
        )

    def with_env_overrides(self, environ: Optional[Dict[str, str]] = None) -> "MarketplaceConfig":
        env = os.environ if environ is None else environ
        changes: Dict[str, Any] = {}
        fee = _coerce_percentage(env.get("MARKETPLACE_PLATFORM_FEE_PCT"))
        if fee is not None:
            changes["platform_fee_pct"] = fee
        policy = (env.get("MARKETPLACE_SETTLEMENT_POLICY") or "").strip().lower()
        if policy:
            changes["settlement_policy"] = policy
        treasury = (env.get("MARKETPLACE_TREASURY") or "").strip()
        if treasury:
            changes["treasury_identity"] = treasury
        url = (env.get("MARKETPLACE_DATABASE_URL") or "").strip()
        if url:
            changes["database_url"] = url
        return replace(self, **changes) if changes else self


def load_config(path: str | Path) -> MarketplaceConfig:
    """Load marketplace configuration from a YAML (or JSON) document."""

    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("marketplace configuration must be a mapping")
    return MarketplaceConfig.from_mapping(data)


@lru_cache(maxsize=1)
def get_config() -> MarketplaceConfig:
    """Return the process configuration: optional file, then env overrides."""

    path = os.environ.get(_CONFIG_ENV)
    base = load_config(path) if path else MarketplaceConfig()
    return base.with_env_overrides()


def fee_split(amount: int, fee_pct: int) -> tuple[int, int]:
    """Split ``amount`` into ``(payout, fee)`` with the fee rounded down."""

    fee = amount * fee_pct // 100
    return amount - fee, fee


__all__ = [
    "DEFAULT_PLATFORM_FEE_PCT",
    "MarketplaceConfig",
    "SETTLEMENT_POLICIES",
    "fee_split",
    "get_config",
    "load_config",
]
