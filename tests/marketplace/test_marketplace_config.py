from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from marketplace.config import MarketplaceConfig, fee_split, get_config, load_config


def test_defaults_match_platform_constants() -> None:
    config = MarketplaceConfig()
    assert config.platform_fee_pct == 3
    assert config.settlement_policy == "provider"
    assert config.treasury_identity == "platform-treasury"
    assert config.database_url is None


def test_load_config_accepts_camel_case(tmp_path: Path) -> None:
    path = tmp_path / "marketplace.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "platformFeePct": "5",
                "settlementPolicy": "hold",
                "treasuryIdentity": "dao",
                "databaseUrl": "sqlite://",
            }
        )
    )
    config = load_config(path)
    assert config.platform_fee_pct == 5
    assert config.settlement_policy == "hold"
    assert config.treasury_identity == "dao"
    assert config.database_url == "sqlite://"


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "marketplace.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(path)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"platform_fee_pct": 101},
        {"platform_fee_pct": -1},
        {"platform_fee_pct": 2.5},
        {"settlement_policy": "burn"},
        {"treasury_identity": ""},
    ],
)
def test_invalid_values_are_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        MarketplaceConfig(**kwargs)


def test_env_overrides_take_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "marketplace.yaml"
    path.write_text(yaml.safe_dump({"platform_fee_pct": 4, "settlement_policy": "provider"}))
    monkeypatch.setenv("MARKETPLACE_CONFIG", str(path))
    monkeypatch.setenv("MARKETPLACE_SETTLEMENT_POLICY", "HOLD")
    monkeypatch.setenv("MARKETPLACE_TREASURY", "fees")
    get_config.cache_clear()
    config = get_config()
    assert config.platform_fee_pct == 4
    assert config.settlement_policy == "hold"
    assert config.treasury_identity == "fees"


def test_unparseable_fee_override_is_ignored() -> None:
    config = MarketplaceConfig().with_env_overrides({"MARKETPLACE_PLATFORM_FEE_PCT": "lots"})
    assert config.platform_fee_pct == 3


def test_fee_split_rounds_fee_down() -> None:
    assert fee_split(100, 3) == (97, 3)
    assert fee_split(20, 3) == (20, 0)
    assert fee_split(34, 3) == (33, 1)
    assert fee_split(0, 3) == (0, 0)
