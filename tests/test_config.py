"""
Configuration Loader Test Suite

Coverage:
  - section defaults and from_dict parsing
  - TOML file loading, missing file fallback
  - FOUNDATION_* environment overrides
  - validation and engine wiring
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from foundation.config import FoundationConfig, load_config
from foundation.config.loader import parse_voters_env
from foundation.constants import DEFAULT_MAX_VOTING_PERIOD_HEIGHT, DEFAULT_THRESHOLD_PERCENTAGE
from foundation.exceptions import ConfigurationError
from foundation.governance import (
    AbsoluteCount,
    AbsolutePercentage,
    Duration,
    GovernanceEngine,
    Voter,
)


SAMPLE_TOML = """
[contract]
address = "juno1foundation"
chain_id = "uni-6"

[threshold]
kind = "absolute_percentage"
percentage = "0.6"

[voting]
unit = "time"
max_voting_period = 86400

[[voters]]
addr = "alice"
weight = 2

[[voters]]
addr = "bob"
weight = 3

[token]
address = "juno1cw20"
symbol = "GOV"
cap = 1000000

[token.initial_balances]
juno1foundation = 5000

[logging]
level = "debug"
"""

ENV_VARS = (
    "FOUNDATION_CONTRACT_ADDRESS",
    "FOUNDATION_THRESHOLD_KIND",
    "FOUNDATION_THRESHOLD_WEIGHT",
    "FOUNDATION_THRESHOLD_PERCENTAGE",
    "FOUNDATION_MAX_VOTING_PERIOD",
    "FOUNDATION_MAX_VOTING_PERIOD_UNIT",
    "FOUNDATION_VOTERS",
    "FOUNDATION_CW20_ADDRESS",
    "FOUNDATION_LOG_LEVEL",
    "FOUNDATION_CONFIG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def write_config(tmp_path, text=SAMPLE_TOML):
    path = tmp_path / "foundation.toml"
    path.write_text(text)
    return str(path)


# ══════════════════════════════════════════════════════════════════════
#  PARSING
# ══════════════════════════════════════════════════════════════════════


class TestDefaults:

    def test_defaults(self):
        cfg = FoundationConfig()
        assert cfg.contract.address == "foundation"
        assert cfg.threshold.kind == "absolute_percentage"
        assert cfg.threshold.percentage == DEFAULT_THRESHOLD_PERCENTAGE
        assert cfg.voting.max_voting_period == DEFAULT_MAX_VOTING_PERIOD_HEIGHT
        assert cfg.voters == []
        assert cfg.logging.level == "INFO"

    def test_from_empty_dict(self):
        assert FoundationConfig.from_dict({}) == FoundationConfig()


class TestFromFile:

    def test_load(self, tmp_path):
        cfg = FoundationConfig.from_file(write_config(tmp_path))
        assert cfg.contract.address == "juno1foundation"
        assert cfg.contract.chain_id == "uni-6"
        assert cfg.threshold.percentage == Decimal("0.6")
        assert cfg.voting.build() == Duration.time(86400)
        assert [(v.addr, v.weight) for v in cfg.voters] == [("alice", 2), ("bob", 3)]
        assert cfg.token.symbol == "GOV"
        assert cfg.token.cap == 1000000
        assert cfg.token.initial_balances == {"juno1foundation": 5000}
        assert cfg.logging.level == "DEBUG"

    def test_float_percentage_kept_exact(self, tmp_path):
        path = write_config(tmp_path, '[threshold]\npercentage = 0.51\n')
        cfg = FoundationConfig.from_file(path)
        assert cfg.threshold.percentage == Decimal("0.51")

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = FoundationConfig.from_file(str(tmp_path / "absent.toml"))
        assert cfg == FoundationConfig()

    def test_invalid_toml(self, tmp_path):
        path = write_config(tmp_path, "[threshold\nkind = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            FoundationConfig.from_file(path)

    def test_load_config_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FOUNDATION_CONFIG", write_config(tmp_path))
        assert load_config().contract.address == "juno1foundation"

    def test_malformed_voter(self):
        with pytest.raises(ConfigurationError, match="Malformed voter"):
            FoundationConfig.from_dict({"voters": [{"addr": "alice"}]})


# ══════════════════════════════════════════════════════════════════════
#  ENVIRONMENT
# ══════════════════════════════════════════════════════════════════════


class TestEnvOverrides:

    def test_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FOUNDATION_CONTRACT_ADDRESS", "juno1override")
        monkeypatch.setenv("FOUNDATION_THRESHOLD_KIND", "absolute_count")
        monkeypatch.setenv("FOUNDATION_THRESHOLD_WEIGHT", "4")
        monkeypatch.setenv("FOUNDATION_MAX_VOTING_PERIOD", "20")
        monkeypatch.setenv("FOUNDATION_MAX_VOTING_PERIOD_UNIT", "height")
        monkeypatch.setenv("FOUNDATION_CW20_ADDRESS", "juno1othercw20")
        monkeypatch.setenv("FOUNDATION_LOG_LEVEL", "warning")

        cfg = FoundationConfig.from_file(write_config(tmp_path))
        assert cfg.contract.address == "juno1override"
        assert cfg.threshold.build() == AbsoluteCount(4)
        assert cfg.voting.build() == Duration.height(20)
        assert cfg.token.address == "juno1othercw20"
        assert cfg.logging.level == "WARNING"

    def test_voters_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FOUNDATION_VOTERS", "carol:1, dave:7")
        cfg = FoundationConfig.from_file(write_config(tmp_path))
        assert [(v.addr, v.weight) for v in cfg.voters] == [("carol", 1), ("dave", 7)]

    def test_parse_voters_env_malformed(self):
        with pytest.raises(ConfigurationError):
            parse_voters_env("carol")
        with pytest.raises(ConfigurationError):
            parse_voters_env("carol:heavy")


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION & WIRING
# ══════════════════════════════════════════════════════════════════════


class TestValidate:

    def test_valid(self, tmp_path):
        assert FoundationConfig.from_file(write_config(tmp_path)).validate()

    def test_no_voters(self):
        with pytest.raises(ConfigurationError, match="At least one voter"):
            FoundationConfig().validate()

    def test_duplicate_voter(self):
        cfg = FoundationConfig.from_dict({
            "voters": [{"addr": "alice", "weight": 1}, {"addr": "alice", "weight": 2}],
        })
        with pytest.raises(ConfigurationError, match="Duplicate"):
            cfg.validate()

    def test_zero_weight(self):
        cfg = FoundationConfig.from_dict({"voters": [{"addr": "alice", "weight": 0}]})
        with pytest.raises(ConfigurationError, match="Invalid weight"):
            cfg.validate()

    def test_unreachable_threshold(self):
        cfg = FoundationConfig.from_dict({
            "threshold": {"kind": "absolute_count", "weight": 5},
            "voters": [{"addr": "alice", "weight": 1}],
        })
        with pytest.raises(ConfigurationError, match="Invalid threshold"):
            cfg.validate()

    def test_count_without_weight(self):
        cfg = FoundationConfig.from_dict({
            "threshold": {"kind": "absolute_count"},
            "voters": [{"addr": "alice", "weight": 1}],
        })
        with pytest.raises(ConfigurationError, match="weight is required"):
            cfg.validate()

    def test_unknown_threshold_kind(self):
        cfg = FoundationConfig.from_dict({
            "threshold": {"kind": "quorum"},
            "voters": [{"addr": "alice", "weight": 1}],
        })
        with pytest.raises(ConfigurationError, match="Unknown threshold kind"):
            cfg.validate()

    def test_bad_voting_unit(self):
        cfg = FoundationConfig.from_dict({
            "voting": {"unit": "epochs"},
            "voters": [{"addr": "alice", "weight": 1}],
        })
        with pytest.raises(ConfigurationError, match="voting period unit"):
            cfg.validate()

    def test_bad_log_level(self):
        cfg = FoundationConfig.from_dict({
            "logging": {"level": "chatty"},
            "voters": [{"addr": "alice", "weight": 1}],
        })
        with pytest.raises(ConfigurationError, match="log level"):
            cfg.validate()


class TestInstantiateArgs:

    def test_builds_engine(self, tmp_path):
        cfg = FoundationConfig.from_file(write_config(tmp_path))
        args = cfg.instantiate_args()
        assert args["voters"] == [Voter("alice", 2), Voter("bob", 3)]
        assert args["threshold"] == AbsolutePercentage(Decimal("0.6"))
        assert args["cw20_address"] == "juno1cw20"
        assert args["contract_address"] == "juno1foundation"

        engine = GovernanceEngine.instantiate(**args)
        assert engine.state.ledger.total_weight == 5

    def test_to_dict(self, tmp_path):
        data = FoundationConfig.from_file(write_config(tmp_path)).to_dict()
        assert data["threshold"]["percentage"] == "0.6"
        assert data["voters"][1] == {"addr": "bob", "weight": 3}
