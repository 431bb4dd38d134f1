"""
Foundation TOML Configuration Loader

Loads every section of foundation.toml at startup with environment variable
overrides. Each section is a dataclass with from_dict (+ apply_env where
overrides exist).

Environment variable mapping:
    [contract] address          → FOUNDATION_CONTRACT_ADDRESS
    [threshold] kind            → FOUNDATION_THRESHOLD_KIND
    [threshold] weight          → FOUNDATION_THRESHOLD_WEIGHT
    [threshold] percentage      → FOUNDATION_THRESHOLD_PERCENTAGE
    [voting] max_voting_period  → FOUNDATION_MAX_VOTING_PERIOD
    [voting] unit               → FOUNDATION_MAX_VOTING_PERIOD_UNIT
    [[voters]]                  → FOUNDATION_VOTERS  ("addr:weight,addr:weight")
    [token] address             → FOUNDATION_CW20_ADDRESS
    [logging] level             → FOUNDATION_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    try:
        import tomli  # type: ignore[no-redef]
    except ImportError:
        tomli = None  # type: ignore[assignment]

from ..constants import (
    CW20_DEFAULT_DECIMALS,
    DEFAULT_MAX_VOTING_PERIOD_HEIGHT,
    DEFAULT_THRESHOLD_PERCENTAGE,
    MAX_WEIGHT,
)
from ..exceptions import ConfigurationError, GovernanceError
from ..governance.expiration import HEIGHT, TIME, Duration
from ..governance.membership import Voter
from ..governance.threshold import AbsoluteCount, AbsolutePercentage, Threshold

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ContractSectionConfig:
    """[contract] section."""
    address: str = "foundation"
    chain_id: str = "foundation-1"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractSectionConfig":
        return cls(
            address=data.get("address", "foundation"),
            chain_id=data.get("chain_id", "foundation-1"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("FOUNDATION_CONTRACT_ADDRESS"):
            self.address = v


@dataclass
class ThresholdConfig:
    """[threshold] section."""
    kind: str = AbsolutePercentage.KIND
    weight: Optional[int] = None
    percentage: Decimal = DEFAULT_THRESHOLD_PERCENTAGE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThresholdConfig":
        weight = data.get("weight")
        try:
            percentage = Decimal(str(data.get("percentage", DEFAULT_THRESHOLD_PERCENTAGE)))
        except InvalidOperation:
            raise ConfigurationError(
                f"Invalid threshold percentage: {data.get('percentage')!r}"
            ) from None
        return cls(
            kind=data.get("kind", AbsolutePercentage.KIND),
            weight=int(weight) if weight is not None else None,
            percentage=percentage,
        )

    def apply_env(self) -> None:
        if v := os.environ.get("FOUNDATION_THRESHOLD_KIND"):
            self.kind = v
        if v := os.environ.get("FOUNDATION_THRESHOLD_WEIGHT"):
            self.weight = int(v)
        if v := os.environ.get("FOUNDATION_THRESHOLD_PERCENTAGE"):
            self.percentage = Decimal(v)

    def build(self) -> Threshold:
        if self.kind == AbsoluteCount.KIND:
            if self.weight is None:
                raise ConfigurationError("threshold.weight is required for absolute_count")
            return AbsoluteCount(self.weight)
        if self.kind == AbsolutePercentage.KIND:
            return AbsolutePercentage(self.percentage)
        raise ConfigurationError(f"Unknown threshold kind: {self.kind}")


@dataclass
class VotingConfig:
    """[voting] section."""
    unit: str = HEIGHT
    max_voting_period: int = DEFAULT_MAX_VOTING_PERIOD_HEIGHT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotingConfig":
        return cls(
            unit=data.get("unit", HEIGHT),
            max_voting_period=data.get("max_voting_period", DEFAULT_MAX_VOTING_PERIOD_HEIGHT),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("FOUNDATION_MAX_VOTING_PERIOD"):
            self.max_voting_period = int(v)
        if v := os.environ.get("FOUNDATION_MAX_VOTING_PERIOD_UNIT"):
            self.unit = v

    def build(self) -> Duration:
        if self.unit not in (HEIGHT, TIME):
            raise ConfigurationError(f"Invalid voting period unit: {self.unit}")
        return Duration(self.unit, self.max_voting_period)


@dataclass
class VoterEntry:
    """One [[voters]] table."""
    addr: str
    weight: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoterEntry":
        try:
            return cls(addr=data["addr"], weight=int(data["weight"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed voter entry {data!r}: {e}") from None


def parse_voters_env(value: str) -> List[VoterEntry]:
    """Parse ``addr:weight,addr:weight``."""
    voters = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        addr, sep, weight = item.rpartition(":")
        if not sep or not addr:
            raise ConfigurationError(f"Malformed voter entry: {item!r}")
        try:
            voters.append(VoterEntry(addr=addr.strip(), weight=int(weight)))
        except ValueError:
            raise ConfigurationError(f"Malformed voter weight: {item!r}") from None
    return voters


@dataclass
class TokenConfig:
    """[token] section."""
    address: str = "cw20"
    name: str = "Foundation Token"
    symbol: str = "FND"
    decimals: int = CW20_DEFAULT_DECIMALS
    minter: Optional[str] = None
    cap: Optional[int] = None
    initial_balances: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenConfig":
        cap = data.get("cap")
        return cls(
            address=data.get("address", "cw20"),
            name=data.get("name", "Foundation Token"),
            symbol=data.get("symbol", "FND"),
            decimals=data.get("decimals", CW20_DEFAULT_DECIMALS),
            minter=data.get("minter"),
            cap=int(cap) if cap is not None else None,
            initial_balances={
                addr: int(amount)
                for addr, amount in data.get("initial_balances", {}).items()
            },
        )

    def apply_env(self) -> None:
        if v := os.environ.get("FOUNDATION_CW20_ADDRESS"):
            self.address = v


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"
    file_output: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            file_output=data.get("file_output", False),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("FOUNDATION_LOG_LEVEL"):
            self.level = v.upper()


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class FoundationConfig:
    """
    Deployment configuration.

    Loads every section of foundation.toml and applies environment variable
    overrides. `instantiate_args()` turns it into the arguments of
    `GovernanceEngine.instantiate`.
    """
    contract: ContractSectionConfig = field(default_factory=ContractSectionConfig)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    voting: VotingConfig = field(default_factory=VotingConfig)
    voters: List[VoterEntry] = field(default_factory=list)
    token: TokenConfig = field(default_factory=TokenConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FoundationConfig":
        """Create FoundationConfig from a parsed TOML dict."""
        return cls(
            contract=ContractSectionConfig.from_dict(data.get("contract", {})),
            threshold=ThresholdConfig.from_dict(data.get("threshold", {})),
            voting=VotingConfig.from_dict(data.get("voting", {})),
            voters=[VoterEntry.from_dict(v) for v in data.get("voters", [])],
            token=TokenConfig.from_dict(data.get("token", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "FoundationConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults with environment overrides applied.
        """
        if tomli is None:
            raise ImportError(
                "tomli is required for TOML config loading. "
                "Install it: pip install tomli"
            )

        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.contract.apply_env()
        self.threshold.apply_env()
        self.voting.apply_env()
        self.token.apply_env()
        self.logging.apply_env()

        if v := os.environ.get("FOUNDATION_VOTERS"):
            self.voters = parse_voters_env(v)

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if not self.contract.address:
            raise ConfigurationError("contract.address is required")
        if not self.token.address:
            raise ConfigurationError("token.address is required")
        if self.logging.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        if not self.voters:
            raise ConfigurationError("At least one voter is required")

        seen = set()
        total = 0
        for voter in self.voters:
            if voter.addr in seen:
                raise ConfigurationError(f"Duplicate voter: {voter.addr}")
            if voter.weight < 1 or voter.weight > MAX_WEIGHT:
                raise ConfigurationError(f"Invalid weight for {voter.addr}: {voter.weight}")
            seen.add(voter.addr)
            total += voter.weight
        if total > MAX_WEIGHT:
            raise ConfigurationError(f"Total voter weight {total} exceeds {MAX_WEIGHT}")

        if self.voting.max_voting_period < 1:
            raise ConfigurationError("voting.max_voting_period must be >= 1")
        self.voting.build()

        threshold = self.threshold.build()
        try:
            threshold.validate(total)
        except GovernanceError as e:
            raise ConfigurationError(f"Invalid threshold: {e}") from e
        return True

    # --- engine wiring ----------------------------------------------------

    def instantiate_args(self) -> Dict[str, Any]:
        """Keyword arguments for `GovernanceEngine.instantiate`."""
        return {
            "voters": [Voter(v.addr, v.weight) for v in self.voters],
            "threshold": self.threshold.build(),
            "max_voting_period": self.voting.build(),
            "cw20_address": self.token.address,
            "contract_address": self.contract.address,
        }

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "contract": {
                "address": self.contract.address,
                "chain_id": self.contract.chain_id,
            },
            "threshold": {
                "kind": self.threshold.kind,
                "weight": self.threshold.weight,
                "percentage": str(self.threshold.percentage),
            },
            "voting": {
                "unit": self.voting.unit,
                "max_voting_period": self.voting.max_voting_period,
            },
            "voters": [{"addr": v.addr, "weight": v.weight} for v in self.voters],
            "token": {
                "address": self.token.address,
                "name": self.token.name,
                "symbol": self.token.symbol,
                "decimals": self.token.decimals,
                "minter": self.token.minter,
                "cap": self.token.cap,
            },
            "logging": {
                "level": self.logging.level,
                "file_output": self.logging.file_output,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> FoundationConfig:
    """
    Load deployment configuration.

    Resolution order:
        1. Explicit *path* argument
        2. FOUNDATION_CONFIG env var
        3. ./foundation.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("FOUNDATION_CONFIG", "foundation.toml")

    return FoundationConfig.from_file(path)
