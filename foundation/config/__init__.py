"""
Foundation Configuration

Loads all sections of foundation.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    FoundationConfig,
    ContractSectionConfig,
    ThresholdConfig,
    VotingConfig,
    VoterEntry,
    TokenConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "FoundationConfig",
    "ContractSectionConfig",
    "ThresholdConfig",
    "VotingConfig",
    "VoterEntry",
    "TokenConfig",
    "LoggingConfig",
    "load_config",
]
