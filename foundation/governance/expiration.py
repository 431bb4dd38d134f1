"""
Block Context, Durations and Expirations

Time inside the contract is whatever the host says it is: every call
carries a BlockInfo (height + unix time). Durations and expirations are
expressed either in block heights or in seconds, and the two units are
not comparable with each other.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..exceptions import ValidationError


class InvalidExpirationError(ValidationError):
    """Expiration is in the wrong unit, malformed, or already passed."""


HEIGHT = "height"
TIME = "time"
NEVER = "never"


@dataclass(frozen=True)
class BlockInfo:
    """Ambient call-time clock supplied by the host."""
    height: int
    time: int
    chain_id: str = "foundation-1"

    def next(self, blocks: int = 1, block_time: int = 5) -> "BlockInfo":
        return BlockInfo(
            height=self.height + blocks,
            time=self.time + blocks * block_time,
            chain_id=self.chain_id,
        )


@dataclass(frozen=True)
class Duration:
    """A relative span in block heights or seconds."""
    unit: str
    value: int

    def __post_init__(self):
        if self.unit not in (HEIGHT, TIME):
            raise InvalidExpirationError(f"Unknown duration unit: {self.unit}")
        if self.value < 0:
            raise InvalidExpirationError("Duration cannot be negative")

    @classmethod
    def height(cls, blocks: int) -> "Duration":
        return cls(HEIGHT, blocks)

    @classmethod
    def time(cls, seconds: int) -> "Duration":
        return cls(TIME, seconds)

    def after(self, block: BlockInfo) -> "Expiration":
        """Absolute expiration *self* past the given block."""
        if self.unit == HEIGHT:
            return Expiration.at_height(block.height + self.value)
        return Expiration.at_time(block.time + self.value)

    def to_dict(self) -> Dict[str, int]:
        return {self.unit: self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Duration":
        if len(data) != 1:
            raise InvalidExpirationError(f"Malformed duration: {data!r}")
        (unit, value), = data.items()
        return cls(unit, int(value))

    def __str__(self) -> str:
        return f"{self.value} {'blocks' if self.unit == HEIGHT else 'seconds'}"


@dataclass(frozen=True)
class Expiration:
    """
    An absolute point after which a proposal stops accepting ballots.

    Only a partial order exists: heights compare with heights, times with
    times, and `never` is later than everything. `compare` returns None for
    mixed units.
    """
    unit: str
    value: Optional[int] = None

    def __post_init__(self):
        if self.unit not in (HEIGHT, TIME, NEVER):
            raise InvalidExpirationError(f"Unknown expiration unit: {self.unit}")
        if self.unit != NEVER and (self.value is None or self.value < 0):
            raise InvalidExpirationError(f"Expiration {self.unit} needs a non-negative value")

    @classmethod
    def at_height(cls, height: int) -> "Expiration":
        return cls(HEIGHT, height)

    @classmethod
    def at_time(cls, timestamp: int) -> "Expiration":
        return cls(TIME, timestamp)

    @classmethod
    def never(cls) -> "Expiration":
        return cls(NEVER)

    def is_expired(self, block: BlockInfo) -> bool:
        if self.unit == HEIGHT:
            return block.height >= self.value
        if self.unit == TIME:
            return block.time >= self.value
        return False

    def compare(self, other: "Expiration") -> Optional[int]:
        """-1, 0 or 1 when comparable, None otherwise."""
        if self.unit == NEVER or other.unit == NEVER:
            if self.unit == other.unit:
                return 0
            return 1 if self.unit == NEVER else -1
        if self.unit != other.unit:
            return None
        return (self.value > other.value) - (self.value < other.value)

    def to_dict(self) -> Dict[str, Any]:
        if self.unit == NEVER:
            return {"never": {}}
        return {f"at_{self.unit}": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expiration":
        if "never" in data:
            return cls.never()
        if "at_height" in data:
            return cls.at_height(int(data["at_height"]))
        if "at_time" in data:
            return cls.at_time(int(data["at_time"]))
        raise InvalidExpirationError(f"Malformed expiration: {data!r}")

    def __str__(self) -> str:
        if self.unit == NEVER:
            return "never"
        return f"{self.unit} {self.value}"
