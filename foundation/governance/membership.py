"""
Weight Ledger - voter set and aggregate voting weight

The voter → weight table and the running total weight form one aggregate.
They change only through `upsert_voter` and `remove_voter`, which update
both in the same step, so `total_weight == sum(weights)` always holds.

Every mutation bumps a revision counter and is appended to a per-voter
history. Proposals remember the revision they were created at, which lets
the engine ask "was this address a voter when the proposal opened?".
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..constants import MAX_WEIGHT
from ..exceptions import (
    LifecycleError,
    NotFoundError,
    ValidationError,
    checked_add,
    checked_sub,
)
from ..logger import get_logger
from .journal import Journal

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidWeightError(ValidationError):
    """Voter weight outside 1..MAX_WEIGHT."""


class VoterNotExistError(NotFoundError):
    """Address holds no weight."""


class VoterWeightMismatchError(ValidationError):
    """Expected weight guard did not match the stored weight."""


class LastVoterRemovalError(LifecycleError):
    """Removing the final voter would leave total weight at zero."""


def validate_weight(weight: int):
    if not isinstance(weight, int) or isinstance(weight, bool):
        raise InvalidWeightError(f"Weight must be an integer, got {weight!r}")
    if weight < 1:
        raise InvalidWeightError(f"Weight must be at least 1, got {weight}")
    if weight > MAX_WEIGHT:
        raise InvalidWeightError(f"Weight {weight} exceeds maximum {MAX_WEIGHT}")


@dataclass(frozen=True)
class Voter:
    """A member and its voting weight."""
    address: str
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {"addr": self.address, "weight": self.weight}


# ══════════════════════════════════════════════════════════════════════
#  WEIGHT LEDGER
# ══════════════════════════════════════════════════════════════════════

class WeightLedger:
    """Voter weights plus their running total."""

    def __init__(self):
        self._weights: Dict[str, int] = {}
        self._total_weight: int = 0
        self._revision: int = 0
        # address → [(revision, weight-after-change)], weight 0 = removed
        self._history: Dict[str, List[Tuple[int, int]]] = {}
        # address → revisions of _history, kept sorted for bisect
        self._revisions: Dict[str, List[int]] = {}
        self.journal: Optional[Journal] = None

    @classmethod
    def genesis(cls, voters: Iterable[Voter]) -> "WeightLedger":
        """Build the initial voter set at revision 0."""
        ledger = cls()
        for voter in voters:
            address, weight = voter.address, voter.weight
            validate_weight(weight)
            if address in ledger._weights:
                raise ValidationError(f"Duplicate voter: {address}")
            ledger._weights[address] = weight
            ledger._total_weight = checked_add(
                ledger._total_weight, weight, MAX_WEIGHT, "total weight"
            )
            ledger._history[address] = [(0, weight)]
            ledger._revisions[address] = [0]
        if not ledger._weights:
            raise ValidationError("At least one voter is required")
        return ledger

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_weight(self) -> int:
        return self._total_weight

    @property
    def revision(self) -> int:
        return self._revision

    def weight_of(self, address: str) -> Optional[int]:
        return self._weights.get(address)

    def weight_at(self, address: str, revision: int) -> Optional[int]:
        """Weight held by *address* as of *revision* (None when absent)."""
        revisions = self._revisions.get(address)
        if not revisions:
            return None
        idx = bisect_right(revisions, revision)
        if idx == 0:
            return None
        weight = self._history[address][idx - 1][1]
        return weight or None

    def range(self, start_after: Optional[str] = None) -> Iterator[Voter]:
        """Voters in ascending address order."""
        for address in sorted(self._weights):
            if start_after is not None and address <= start_after:
                continue
            yield Voter(address, self._weights[address])

    def is_consistent(self) -> bool:
        return self._total_weight == sum(self._weights.values())

    def __contains__(self, address: str) -> bool:
        return address in self._weights

    def __len__(self) -> int:
        return len(self._weights)

    # ── Mutations ─────────────────────────────────────────────────────

    def _log_undo(self, address: str):
        if self.journal is None:
            return
        had_voter = address in self._weights
        old_weight = self._weights.get(address)
        old_total, old_revision = self._total_weight, self._revision
        history_len = len(self._history.get(address, ()))

        def undo():
            if had_voter:
                self._weights[address] = old_weight
            else:
                self._weights.pop(address, None)
            self._total_weight = old_total
            self._revision = old_revision
            if history_len:
                del self._history[address][history_len:]
                del self._revisions[address][history_len:]
            else:
                self._history.pop(address, None)
                self._revisions.pop(address, None)

        self.journal.record(undo)

    def _write(self, address: str, weight: int, total: int):
        """Apply one change; weight 0 deletes the voter."""
        self._log_undo(address)
        if weight:
            self._weights[address] = weight
        else:
            del self._weights[address]
        self._total_weight = total
        self._revision += 1
        self._history.setdefault(address, []).append((self._revision, weight))
        self._revisions.setdefault(address, []).append(self._revision)

    def upsert_voter(self, address: str, weight: int) -> Optional[int]:
        """
        Set *address* to exactly *weight*, returning the previous weight.

        An existing voter is overwritten, not topped up: the total moves by
        (new - old).
        """
        validate_weight(weight)
        old = self._weights.get(address, 0)
        total = checked_sub(self._total_weight, old, "total weight")
        total = checked_add(total, weight, MAX_WEIGHT, "total weight")

        self._write(address, weight, total)
        logger.info(f"Voter {address} weight {old} → {weight} (total={total})")
        return old or None

    def remove_voter(self, address: str, expected_weight: Optional[int] = None) -> int:
        """Delete *address* and return the weight it held."""
        weight = self._weights.get(address)
        if weight is None:
            raise VoterNotExistError(f"{address} is not a voter")
        if expected_weight is not None and expected_weight != weight:
            raise VoterWeightMismatchError(
                f"{address} holds weight {weight}, proposal expected {expected_weight}"
            )
        if len(self._weights) == 1:
            raise LastVoterRemovalError(
                f"Cannot remove {address}: it is the last remaining voter"
            )

        total = checked_sub(self._total_weight, weight, "total weight")
        self._write(address, 0, total)
        logger.info(f"Voter {address} removed (weight={weight}, total={total})")
        return weight

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voters": dict(sorted(self._weights.items())),
            "totalWeight": self._total_weight,
            "revision": self._revision,
            "history": {
                addr: [[rev, w] for rev, w in entries]
                for addr, entries in self._history.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeightLedger":
        ledger = cls()
        ledger._weights = {addr: int(w) for addr, w in data["voters"].items()}
        ledger._total_weight = int(data["totalWeight"])
        ledger._revision = int(data.get("revision", 0))
        ledger._history = {
            addr: [(int(rev), int(w)) for rev, w in entries]
            for addr, entries in data.get("history", {}).items()
        }
        ledger._revisions = {
            addr: [rev for rev, _ in entries] for addr, entries in ledger._history.items()
        }
        if not ledger.is_consistent():
            raise ValidationError("Total weight does not match the voter set")
        return ledger

    def __repr__(self) -> str:
        return (
            f"<WeightLedger voters={len(self._weights)} "
            f"total={self._total_weight} rev={self._revision}>"
        )
