"""
Threshold Rules and Status Evaluation

Implements:
  - ProposalStatus lifecycle enum and its legal transitions
  - AbsoluteCount:      passes when yes-weight ≥ N
  - AbsolutePercentage: passes when yes-weight / total-weight ≥ P
  - evaluate(): pure (rule, total, tally, expired) → status

Percentages are compared as exact rationals; no float ever enters the
pass/fail decision.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import IntEnum
from fractions import Fraction
from typing import Any, Dict, Optional, Union

from ..constants import MAX_WEIGHT
from ..exceptions import ValidationError
from .voting import Votes


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidThresholdError(ValidationError):
    """Threshold rule can never be met or is malformed."""


# ══════════════════════════════════════════════════════════════════════
#  STATUS
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(IntEnum):
    """Lifecycle stage."""
    OPEN = 1        # Accepting ballots
    REJECTED = 2    # Expired or can no longer reach threshold
    PASSED = 3      # Threshold met, awaiting execution
    EXECUTED = 4    # Action dispatched

    @property
    def is_terminal(self) -> bool:
        return self in (ProposalStatus.REJECTED, ProposalStatus.EXECUTED)

    @property
    def label(self) -> str:
        return self.name.lower()


_VALID_TRANSITIONS = {
    ProposalStatus.OPEN:     {ProposalStatus.PASSED, ProposalStatus.REJECTED},
    ProposalStatus.PASSED:   {ProposalStatus.EXECUTED},
    ProposalStatus.REJECTED: set(),
    ProposalStatus.EXECUTED: set(),
}


def can_transition(old: ProposalStatus, new: ProposalStatus) -> bool:
    return new == old or new in _VALID_TRANSITIONS[old]


# ══════════════════════════════════════════════════════════════════════
#  RULES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ThresholdResponse:
    """A rule paired with the total weight it is measured against."""
    kind: str
    total_weight: int
    weight: Optional[int] = None
    percentage: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"total_weight": self.total_weight}
        if self.kind == AbsoluteCount.KIND:
            body["weight"] = self.weight
        else:
            body["percentage"] = str(self.percentage)
        return {self.kind: body}


@dataclass(frozen=True)
class AbsoluteCount:
    """Passes once the yes tally reaches a fixed weight."""
    weight: int

    KIND = "absolute_count"

    def validate(self, total_weight: int):
        if self.weight <= 0:
            raise InvalidThresholdError("Required weight cannot be zero")
        if self.weight > total_weight:
            raise InvalidThresholdError(
                f"Required weight {self.weight} exceeds total weight {total_weight}"
            )

    def is_met(self, weight: int, total_weight: int) -> bool:
        return weight >= self.weight

    def to_response(self, total_weight: int) -> ThresholdResponse:
        return ThresholdResponse(self.KIND, total_weight, weight=self.weight)

    def to_dict(self) -> Dict[str, Any]:
        return {self.KIND: {"weight": self.weight}}

    def __str__(self) -> str:
        return f"count≥{self.weight}"


@dataclass(frozen=True)
class AbsolutePercentage:
    """Passes once yes / total reaches a fixed fraction of the total weight."""
    percentage: Decimal

    KIND = "absolute_percentage"

    def __post_init__(self):
        try:
            value = Decimal(str(self.percentage))
        except InvalidOperation:
            raise InvalidThresholdError(f"Malformed percentage: {self.percentage!r}") from None
        object.__setattr__(self, "percentage", value)

    @property
    def ratio(self) -> Fraction:
        return Fraction(self.percentage)

    def validate(self, total_weight: int):
        if not self.percentage.is_finite() or self.percentage <= 0:
            raise InvalidThresholdError("Percentage must be greater than 0")
        if self.percentage > 1:
            raise InvalidThresholdError("Percentage cannot exceed 1 (100%)")

    def is_met(self, weight: int, total_weight: int) -> bool:
        ratio = self.ratio
        return weight * ratio.denominator >= ratio.numerator * total_weight

    def to_response(self, total_weight: int) -> ThresholdResponse:
        return ThresholdResponse(self.KIND, total_weight, percentage=self.percentage)

    def to_dict(self) -> Dict[str, Any]:
        return {self.KIND: {"percentage": str(self.percentage)}}

    def __str__(self) -> str:
        return f"{self.percentage * 100:g}%"


Threshold = Union[AbsoluteCount, AbsolutePercentage]


def threshold_from_dict(data: Dict[str, Any]) -> Threshold:
    """Parse `{"absolute_count": {"weight": 2}}` style rule records."""
    if AbsoluteCount.KIND in data:
        weight = int(data[AbsoluteCount.KIND]["weight"])
        if weight > MAX_WEIGHT:
            raise InvalidThresholdError(f"Required weight {weight} out of range")
        return AbsoluteCount(weight)
    if AbsolutePercentage.KIND in data:
        return AbsolutePercentage(Decimal(str(data[AbsolutePercentage.KIND]["percentage"])))
    raise InvalidThresholdError(f"Unknown threshold rule: {data!r}")


# ══════════════════════════════════════════════════════════════════════
#  EVALUATOR
# ══════════════════════════════════════════════════════════════════════

def is_passed(rule: Threshold, total_weight: int, votes: Votes) -> bool:
    return rule.is_met(votes.yes, total_weight)


def is_rejected(rule: Threshold, total_weight: int, votes: Votes, expired: bool) -> bool:
    """
    True once the proposal cannot pass anymore: either it expired short
    of the threshold, or even all uncommitted weight voting yes would not
    be enough.
    """
    if is_passed(rule, total_weight, votes):
        return False
    if expired:
        return True
    uncommitted = max(total_weight - votes.total, 0)
    return not rule.is_met(votes.yes + uncommitted, total_weight)


def evaluate(
    rule: Threshold,
    total_weight: int,
    votes: Votes,
    expired: bool,
) -> ProposalStatus:
    """Derive the Open / Passed / Rejected status from a tally."""
    if is_passed(rule, total_weight, votes):
        return ProposalStatus.PASSED
    if is_rejected(rule, total_weight, votes, expired):
        return ProposalStatus.REJECTED
    return ProposalStatus.OPEN
