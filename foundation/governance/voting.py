"""
Ballots and Tallies

Implements:
  - Vote choices: Yes / No / Abstain / Veto
  - Votes: aggregated per-proposal weight tally
  - Ballot: one voter's choice and weight, fixed at cast time
  - BallotStore: (proposal_id, voter) → Ballot, append-only
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterator, Optional

from ..constants import MAX_WEIGHT
from ..exceptions import LifecycleError, ValidationError, checked_add
from .journal import Journal


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidVoteError(ValidationError):
    """Unknown vote choice."""


class AlreadyVotedError(LifecycleError):
    """Voter already cast a ballot on this proposal."""


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class Vote(IntEnum):
    """Ballot choice."""
    YES = 1
    NO = 2
    ABSTAIN = 3
    VETO = 4

    @classmethod
    def parse(cls, value) -> "Vote":
        """Accept a Vote, its int value or its (case-insensitive) name."""
        if isinstance(value, Vote):
            return value
        try:
            if isinstance(value, str):
                return cls[value.strip().upper()]
            return cls(value)
        except (KeyError, ValueError):
            raise InvalidVoteError(f"Invalid vote type: {value!r}") from None

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class Votes:
    """Aggregated weight per choice."""
    yes: int = 0
    no: int = 0
    abstain: int = 0
    veto: int = 0

    @classmethod
    def initial_yes(cls, weight: int) -> "Votes":
        return cls(yes=weight)

    @property
    def total(self) -> int:
        """All weight cast so far, abstain and veto included."""
        return self.yes + self.no + self.abstain + self.veto

    def add_vote(self, vote: Vote, weight: int):
        if vote == Vote.YES:
            self.yes = checked_add(self.yes, weight, MAX_WEIGHT, "yes tally")
        elif vote == Vote.NO:
            self.no = checked_add(self.no, weight, MAX_WEIGHT, "no tally")
        elif vote == Vote.ABSTAIN:
            self.abstain = checked_add(self.abstain, weight, MAX_WEIGHT, "abstain tally")
        else:
            self.veto = checked_add(self.veto, weight, MAX_WEIGHT, "veto tally")

    def to_dict(self) -> Dict[str, int]:
        return {
            "yes": self.yes,
            "no": self.no,
            "abstain": self.abstain,
            "veto": self.veto,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Votes":
        return cls(
            yes=int(data.get("yes", 0)),
            no=int(data.get("no", 0)),
            abstain=int(data.get("abstain", 0)),
            veto=int(data.get("veto", 0)),
        )


@dataclass(frozen=True)
class Ballot:
    """A voter's choice and the weight it carried when cast."""
    vote: Vote
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {"vote": self.vote.label, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ballot":
        return cls(vote=Vote.parse(data["vote"]), weight=int(data["weight"]))


@dataclass(frozen=True)
class VoteInfo:
    """Query view of a single ballot."""
    proposal_id: int
    voter: str
    vote: Vote
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "voter": self.voter,
            "vote": self.vote.label,
            "weight": self.weight,
        }


# ══════════════════════════════════════════════════════════════════════
#  BALLOT STORE
# ══════════════════════════════════════════════════════════════════════

class BallotStore:
    """
    (proposal_id, voter) → Ballot.

    Ballots are written once and never updated or deleted.
    """

    def __init__(self):
        self._ballots: Dict[int, Dict[str, Ballot]] = {}
        self.journal: Optional[Journal] = None

    def get(self, proposal_id: int, voter: str) -> Optional[Ballot]:
        return self._ballots.get(proposal_id, {}).get(voter)

    def save(self, proposal_id: int, voter: str, ballot: Ballot):
        per_proposal = self._ballots.setdefault(proposal_id, {})
        if voter in per_proposal:
            raise AlreadyVotedError(
                f"{voter} has already voted on proposal #{proposal_id}"
            )
        per_proposal[voter] = ballot
        if self.journal is not None:
            self.journal.record(lambda: self._discard(proposal_id, voter))

    def _discard(self, proposal_id: int, voter: str):
        per_proposal = self._ballots[proposal_id]
        del per_proposal[voter]
        if not per_proposal:
            del self._ballots[proposal_id]

    def range(
        self,
        proposal_id: int,
        start_after: Optional[str] = None,
    ) -> Iterator[VoteInfo]:
        """Ballots of one proposal in ascending voter order."""
        per_proposal = self._ballots.get(proposal_id, {})
        for voter in sorted(per_proposal):
            if start_after is not None and voter <= start_after:
                continue
            ballot = per_proposal[voter]
            yield VoteInfo(
                proposal_id=proposal_id,
                voter=voter,
                vote=ballot.vote,
                weight=ballot.weight,
            )

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        return {
            str(pid): {voter: b.to_dict() for voter, b in ballots.items()}
            for pid, ballots in self._ballots.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Dict[str, Any]]]) -> "BallotStore":
        store = cls()
        for pid, ballots in data.items():
            store._ballots[int(pid)] = {
                voter: Ballot.from_dict(b) for voter, b in ballots.items()
            }
        return store

    def __repr__(self) -> str:
        total = sum(len(b) for b in self._ballots.values())
        return f"<BallotStore proposals={len(self._ballots)} ballots={total}>"

