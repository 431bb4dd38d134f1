"""
Governance Proposals

Defines the closed set of typed actions, the Proposal record that tracks a
single request from creation to execution, and the append-only store that
hands out sequential ids.

The action is embedded in the proposal record, so a proposal and its
action are always written and read together.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Union

from ..constants import MAX_AMOUNT, MAX_WEIGHT
from ..exceptions import LifecycleError, NotFoundError, ValidationError
from ..logger import get_logger
from .expiration import BlockInfo, Expiration
from .journal import Journal
from .membership import validate_weight
from .threshold import (
    ProposalStatus,
    Threshold,
    ThresholdResponse,
    can_transition,
    evaluate,
    threshold_from_dict,
)
from .voting import Votes

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidProposalError(ValidationError):
    """Raised when proposal data is invalid."""


class InvalidAmountError(ValidationError):
    """Transfer amount outside 1..MAX_AMOUNT."""


class ProposalNotFoundError(NotFoundError):
    """Unknown proposal id."""


class ProposalLifecycleError(LifecycleError):
    """Raised on illegal state transitions."""


# ══════════════════════════════════════════════════════════════════════
#  TYPED ACTIONS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Transfer:
    """Move `amount` custodied tokens to `recipient`."""
    recipient: str
    amount: int

    KIND = "send"

    def validate(self):
        if not self.recipient:
            raise InvalidProposalError("Transfer recipient is required")
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise InvalidAmountError(f"Amount must be an integer, got {self.amount!r}")
        if self.amount < 1 or self.amount > MAX_AMOUNT:
            raise InvalidAmountError(f"Amount {self.amount} out of range 1..{MAX_AMOUNT}")

    def attributes(self) -> Dict[str, str]:
        return {"send_to": self.recipient, "send_amount": str(self.amount)}

    def to_dict(self) -> Dict[str, Any]:
        return {self.KIND: {"to": self.recipient, "amount": str(self.amount)}}


@dataclass(frozen=True)
class AddVoter:
    """Add a voter, or overwrite an existing voter's weight."""
    address: str
    weight: int
    info: str = ""

    KIND = "add_voter"

    def validate(self):
        if not self.address:
            raise InvalidProposalError("Voter address is required")
        validate_weight(self.weight)

    def attributes(self) -> Dict[str, str]:
        return {"voter": self.address, "vote_weight": str(self.weight)}

    def to_dict(self) -> Dict[str, Any]:
        return {self.KIND: {"address": self.address, "vote_weight": self.weight, "info": self.info}}


@dataclass(frozen=True)
class RemoveVoter:
    """Remove a voter; `weight`, when set, must match its current weight."""
    address: str
    weight: Optional[int] = None

    KIND = "remove_voter"

    def validate(self):
        if not self.address:
            raise InvalidProposalError("Voter address is required")
        if self.weight is not None:
            validate_weight(self.weight)

    def attributes(self) -> Dict[str, str]:
        return {"voter": self.address}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"address": self.address}
        if self.weight is not None:
            body["vote_weight"] = self.weight
        return {self.KIND: body}


Action = Union[Transfer, AddVoter, RemoveVoter]


def action_from_dict(data: Dict[str, Any]) -> Action:
    """Parse the `{"send": {...}}` / `{"add_voter": {...}}` action records."""
    if len(data) != 1:
        raise InvalidProposalError(f"Exactly one action expected, got {list(data)}")
    (kind, body), = data.items()
    try:
        if kind == Transfer.KIND:
            return Transfer(recipient=body["to"], amount=int(body["amount"]))
        if kind == AddVoter.KIND:
            return AddVoter(
                address=body["address"],
                weight=int(body["vote_weight"]),
                info=body.get("info", ""),
            )
        if kind == RemoveVoter.KIND:
            weight = body.get("vote_weight")
            return RemoveVoter(
                address=body["address"],
                weight=int(weight) if weight is not None else None,
            )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidProposalError(f"Malformed {kind} action: {e}") from None
    raise InvalidProposalError(f"Unknown action type: {kind}")


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    A request to perform one typed action, subject to weighted approval.

    Fields:
        id:                   Sequential identifier, starting at 1
        title / description:  Free text
        proposer:             Address that opened the proposal
        start_height:         Block height at creation
        membership_revision:  Weight-ledger revision at creation
        expires:              Absolute expiration
        threshold:            Rule snapshot taken at creation
        total_weight:         Total weight snapshot taken at creation
        votes:                Running tally
        action:               Typed action, fixed at creation
        status:               Last persisted status (a memo; always re-derive)
        deposit:              Reserved, never populated
    """
    id: int
    title: str
    description: str
    proposer: str
    start_height: int
    membership_revision: int
    expires: Expiration
    threshold: Threshold
    total_weight: int
    action: Action
    votes: Votes = field(default_factory=Votes)
    status: ProposalStatus = ProposalStatus.OPEN
    deposit: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.title:
            raise InvalidProposalError("Proposal title cannot be empty")
        if not self.proposer:
            raise InvalidProposalError("Proposer address is required")
        if self.total_weight > MAX_WEIGHT:
            raise InvalidProposalError("Total weight snapshot out of range")

    # ── Status derivation ─────────────────────────────────────────────

    def is_expired(self, block: BlockInfo) -> bool:
        return self.expires.is_expired(block)

    def current_status(self, block: BlockInfo) -> ProposalStatus:
        """
        Re-derive status from tally, snapshot and clock.

        Only an Open memo is re-evaluated; Rejected, Passed and Executed
        are never reverted by a read.
        """
        if self.status != ProposalStatus.OPEN:
            return self.status
        return evaluate(
            self.threshold,
            self.total_weight,
            self.votes,
            self.is_expired(block),
        )

    def update_status(self, block: BlockInfo) -> ProposalStatus:
        """Persist the derived status into the memo field."""
        new_status = self.current_status(block)
        if new_status != self.status:
            self.transition_to(new_status)
        return self.status

    def transition_to(self, new_status: ProposalStatus):
        if not can_transition(self.status, new_status):
            raise ProposalLifecycleError(
                f"Cannot transition from {self.status.name} → {new_status.name}"
            )
        old = self.status
        self.status = new_status
        logger.info(f"Proposal #{self.id} ({self.title}): {old.name} → {new_status.name}")

    def threshold_response(self) -> ThresholdResponse:
        """Rule as it applies to this proposal, with the creation-time total."""
        return self.threshold.to_response(self.total_weight)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "proposer": self.proposer,
            "startHeight": self.start_height,
            "membershipRevision": self.membership_revision,
            "expires": self.expires.to_dict(),
            "threshold": self.threshold.to_dict(),
            "totalWeight": self.total_weight,
            "votes": self.votes.to_dict(),
            "action": self.action.to_dict(),
            "status": self.status.label,
            "deposit": self.deposit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=int(data["id"]),
            title=data["title"],
            description=data.get("description", ""),
            proposer=data["proposer"],
            start_height=int(data["startHeight"]),
            membership_revision=int(data.get("membershipRevision", 0)),
            expires=Expiration.from_dict(data["expires"]),
            threshold=threshold_from_dict(data["threshold"]),
            total_weight=int(data["totalWeight"]),
            votes=Votes.from_dict(data.get("votes", {})),
            action=action_from_dict(data["action"]),
            status=ProposalStatus[data.get("status", "open").upper()],
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.title}' "
            f"action={self.action.KIND} status={self.status.name}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL STORE
# ══════════════════════════════════════════════════════════════════════

class ProposalStore:
    """
    id → Proposal, append-only.

    Ids are allocated from a counter that only ever grows; records are
    never deleted. Inside an atomic call, `load` keeps a copy of each record
    it hands out so in-place changes can be undone.
    """

    def __init__(self):
        self._proposals: Dict[int, Proposal] = {}
        self._last_id: int = 0
        self.journal: Optional[Journal] = None

    @property
    def last_id(self) -> int:
        return self._last_id

    def next_id(self) -> int:
        if self.journal is not None:
            last_id = self._last_id
            self.journal.record(lambda: setattr(self, "_last_id", last_id), key="last_id")
        self._last_id += 1
        return self._last_id

    def save(self, proposal: Proposal):
        if proposal.id < 1 or proposal.id > self._last_id:
            raise ProposalLifecycleError(f"Proposal id {proposal.id} was never allocated")
        if self.journal is not None and proposal.id not in self._proposals:
            self.journal.record(lambda: self._proposals.pop(proposal.id, None))
        self._proposals[proposal.id] = proposal

    def load(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
        if self.journal is not None:
            before = copy.deepcopy(proposal)
            self.journal.record(
                lambda: self._proposals.__setitem__(proposal_id, before),
                key=("proposal", proposal_id),
            )
        return proposal

    def range(
        self,
        start_after: Optional[int] = None,
        start_before: Optional[int] = None,
        descending: bool = False,
    ) -> Iterator[Proposal]:
        """Proposals strictly between the two exclusive bounds."""
        for pid in sorted(self._proposals, reverse=descending):
            if start_after is not None and pid <= start_after:
                continue
            if start_before is not None and pid >= start_before:
                continue
            yield self._proposals[pid]

    def __len__(self) -> int:
        return len(self._proposals)

    def __contains__(self, proposal_id: int) -> bool:
        return proposal_id in self._proposals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastId": self._last_id,
            "proposals": [self._proposals[pid].to_dict() for pid in sorted(self._proposals)],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalStore":
        store = cls()
        store._last_id = int(data.get("lastId", 0))
        for raw in data.get("proposals", []):
            proposal = Proposal.from_dict(raw)
            store._proposals[proposal.id] = proposal
        if store._proposals and max(store._proposals) > store._last_id:
            raise InvalidProposalError("Proposal id exceeds the stored id counter")
        return store
