"""
Governance Queries

Read-only views over governance state. Status is derived against the
supplied block on every read and never written back.
"""

from dataclasses import dataclass
from itertools import islice
from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_LIMIT, MAX_LIMIT
from .expiration import BlockInfo, Expiration
from .membership import Voter
from .proposals import Action
from .state import GovernanceState
from .threshold import ProposalStatus, ThresholdResponse
from .voting import VoteInfo


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(0, min(limit, MAX_LIMIT))


@dataclass(frozen=True)
class ProposalView:
    """A proposal as seen by a reader at a given block."""
    id: int
    title: str
    description: str
    action: Action
    status: ProposalStatus
    expires: Expiration
    threshold: ThresholdResponse
    proposer: str
    deposit: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "msgs": [self.action.to_dict()],
            "status": self.status.label,
            "expires": self.expires.to_dict(),
            "threshold": self.threshold.to_dict(),
            "proposer": self.proposer,
            "deposit": self.deposit,
        }


class GovernanceQueries:
    """Paginated read access to proposals, ballots, voters and threshold."""

    def __init__(self, state: GovernanceState):
        self.state = state

    # ── Proposals ─────────────────────────────────────────────────────

    def _view(self, proposal, block: BlockInfo) -> ProposalView:
        return ProposalView(
            id=proposal.id,
            title=proposal.title,
            description=proposal.description,
            action=proposal.action,
            status=proposal.current_status(block),
            expires=proposal.expires,
            threshold=proposal.threshold_response(),
            proposer=proposal.proposer,
            deposit=proposal.deposit,
        )

    def get_proposal(self, block: BlockInfo, proposal_id: int) -> ProposalView:
        """
        Raises:
            ProposalNotFoundError: unknown id
        """
        return self._view(self.state.proposals.load(proposal_id), block)

    def list_proposals(
        self,
        block: BlockInfo,
        start_after: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[ProposalView]:
        """Ascending by id, strictly after *start_after*."""
        proposals = self.state.proposals.range(start_after=start_after)
        return [self._view(p, block) for p in islice(proposals, clamp_limit(limit))]

    def reverse_proposals(
        self,
        block: BlockInfo,
        start_before: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[ProposalView]:
        """Descending by id, strictly before *start_before*."""
        proposals = self.state.proposals.range(start_before=start_before, descending=True)
        return [self._view(p, block) for p in islice(proposals, clamp_limit(limit))]

    # ── Ballots ───────────────────────────────────────────────────────

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteInfo]:
        ballot = self.state.ballots.get(proposal_id, voter)
        if ballot is None:
            return None
        return VoteInfo(
            proposal_id=proposal_id,
            voter=voter,
            vote=ballot.vote,
            weight=ballot.weight,
        )

    def list_votes(
        self,
        proposal_id: int,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[VoteInfo]:
        ballots = self.state.ballots.range(proposal_id, start_after=start_after)
        return list(islice(ballots, clamp_limit(limit)))

    # ── Voters ────────────────────────────────────────────────────────

    def get_voter(self, address: str) -> Optional[int]:
        return self.state.ledger.weight_of(address)

    def list_voters(
        self,
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Voter]:
        return list(islice(self.state.ledger.range(start_after), clamp_limit(limit)))

    # ── Threshold ─────────────────────────────────────────────────────

    def get_threshold(self) -> ThresholdResponse:
        return self.state.threshold_response()
