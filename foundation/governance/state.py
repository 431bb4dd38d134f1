"""
Governance State

Owns every piece of persisted contract state:

    config     threshold rule, max voting period, token ledger address
    ledger     voter → weight table plus running total (WeightLedger)
    proposals  id → Proposal (action embedded), id counter
    ballots    (proposal_id, voter) → Ballot

`atomic()` wraps a call: all writes made inside it either survive together
or are rolled back together when the block raises.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from ..logger import get_logger
from .expiration import Duration
from .journal import Journal
from .membership import WeightLedger
from .proposals import ProposalStore
from .threshold import Threshold, ThresholdResponse, threshold_from_dict
from .voting import BallotStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class GovernanceConfig:
    """Deployment-wide settings, immutable after instantiate."""
    threshold: Threshold
    max_voting_period: Duration
    cw20_address: str
    contract_address: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold.to_dict(),
            "maxVotingPeriod": self.max_voting_period.to_dict(),
            "cw20Address": self.cw20_address,
            "contractAddress": self.contract_address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            threshold=threshold_from_dict(data["threshold"]),
            max_voting_period=Duration.from_dict(data["maxVotingPeriod"]),
            cw20_address=data["cw20Address"],
            contract_address=data["contractAddress"],
        )


class GovernanceState:
    """All contract storage, with journaled rollback for atomic calls."""

    def __init__(
        self,
        config: GovernanceConfig,
        ledger: WeightLedger,
        proposals: Optional[ProposalStore] = None,
        ballots: Optional[BallotStore] = None,
    ):
        self.config = config
        self.ledger = ledger
        self.proposals = proposals or ProposalStore()
        self.ballots = ballots or BallotStore()
        self._journal: Optional[Journal] = None

    def threshold_response(self) -> ThresholdResponse:
        """Current rule against the current total weight."""
        return self.config.threshold.to_response(self.ledger.total_weight)

    # =====================================================================
    #  Atomic calls
    # =====================================================================

    def _attach(self, journal: Optional[Journal]) -> None:
        self._journal = journal
        self.ledger.journal = journal
        self.proposals.journal = journal
        self.ballots.journal = journal

    @contextmanager
    def atomic(self) -> Iterator["GovernanceState"]:
        """
        All-or-nothing write scope for a single call.

        Stores log an undo entry for each record they change. A nested
        scope joins the outer one, which alone decides rollback.
        """
        if self._journal is not None:
            yield self
            return

        journal = Journal()
        self._attach(journal)
        try:
            yield self
        except BaseException:
            journal.rollback()
            logger.debug("Call aborted, governance state restored")
            raise
        finally:
            self._attach(None)

    # =====================================================================
    #  Serialization
    # =====================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "ledger": self.ledger.to_dict(),
            "proposals": self.proposals.to_dict(),
            "ballots": self.ballots.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceState":
        return cls(
            config=GovernanceConfig.from_dict(data["config"]),
            ledger=WeightLedger.from_dict(data["ledger"]),
            proposals=ProposalStore.from_dict(data["proposals"]),
            ballots=BallotStore.from_dict(data.get("ballots", {})),
        )

    def __repr__(self) -> str:
        return (
            f"<GovernanceState voters={len(self.ledger)} "
            f"total={self.ledger.total_weight} proposals={len(self.proposals)}>"
        )
