"""
Foundation Governance - weighted multisig

Provides:
  - BlockInfo / Duration / Expiration                 (expiration.py)
  - Voter / WeightLedger                              (membership.py)
  - AbsoluteCount / AbsolutePercentage / evaluate     (threshold.py)
  - Vote / Votes / Ballot / BallotStore               (voting.py)
  - Transfer / AddVoter / RemoveVoter / Proposal      (proposals.py)
  - Journal                                           (journal.py)
  - GovernanceConfig / GovernanceState                (state.py)
  - Response / TransferMessage / ActionExecutor       (execution.py)
  - GovernanceEngine                                  (engine.py)
  - GovernanceQueries / ProposalView                  (queries.py)
"""

from .expiration import (
    BlockInfo,
    Duration,
    Expiration,
    InvalidExpirationError,
)
from .journal import Journal
from .membership import (
    InvalidWeightError,
    LastVoterRemovalError,
    Voter,
    VoterNotExistError,
    VoterWeightMismatchError,
    WeightLedger,
)
from .threshold import (
    AbsoluteCount,
    AbsolutePercentage,
    InvalidThresholdError,
    ProposalStatus,
    Threshold,
    ThresholdResponse,
    evaluate,
)
from .voting import (
    AlreadyVotedError,
    Ballot,
    BallotStore,
    InvalidVoteError,
    Vote,
    VoteInfo,
    Votes,
)
from .proposals import (
    Action,
    AddVoter,
    InvalidAmountError,
    InvalidProposalError,
    Proposal,
    ProposalNotFoundError,
    ProposalStore,
    RemoveVoter,
    Transfer,
)
from .state import GovernanceConfig, GovernanceState
from .execution import ActionExecutor, Response, TransferMessage
from .engine import (
    ExpiredError,
    GovernanceEngine,
    NotExpiredError,
    NotOpenError,
    UnauthorizedError,
    WrongCloseStatusError,
    WrongExecuteStatusError,
)
from .queries import GovernanceQueries, ProposalView

__all__ = [
    # Clock
    "BlockInfo",
    "Duration",
    "Expiration",
    "InvalidExpirationError",
    # Membership
    "InvalidWeightError",
    "LastVoterRemovalError",
    "Voter",
    "VoterNotExistError",
    "VoterWeightMismatchError",
    "WeightLedger",
    # Threshold
    "AbsoluteCount",
    "AbsolutePercentage",
    "InvalidThresholdError",
    "ProposalStatus",
    "Threshold",
    "ThresholdResponse",
    "evaluate",
    # Voting
    "AlreadyVotedError",
    "Ballot",
    "BallotStore",
    "InvalidVoteError",
    "Vote",
    "VoteInfo",
    "Votes",
    # Proposals
    "Action",
    "AddVoter",
    "InvalidAmountError",
    "InvalidProposalError",
    "Proposal",
    "ProposalNotFoundError",
    "ProposalStore",
    "RemoveVoter",
    "Transfer",
    # State & execution
    "GovernanceConfig",
    "GovernanceState",
    "Journal",
    "ActionExecutor",
    "Response",
    "TransferMessage",
    # Engine
    "ExpiredError",
    "GovernanceEngine",
    "NotExpiredError",
    "NotOpenError",
    "UnauthorizedError",
    "WrongCloseStatusError",
    "WrongExecuteStatusError",
    # Queries
    "GovernanceQueries",
    "ProposalView",
]
