"""
Governance Engine

Orchestrates the proposal lifecycle:

    instantiate  voter set, threshold rule, max voting period, token ledger
    propose      member opens a proposal; proposer's yes ballot is implicit
    vote         member casts one ballot per proposal
    execute      anyone triggers a passed proposal, exactly once
    close        anyone rejects an expired proposal that never passed

Every call runs inside `GovernanceState.atomic()`: an exception anywhere
leaves ledger, proposals and ballots exactly as they were.
"""

from typing import Iterable, Optional

from ..exceptions import AuthorizationError, LifecycleError
from ..logger import get_logger
from .execution import ActionExecutor, Response
from .expiration import BlockInfo, Duration, Expiration, InvalidExpirationError
from .membership import Voter, WeightLedger
from .proposals import Action, InvalidProposalError, Proposal
from .state import GovernanceConfig, GovernanceState
from .threshold import ProposalStatus, Threshold, evaluate
from .voting import Ballot, Vote, Votes

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class UnauthorizedError(AuthorizationError):
    """Caller is not a voter (now, or when the proposal was created)."""


class NotOpenError(LifecycleError):
    """Proposal no longer accepts ballots."""


class ExpiredError(LifecycleError):
    """Proposal voting period has ended."""


class WrongExecuteStatusError(LifecycleError):
    """Proposal must have passed and not yet been executed."""


class WrongCloseStatusError(LifecycleError):
    """Only open, unpassed proposals can be closed."""


class NotExpiredError(LifecycleError):
    """Proposal voting period has not ended yet."""


# ══════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════

class GovernanceEngine:
    """
    Weighted multisig governance.

    The only component that writes to the weight ledger, the proposal
    store and the ballot store, always together and always atomically.
    """

    def __init__(self, state: GovernanceState):
        self.state = state
        self.executor = ActionExecutor(state)

    @classmethod
    def instantiate(
        cls,
        voters: Iterable[Voter],
        threshold: Threshold,
        max_voting_period: Duration,
        cw20_address: str,
        contract_address: str = "foundation",
    ) -> "GovernanceEngine":
        """
        Create a fresh deployment.

        Raises:
            ValidationError:       empty / duplicate / zero-weight voter set
            InvalidThresholdError: rule that can never be met
        """
        ledger = WeightLedger.genesis(voters)
        threshold.validate(ledger.total_weight)
        if not cw20_address:
            raise InvalidProposalError("Token ledger address is required")

        config = GovernanceConfig(
            threshold=threshold,
            max_voting_period=max_voting_period,
            cw20_address=cw20_address,
            contract_address=contract_address,
        )
        engine = cls(GovernanceState(config, ledger))
        logger.info(
            f"Instantiated {contract_address}: {len(ledger)} voters, "
            f"total weight {ledger.total_weight}, threshold {threshold}, "
            f"max voting period {max_voting_period}"
        )
        return engine

    # ── Helpers ───────────────────────────────────────────────────────

    def _require_voter(self, sender: str) -> int:
        weight = self.state.ledger.weight_of(sender)
        if weight is None:
            raise UnauthorizedError(f"{sender} is not a voter")
        return weight

    def _resolve_expiration(
        self,
        block: BlockInfo,
        latest: Optional[Expiration],
    ) -> Expiration:
        """Default to, and clamp at, the max voting period."""
        max_expires = self.state.config.max_voting_period.after(block)
        if latest is None:
            return max_expires
        comparison = latest.compare(max_expires)
        if comparison is None:
            raise InvalidExpirationError(
                f"Expiration {latest} is not comparable with max voting period "
                f"expiration {max_expires}"
            )
        if comparison > 0:
            return max_expires
        if latest.is_expired(block):
            raise InvalidExpirationError(f"Expiration {latest} has already passed")
        return latest

    # ── Propose ───────────────────────────────────────────────────────

    def propose(
        self,
        sender: str,
        block: BlockInfo,
        title: str,
        description: str,
        action: Action,
        latest: Optional[Expiration] = None,
    ) -> Response:
        """
        Open a proposal for *action*; the proposer votes yes implicitly.

        Raises:
            UnauthorizedError:      sender is not a voter
            InvalidExpirationError: latest is in the wrong unit or passed
            InvalidProposalError:   empty title or malformed action
        """
        with self.state.atomic() as state:
            weight = self._require_voter(sender)
            expires = self._resolve_expiration(block, latest)
            action.validate()

            proposal_id = state.proposals.next_id()
            proposal = Proposal(
                id=proposal_id,
                title=title,
                description=description,
                proposer=sender,
                start_height=block.height,
                membership_revision=state.ledger.revision,
                expires=expires,
                threshold=state.config.threshold,
                total_weight=state.ledger.total_weight,
                action=action,
                votes=Votes.initial_yes(weight),
            )
            proposal.update_status(block)
            state.proposals.save(proposal)
            state.ballots.save(proposal_id, sender, Ballot(vote=Vote.YES, weight=weight))

        logger.info(
            f"Proposal #{proposal_id} [{action.KIND}] by {sender}: "
            f"'{title}' expires {expires} status={proposal.status.name}"
        )
        return (
            Response()
            .add_attribute("action", "propose")
            .add_attribute("sender", sender)
            .add_attribute("proposal_id", proposal_id)
            .add_attribute("status", proposal.status.label)
            .add_attribute("type", action.KIND)
            .add_attributes(action.attributes())
        )

    # ── Vote ──────────────────────────────────────────────────────────

    def vote(
        self,
        sender: str,
        block: BlockInfo,
        proposal_id: int,
        vote,
    ) -> Response:
        """
        Cast a ballot.

        The ballot carries the sender's current weight. Only members who
        already held weight when the proposal was created may vote on it.

        Raises:
            UnauthorizedError: sender is not a voter, or was not one at creation
            NotOpenError:      proposal already passed, rejected or executed
            ExpiredError:      voting period is over
            AlreadyVotedError: sender already has a ballot
        """
        choice = Vote.parse(vote)
        with self.state.atomic() as state:
            weight = self._require_voter(sender)
            proposal = state.proposals.load(proposal_id)

            if state.ledger.weight_at(sender, proposal.membership_revision) is None:
                raise UnauthorizedError(
                    f"{sender} was not a voter when proposal #{proposal_id} was created"
                )

            if proposal.current_status(block) != ProposalStatus.OPEN:
                still_open = evaluate(
                    proposal.threshold, proposal.total_weight, proposal.votes, expired=False,
                )
                if proposal.status == ProposalStatus.OPEN and still_open == ProposalStatus.OPEN:
                    raise ExpiredError(f"Proposal #{proposal_id} expired at {proposal.expires}")
                raise NotOpenError(
                    f"Proposal #{proposal_id} is not open "
                    f"(status={proposal.current_status(block).name})"
                )

            state.ballots.save(proposal_id, sender, Ballot(vote=choice, weight=weight))
            proposal.votes.add_vote(choice, weight)
            proposal.update_status(block)

        logger.info(
            f"Vote: {sender} → {choice.name} on proposal #{proposal_id} "
            f"(weight={weight}, status={proposal.status.name})"
        )
        return (
            Response()
            .add_attribute("action", "vote")
            .add_attribute("sender", sender)
            .add_attribute("proposal_id", proposal_id)
            .add_attribute("status", proposal.status.label)
        )

    # ── Execute ───────────────────────────────────────────────────────

    def execute(self, sender: str, block: BlockInfo, proposal_id: int) -> Response:
        """
        Dispatch a passed proposal's action. Anyone may call.

        A proposal that reached its threshold before expiring stays
        executable after expiry. The status flips to Executed before the
        action runs; if the action fails the flip is rolled back with it.

        Raises:
            WrongExecuteStatusError: proposal did not pass or already executed
        """
        with self.state.atomic() as state:
            proposal = state.proposals.load(proposal_id)
            if proposal.update_status(block) != ProposalStatus.PASSED:
                raise WrongExecuteStatusError(
                    f"Proposal #{proposal_id} must have passed and not yet been executed "
                    f"(status={proposal.status.name})"
                )

            proposal.transition_to(ProposalStatus.EXECUTED)

            response = (
                Response()
                .add_attribute("action", "execute")
                .add_attribute("sender", sender)
                .add_attribute("proposal_id", proposal_id)
            )
            self.executor.execute(proposal, response)

        logger.info(f"Proposal #{proposal_id} EXECUTED by {sender} ({proposal.action.KIND})")
        return response

    # ── Close ─────────────────────────────────────────────────────────

    def close(self, sender: str, block: BlockInfo, proposal_id: int) -> Response:
        """
        Reject an expired proposal that never passed. Anyone may call.

        Raises:
            WrongCloseStatusError: proposal is passed, executed or rejected
            NotExpiredError:       voting period still running
        """
        with self.state.atomic() as state:
            proposal = state.proposals.load(proposal_id)
            if proposal.status in (
                ProposalStatus.EXECUTED,
                ProposalStatus.REJECTED,
                ProposalStatus.PASSED,
            ):
                raise WrongCloseStatusError(
                    f"Cannot close proposal #{proposal_id} (status={proposal.status.name})"
                )
            if proposal.current_status(block) == ProposalStatus.PASSED:
                raise WrongCloseStatusError(
                    f"Cannot close proposal #{proposal_id}: it passed"
                )
            if not proposal.is_expired(block):
                raise NotExpiredError(
                    f"Proposal #{proposal_id} expires at {proposal.expires}"
                )

            proposal.transition_to(ProposalStatus.REJECTED)

        logger.info(f"Proposal #{proposal_id} closed by {sender} → REJECTED")
        return (
            Response()
            .add_attribute("action", "close")
            .add_attribute("sender", sender)
            .add_attribute("proposal_id", proposal_id)
        )

    def __repr__(self) -> str:
        return f"<GovernanceEngine {self.state!r}>"
