"""
Contract Host

Runs the governance engine the way a chain would: one call at a time, each
call atomic across the governance state and the cw20 ledger.

Usage:
    host = ContractHost.from_config(load_config())
    resp = host.propose("alice", "Pay bob", "", Transfer("bob", 100))
    host.advance()
    host.vote("carol", int(resp.attribute("proposal_id")), "yes")

Lifecycle of a call:
    1. acquire the host lock
    2. open a journaled governance scope and snapshot cw20 balances
    3. run the engine operation against the current BlockInfo
    4. apply outbound TransferMessages to the cw20 ledger
    5. on any exception undo the journal and restore the balances,
       log at WARNING, re-raise
"""

import threading
import time
from typing import Callable, List, Optional

from .config.loader import FoundationConfig
from .exceptions import FoundationException
from .governance.engine import GovernanceEngine
from .governance.execution import Response, TransferMessage
from .governance.expiration import BlockInfo, Expiration
from .governance.proposals import Action
from .governance.queries import GovernanceQueries, ProposalView
from .governance.threshold import ThresholdResponse
from .governance.membership import Voter
from .governance.voting import VoteInfo
from .logger import LogManager, get_logger
from .tokens.cw20 import CW20MintEvent, CW20Token

logger = get_logger(__name__)


class UnknownContractError(FoundationException):
    """Outbound message addressed to a contract this host does not run."""


class ContractHost:
    """Serializes calls and keeps governance and token state consistent."""

    def __init__(
        self,
        engine: GovernanceEngine,
        token: CW20Token,
        block: Optional[BlockInfo] = None,
    ):
        if engine.state.config.cw20_address != token.address:
            raise UnknownContractError(
                f"Engine expects cw20 at {engine.state.config.cw20_address}, "
                f"got {token.address}"
            )
        self.engine = engine
        self.token = token
        self.queries = GovernanceQueries(engine.state)
        self.block = block or BlockInfo(height=1, time=int(time.time()))
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: FoundationConfig) -> "ContractHost":
        config.validate()
        LogManager().configure(
            log_level=config.logging.level,
            file_output=config.logging.file_output,
            force=True,
        )
        engine = GovernanceEngine.instantiate(**config.instantiate_args())
        token = CW20Token(
            address=config.token.address,
            name=config.token.name,
            symbol=config.token.symbol,
            decimals=config.token.decimals,
            initial_balances=config.token.initial_balances,
            minter=config.token.minter,
            cap=config.token.cap,
        )
        block = BlockInfo(height=1, time=int(time.time()), chain_id=config.contract.chain_id)
        return cls(engine, token, block)

    # ── Clock ─────────────────────────────────────────────────────────

    def advance(self, blocks: int = 1, block_time: int = 5) -> BlockInfo:
        """Move the chain forward by *blocks*."""
        with self._lock:
            self.block = self.block.next(blocks, block_time)
            return self.block

    # ── Call plumbing ─────────────────────────────────────────────────

    def _apply_message(self, message: TransferMessage):
        if message.contract != self.token.address:
            raise UnknownContractError(f"No contract at {message.contract}")
        self.token.transfer(message.sender, message.recipient, message.amount)

    def _call(self, name: str, sender: str, operation: Callable[[BlockInfo], Response]) -> Response:
        with self._lock:
            token_snapshot = self.token.take_snapshot()
            try:
                with self.engine.state.atomic():
                    response = operation(self.block)
                    for message in response.messages:
                        self._apply_message(message)
            except Exception as e:
                self.token.restore_snapshot(token_snapshot)
                logger.warning(f"{name} by {sender} failed: {type(e).__name__}: {e}")
                raise
            return response

    # ── Execute messages ──────────────────────────────────────────────

    def propose(
        self,
        sender: str,
        title: str,
        description: str,
        action: Action,
        latest: Optional[Expiration] = None,
    ) -> Response:
        return self._call(
            "propose", sender,
            lambda block: self.engine.propose(sender, block, title, description, action, latest),
        )

    def vote(self, sender: str, proposal_id: int, vote) -> Response:
        return self._call(
            "vote", sender,
            lambda block: self.engine.vote(sender, block, proposal_id, vote),
        )

    def execute(self, sender: str, proposal_id: int) -> Response:
        return self._call(
            "execute", sender,
            lambda block: self.engine.execute(sender, block, proposal_id),
        )

    def close(self, sender: str, proposal_id: int) -> Response:
        return self._call(
            "close", sender,
            lambda block: self.engine.close(sender, block, proposal_id),
        )

    # ── Token calls ───────────────────────────────────────────────────

    def mint(self, sender: str, recipient: str, amount: int) -> CW20MintEvent:
        """Mint on the hosted token ledger, e.g. to fund the governance custody."""
        with self._lock:
            try:
                return self.token.mint(sender, recipient, amount)
            except Exception as e:
                logger.warning(f"mint by {sender} failed: {type(e).__name__}: {e}")
                raise

    # ── Queries ───────────────────────────────────────────────────────

    def get_proposal(self, proposal_id: int) -> ProposalView:
        with self._lock:
            return self.queries.get_proposal(self.block, proposal_id)

    def list_proposals(self, start_after: Optional[int] = None, limit: Optional[int] = None) -> List[ProposalView]:
        with self._lock:
            return self.queries.list_proposals(self.block, start_after, limit)

    def reverse_proposals(self, start_before: Optional[int] = None, limit: Optional[int] = None) -> List[ProposalView]:
        with self._lock:
            return self.queries.reverse_proposals(self.block, start_before, limit)

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteInfo]:
        with self._lock:
            return self.queries.get_vote(proposal_id, voter)

    def list_votes(self, proposal_id: int, start_after: Optional[str] = None, limit: Optional[int] = None) -> List[VoteInfo]:
        with self._lock:
            return self.queries.list_votes(proposal_id, start_after, limit)

    def get_voter(self, address: str) -> Optional[int]:
        with self._lock:
            return self.queries.get_voter(address)

    def list_voters(self, start_after: Optional[str] = None, limit: Optional[int] = None) -> List[Voter]:
        with self._lock:
            return self.queries.list_voters(start_after, limit)

    def get_threshold(self) -> ThresholdResponse:
        with self._lock:
            return self.queries.get_threshold()

    def __repr__(self) -> str:
        return f"<ContractHost height={self.block.height} {self.engine.state!r} {self.token!r}>"
