"""
Contract Host Test Suite

Coverage:
  - end-to-end propose → vote → execute moving cw20 funds
  - rollback of governance state when the token transfer fails
  - clock advance and expiry
  - construction from FoundationConfig
"""

import os
import sys
import threading

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from foundation.config.loader import FoundationConfig
from foundation.governance import (
    AbsoluteCount,
    AddVoter,
    BlockInfo,
    Duration,
    ExpiredError,
    GovernanceEngine,
    ProposalStatus,
    Transfer,
    UnauthorizedError,
    Vote,
    Voter,
)
from foundation.host import ContractHost, UnknownContractError
from foundation.tokens.cw20 import CW20Token, CW20UnauthorizedError, InsufficientBalanceError


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "juno1" + "a" * 38
BOB = "juno1" + "b" * 38
CAROL = "juno1" + "c" * 38
DAVE = "juno1" + "d" * 38
CONTRACT = "juno1foundation"
CW20 = "juno1cw20"


def make_host(treasury=1000) -> ContractHost:
    """Helper: 3 voters, count threshold 2, treasury funded on the cw20 ledger."""
    engine = GovernanceEngine.instantiate(
        voters=[Voter(ALICE, 1), Voter(BOB, 1), Voter(CAROL, 1)],
        threshold=AbsoluteCount(2),
        max_voting_period=Duration.height(10),
        cw20_address=CW20,
        contract_address=CONTRACT,
    )
    token = CW20Token(
        address=CW20,
        name="Foundation Token",
        symbol="FND",
        initial_balances={CONTRACT: treasury},
    )
    return ContractHost(engine, token, BlockInfo(height=1, time=1_700_000_000))


def pass_transfer(host, amount) -> int:
    resp = host.propose(ALICE, "Pay dave", "", Transfer(DAVE, amount))
    pid = int(resp.attribute("proposal_id"))
    host.vote(BOB, pid, "yes")
    return pid


# ══════════════════════════════════════════════════════════════════════
#  END TO END
# ══════════════════════════════════════════════════════════════════════


class TestHostLifecycle:

    def test_transfer_moves_funds(self):
        host = make_host()
        pid = pass_transfer(host, 300)
        resp = host.execute(CAROL, pid)

        assert len(resp.messages) == 1
        assert host.token.balance_of(CONTRACT) == 700
        assert host.token.balance_of(DAVE) == 300
        assert host.get_proposal(pid).status == ProposalStatus.EXECUTED

    def test_failed_transfer_rolls_back_everything(self):
        host = make_host(treasury=100)
        pid = pass_transfer(host, 500)

        with pytest.raises(InsufficientBalanceError):
            host.execute(CAROL, pid)

        assert host.get_proposal(pid).status == ProposalStatus.PASSED
        assert host.engine.state.proposals.load(pid).status == ProposalStatus.PASSED
        assert host.token.balance_of(CONTRACT) == 100
        assert host.token.balance_of(DAVE) == 0
        assert host.token.events == []

    def test_retry_after_funding(self):
        host = make_host(treasury=100)
        pid = pass_transfer(host, 150)
        with pytest.raises(InsufficientBalanceError):
            host.execute(CAROL, pid)

        host.token.minter = ALICE
        host.mint(ALICE, CONTRACT, 100)
        host.execute(CAROL, pid)
        assert host.token.balance_of(DAVE) == 150
        assert host.token.balance_of(CONTRACT) == 50

    def test_mint_through_host(self):
        host = make_host(treasury=0)
        with pytest.raises(CW20UnauthorizedError):
            host.mint(ALICE, CONTRACT, 10)
        host.token.minter = ALICE
        event = host.mint(ALICE, CONTRACT, 10)
        assert event.amount == 10
        assert host.token.balance_of(CONTRACT) == 10

    def test_membership_change_through_host(self):
        host = make_host()
        resp = host.propose(ALICE, "Add dave", "", AddVoter(DAVE, 2))
        pid = int(resp.attribute("proposal_id"))
        host.vote(CAROL, pid, Vote.YES)
        host.execute(ALICE, pid)
        assert host.get_voter(DAVE) == 2
        assert host.get_threshold().total_weight == 5

    def test_failed_call_propagates(self):
        host = make_host()
        with pytest.raises(UnauthorizedError):
            host.propose(DAVE, "Pay me", "", Transfer(DAVE, 1))
        assert host.list_proposals() == []


class TestHostClock:

    def test_advance(self):
        host = make_host()
        block = host.advance(3)
        assert block.height == 4
        assert block.time == 1_700_000_000 + 15

    def test_expiry_through_clock(self):
        host = make_host()
        resp = host.propose(ALICE, "Pay dave", "", Transfer(DAVE, 1))
        pid = int(resp.attribute("proposal_id"))
        host.advance(10)
        assert host.get_proposal(pid).status == ProposalStatus.REJECTED
        with pytest.raises(ExpiredError):
            host.vote(BOB, pid, Vote.YES)
        host.close(BOB, pid)
        assert host.engine.state.proposals.load(pid).status == ProposalStatus.REJECTED

    def test_serialized_calls(self):
        host = make_host()
        errors = []

        def worker(i):
            try:
                host.propose(ALICE, f"Proposal {i}", "", Transfer(DAVE, 1))
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        ids = [p.id for p in host.list_proposals(limit=30)]
        assert ids == list(range(1, 21))


# ══════════════════════════════════════════════════════════════════════
#  WIRING
# ══════════════════════════════════════════════════════════════════════


class TestHostWiring:

    def test_token_address_mismatch(self):
        engine = GovernanceEngine.instantiate(
            [Voter(ALICE, 1)], AbsoluteCount(1), Duration.height(5), CW20,
        )
        token = CW20Token(address="juno1other", name="Other", symbol="OTH")
        with pytest.raises(UnknownContractError):
            ContractHost(engine, token)

    def test_from_config(self):
        config = FoundationConfig.from_dict({
            "contract": {"address": CONTRACT},
            "threshold": {"kind": "absolute_count", "weight": 2},
            "voting": {"unit": "height", "max_voting_period": 5},
            "voters": [
                {"addr": ALICE, "weight": 1},
                {"addr": BOB, "weight": 1},
                {"addr": CAROL, "weight": 1},
            ],
            "token": {"address": CW20, "initial_balances": {CONTRACT: 50}},
        })
        host = ContractHost.from_config(config)
        pid = pass_transfer(host, 20)
        host.execute(ALICE, pid)
        assert host.token.balance_of(DAVE) == 20
        assert host.engine.state.config.max_voting_period == Duration.height(5)
