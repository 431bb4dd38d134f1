"""
Governance Query Test Suite

Coverage:
  - proposal views carry derived status without writing it back
  - ascending / descending pagination with exclusive cursors
  - limit defaults and clamping
  - ballot, voter and threshold queries
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from foundation.constants import DEFAULT_LIMIT, MAX_LIMIT
from foundation.governance import (
    AbsoluteCount,
    AbsolutePercentage,
    AddVoter,
    BlockInfo,
    Duration,
    GovernanceEngine,
    GovernanceQueries,
    ProposalNotFoundError,
    ProposalStatus,
    Transfer,
    Vote,
    Voter,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "juno1" + "a" * 38
BOB = "juno1" + "b" * 38
CAROL = "juno1" + "c" * 38
DAVE = "juno1" + "d" * 38
CW20 = "juno1cw20" + "0" * 34

GENESIS = BlockInfo(height=500, time=1_600_000_000)


def make_engine(threshold=None) -> GovernanceEngine:
    return GovernanceEngine.instantiate(
        voters=[Voter(ALICE, 1), Voter(BOB, 2), Voter(CAROL, 3)],
        threshold=threshold or AbsoluteCount(4),
        max_voting_period=Duration.height(10),
        cw20_address=CW20,
    )


def make_queries(proposals=0, threshold=None):
    """Helper: engine with *proposals* open transfer proposals by ALICE."""
    engine = make_engine(threshold)
    for i in range(proposals):
        engine.propose(ALICE, GENESIS, f"Grant {i + 1}", "", Transfer(DAVE, i + 1))
    return engine, GovernanceQueries(engine.state)


# ══════════════════════════════════════════════════════════════════════
#  PROPOSALS
# ══════════════════════════════════════════════════════════════════════


class TestProposalQueries:

    def test_get_proposal(self):
        engine, queries = make_queries(1)
        view = queries.get_proposal(GENESIS, 1)
        assert view.id == 1
        assert view.title == "Grant 1"
        assert view.proposer == ALICE
        assert view.action == Transfer(DAVE, 1)
        assert view.status == ProposalStatus.OPEN
        assert view.threshold.weight == 4
        assert view.threshold.total_weight == 6
        assert view.deposit is None

    def test_get_missing(self):
        _, queries = make_queries(0)
        with pytest.raises(ProposalNotFoundError):
            queries.get_proposal(GENESIS, 1)

    def test_derived_status_not_written_back(self):
        engine, queries = make_queries(1)
        view = queries.get_proposal(GENESIS.next(10), 1)
        assert view.status == ProposalStatus.REJECTED
        assert engine.state.proposals.load(1).status == ProposalStatus.OPEN

    def test_list_proposals_page(self):
        _, queries = make_queries(6)
        page = queries.list_proposals(GENESIS, start_after=3, limit=2)
        assert [p.id for p in page] == [4, 5]

    def test_reverse_proposals_page(self):
        _, queries = make_queries(6)
        page = queries.reverse_proposals(GENESIS, start_before=4)
        assert [p.id for p in page] == [3, 2, 1]

    def test_reverse_from_top(self):
        _, queries = make_queries(3)
        assert [p.id for p in queries.reverse_proposals(GENESIS)] == [3, 2, 1]

    def test_default_limit(self):
        _, queries = make_queries(DEFAULT_LIMIT + 5)
        assert len(queries.list_proposals(GENESIS)) == DEFAULT_LIMIT

    def test_limit_clamped(self):
        _, queries = make_queries(MAX_LIMIT + 5)
        assert len(queries.list_proposals(GENESIS, limit=1000)) == MAX_LIMIT
        assert len(queries.reverse_proposals(GENESIS, limit=1000)) == MAX_LIMIT

    def test_view_to_dict(self):
        _, queries = make_queries(1)
        data = queries.get_proposal(GENESIS, 1).to_dict()
        assert data["status"] == "open"
        assert data["msgs"] == [{"send": {"to": DAVE, "amount": "1"}}]
        assert data["expires"] == {"at_height": GENESIS.height + 10}


# ══════════════════════════════════════════════════════════════════════
#  BALLOTS
# ══════════════════════════════════════════════════════════════════════


class TestVoteQueries:

    def test_get_vote(self):
        engine, queries = make_queries(1)
        engine.vote(CAROL, GENESIS, 1, Vote.NO)
        info = queries.get_vote(1, CAROL)
        assert info.vote == Vote.NO
        assert info.weight == 3
        assert queries.get_vote(1, BOB) is None

    def test_list_votes_ordered_by_voter(self):
        engine, queries = make_queries(2)
        engine.vote(BOB, GENESIS, 1, Vote.ABSTAIN)
        engine.vote(CAROL, GENESIS, 1, Vote.NO)
        engine.vote(BOB, GENESIS, 2, Vote.YES)
        assert [v.voter for v in queries.list_votes(1)] == [ALICE, BOB, CAROL]
        assert [v.voter for v in queries.list_votes(1, start_after=ALICE, limit=1)] == [BOB]
        assert [v.voter for v in queries.list_votes(2)] == [ALICE, BOB]


# ══════════════════════════════════════════════════════════════════════
#  VOTERS & THRESHOLD
# ══════════════════════════════════════════════════════════════════════


class TestVoterQueries:

    def test_get_voter(self):
        _, queries = make_queries()
        assert queries.get_voter(BOB) == 2
        assert queries.get_voter(DAVE) is None

    def test_list_voters(self):
        _, queries = make_queries()
        assert [v.to_dict() for v in queries.list_voters()] == [
            {"addr": ALICE, "weight": 1},
            {"addr": BOB, "weight": 2},
            {"addr": CAROL, "weight": 3},
        ]
        assert [v.address for v in queries.list_voters(start_after=ALICE, limit=1)] == [BOB]


class TestThresholdQuery:

    def test_count(self):
        _, queries = make_queries()
        resp = queries.get_threshold()
        assert resp.to_dict() == {"absolute_count": {"weight": 4, "total_weight": 6}}

    def test_percentage(self):
        _, queries = make_queries(threshold=AbsolutePercentage(Decimal("0.5")))
        resp = queries.get_threshold()
        assert resp.percentage == Decimal("0.5")
        assert resp.total_weight == 6

    def test_tracks_current_total(self):
        engine, queries = make_queries()
        engine.propose(CAROL, GENESIS, "Add dave", "", AddVoter(DAVE, 2))
        engine.vote(BOB, GENESIS, 1, Vote.YES)
        engine.execute(ALICE, GENESIS, 1)
        assert queries.get_threshold().total_weight == 8
        assert queries.get_proposal(GENESIS, 1).threshold.total_weight == 6
