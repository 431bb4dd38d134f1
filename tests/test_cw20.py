"""
cw20 Token Ledger Test Suite

Coverage:
  - deploy validation and genesis balances
  - transfer, mint (minter only, capped)
  - event log
  - snapshot / restore
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from foundation.constants import CW20_DEFAULT_DECIMALS, MAX_AMOUNT
from foundation.tokens.cw20 import (
    CapExceededError,
    CW20Error,
    CW20MintEvent,
    CW20Token,
    CW20TransferEvent,
    CW20UnauthorizedError,
    InsufficientBalanceError,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

TREASURY = "juno1foundation" + "0" * 28
ALICE = "juno1" + "a" * 38
BOB = "juno1" + "b" * 38
MINTER = "juno1" + "m" * 38


def make_token(balances=None, **kwargs) -> CW20Token:
    """Helper to create a cw20 ledger with 1000 units in the treasury."""
    return CW20Token(
        address="juno1cw20",
        name="Foundation Token",
        symbol="FND",
        initial_balances={TREASURY: 1000} if balances is None else balances,
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════════════
#  DEPLOY
# ══════════════════════════════════════════════════════════════════════


class TestCW20Deploy:

    def test_basic(self):
        token = make_token()
        assert token.decimals == CW20_DEFAULT_DECIMALS
        assert token.total_supply == 1000
        assert token.balance_of(TREASURY) == 1000
        assert token.balance_of(ALICE) == 0

    def test_token_info(self):
        assert make_token().token_info() == {
            "name": "Foundation Token",
            "symbol": "FND",
            "decimals": CW20_DEFAULT_DECIMALS,
            "total_supply": "1000",
        }

    def test_empty_symbol(self):
        with pytest.raises(CW20Error, match="symbol cannot be empty"):
            CW20Token(address="juno1cw20", name="X", symbol="")

    def test_invalid_decimals(self):
        with pytest.raises(CW20Error, match="Decimals"):
            make_token(decimals=19)

    def test_initial_supply_above_cap(self):
        with pytest.raises(CapExceededError):
            make_token(cap=999)

    def test_negative_balance(self):
        with pytest.raises(CW20Error, match="positive"):
            make_token(balances={ALICE: -1})


# ══════════════════════════════════════════════════════════════════════
#  TRANSFER
# ══════════════════════════════════════════════════════════════════════


class TestCW20Transfer:

    def test_transfer(self):
        token = make_token()
        event = token.transfer(TREASURY, ALICE, 250)
        assert isinstance(event, CW20TransferEvent)
        assert token.balance_of(TREASURY) == 750
        assert token.balance_of(ALICE) == 250
        assert token.total_supply == 1000

    def test_insufficient_balance(self):
        token = make_token()
        with pytest.raises(InsufficientBalanceError):
            token.transfer(TREASURY, ALICE, 1001)
        assert token.balance_of(TREASURY) == 1000

    def test_zero_amount(self):
        with pytest.raises(CW20Error, match="positive"):
            make_token().transfer(TREASURY, ALICE, 0)

    def test_amount_above_max(self):
        with pytest.raises(CW20Error, match="exceeds maximum"):
            make_token().transfer(TREASURY, ALICE, MAX_AMOUNT + 1)

    def test_event_log(self):
        token = make_token()
        token.transfer(TREASURY, ALICE, 1)
        token.transfer(ALICE, BOB, 1)
        events = [e.to_dict() for e in token.events]
        assert [(e["from"], e["to"], e["amount"]) for e in events] == [
            (TREASURY, ALICE, "1"),
            (ALICE, BOB, "1"),
        ]


# ══════════════════════════════════════════════════════════════════════
#  MINT
# ══════════════════════════════════════════════════════════════════════


class TestCW20Mint:

    def test_mint(self):
        token = make_token(minter=MINTER)
        event = token.mint(MINTER, ALICE, 500)
        assert isinstance(event, CW20MintEvent)
        assert token.balance_of(ALICE) == 500
        assert token.total_supply == 1500

    def test_non_minter(self):
        token = make_token(minter=MINTER)
        with pytest.raises(CW20UnauthorizedError):
            token.mint(ALICE, ALICE, 1)

    def test_minting_disabled(self):
        with pytest.raises(CW20UnauthorizedError):
            make_token().mint(MINTER, ALICE, 1)

    def test_cap(self):
        token = make_token(minter=MINTER, cap=1200)
        token.mint(MINTER, ALICE, 200)
        with pytest.raises(CapExceededError):
            token.mint(MINTER, ALICE, 1)
        assert token.total_supply == 1200


# ══════════════════════════════════════════════════════════════════════
#  SNAPSHOT
# ══════════════════════════════════════════════════════════════════════


class TestCW20Snapshot:

    def test_restore(self):
        token = make_token(minter=MINTER)
        snapshot = token.take_snapshot()
        token.transfer(TREASURY, ALICE, 100)
        token.mint(MINTER, BOB, 50)

        token.restore_snapshot(snapshot)

        assert token.balance_of(TREASURY) == 1000
        assert token.balance_of(ALICE) == 0
        assert token.balance_of(BOB) == 0
        assert token.total_supply == 1000
        assert token.events == []

    def test_to_dict_omits_empty_balances(self):
        token = make_token()
        token.transfer(TREASURY, ALICE, 1000)
        assert token.to_dict()["balances"] == {ALICE: "1000"}
