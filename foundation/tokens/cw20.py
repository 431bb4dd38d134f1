"""
cw20 Token Ledger

Implements a Python-native cw20-style fungible token with:
  - transfer / balance_of / total_supply
  - minter-gated mint with optional supply cap
  - an append-only event log
  - snapshot / restore so a host can roll a failed call back

Amounts are integers in base units, bounded by MAX_AMOUNT.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants import CW20_DEFAULT_DECIMALS, CW20_MAX_DECIMALS, MAX_AMOUNT
from ..exceptions import FoundationException, checked_add, checked_sub
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class CW20Error(FoundationException):
    """Base exception for cw20 operations."""


class InsufficientBalanceError(CW20Error):
    """Raised when sender balance is too low."""


class CW20UnauthorizedError(CW20Error):
    """Raised when a non-minter attempts to mint."""


class CapExceededError(CW20Error):
    """Raised when minting would push supply above the cap."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CW20TransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CW20MintEvent:
    """Emitted on every successful mint."""
    token_symbol: str
    minter: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Mint",
            "token": self.token_symbol,
            "minter": self.minter,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  CW20 TOKEN
# ══════════════════════════════════════════════════════════════════════

class CW20Token:
    """
    cw20 Token - fungible token ledger custodying governance funds.

    Mirrors cw20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - mint(sender, recipient, amount)   (minter only)
        - total_supply → int
    """

    def __init__(
        self,
        address: str,
        name: str,
        symbol: str,
        decimals: int = CW20_DEFAULT_DECIMALS,
        initial_balances: Optional[Dict[str, int]] = None,
        *,
        minter: Optional[str] = None,
        cap: Optional[int] = None,
    ):
        """
        Args:
            address: Contract address of this ledger
            name: Human-readable token name
            symbol: Short ticker
            decimals: Fractional digits
            initial_balances: Genesis balances in base units
            minter: Only address allowed to mint (None disables minting)
            cap: Maximum total supply (None means MAX_AMOUNT)
        """
        if not address:
            raise CW20Error("Token address cannot be empty")
        if not name:
            raise CW20Error("Token name cannot be empty")
        if not symbol:
            raise CW20Error("Token symbol cannot be empty")
        if decimals < 0 or decimals > CW20_MAX_DECIMALS:
            raise CW20Error(f"Decimals must be 0-{CW20_MAX_DECIMALS}, got {decimals}")
        if cap is not None and (cap < 1 or cap > MAX_AMOUNT):
            raise CW20Error(f"Cap {cap} out of range 1..{MAX_AMOUNT}")

        self.address = address
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.minter = minter
        self.cap = cap

        self._balances: Dict[str, int] = {}
        self._total_supply: int = 0
        self._events: List[Any] = []

        for holder, amount in (initial_balances or {}).items():
            self._validate_amount(amount, allow_zero=True)
            self._balances[holder] = checked_add(
                self._balances.get(holder, 0), amount, MAX_AMOUNT, "balance"
            )
            self._total_supply = checked_add(
                self._total_supply, amount, MAX_AMOUNT, "total supply"
            )
        if self.cap is not None and self._total_supply > self.cap:
            raise CapExceededError(
                f"Initial supply {self._total_supply} exceeds cap {self.cap}"
            )

        logger.info(f"cw20 deployed: {symbol} ({name}) at {address}, supply={self._total_supply}")

    @staticmethod
    def _validate_amount(amount: int, allow_zero: bool = False):
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise CW20Error(f"Amount must be an integer, got {amount!r}")
        if amount < 0 or (amount == 0 and not allow_zero):
            raise CW20Error("Amount must be positive")
        if amount > MAX_AMOUNT:
            raise CW20Error(f"Amount {amount} exceeds maximum {MAX_AMOUNT}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def token_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": str(self._total_supply),
        }

    # ── Core operations ───────────────────────────────────────────────

    def transfer(self, sender: str, recipient: str, amount: int) -> CW20TransferEvent:
        """Move *amount* from *sender* to *recipient*."""
        self._validate_amount(amount)
        if not recipient:
            raise CW20Error("Recipient address cannot be empty")

        bal = self.balance_of(sender)
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        self._balances[sender] = checked_sub(bal, amount, "balance")
        self._balances[recipient] = checked_add(
            self._balances.get(recipient, 0), amount, MAX_AMOUNT, "balance"
        )

        event = CW20TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    def mint(self, sender: str, recipient: str, amount: int) -> CW20MintEvent:
        """Create *amount* new tokens for *recipient*. Minter only."""
        if self.minter is None or sender != self.minter:
            raise CW20UnauthorizedError(f"{sender} is not the {self.symbol} minter")
        self._validate_amount(amount)

        new_supply = checked_add(self._total_supply, amount, MAX_AMOUNT, "total supply")
        if self.cap is not None and new_supply > self.cap:
            raise CapExceededError(
                f"Minting {amount} would exceed cap {self.cap} (supply={self._total_supply})"
            )

        self._balances[recipient] = checked_add(
            self._balances.get(recipient, 0), amount, MAX_AMOUNT, "balance"
        )
        self._total_supply = new_supply

        event = CW20MintEvent(
            token_symbol=self.symbol,
            minter=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.info(f"Mint: {amount} {self.symbol} → {recipient} (supply={new_supply})")
        return event

    # ── Snapshot / restore ────────────────────────────────────────────

    def take_snapshot(self) -> Dict[str, Any]:
        return {
            "balances": dict(self._balances),
            "total_supply": self._total_supply,
            "events": len(self._events),
        }

    def restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._balances = dict(snapshot["balances"])
        self._total_supply = snapshot["total_supply"]
        del self._events[snapshot["events"]:]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            **self.token_info(),
            "minter": self.minter,
            "cap": str(self.cap) if self.cap is not None else None,
            "balances": {addr: str(bal) for addr, bal in sorted(self._balances.items()) if bal},
        }

    def __repr__(self) -> str:
        return f"<CW20Token {self.symbol} at {self.address} supply={self._total_supply}>"
