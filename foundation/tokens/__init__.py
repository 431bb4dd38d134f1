"""
Foundation Token Ledger (cw20)

Provides:
  - CW20Token        : fungible token ledger that custodies governance funds
  - CW20TransferEvent / CW20MintEvent
"""

from .cw20 import (
    CW20Token,
    CW20TransferEvent,
    CW20MintEvent,
    CW20Error,
    InsufficientBalanceError,
    CW20UnauthorizedError,
    CapExceededError,
)

__all__ = [
    "CW20Token",
    "CW20TransferEvent",
    "CW20MintEvent",
    "CW20Error",
    "InsufficientBalanceError",
    "CW20UnauthorizedError",
    "CapExceededError",
]
