"""
Action Execution

Implements:
  - Response: ordered event attributes plus outbound messages of one call
  - TransferMessage: instruction for the token ledger collaborator
  - ActionExecutor: applies a passed proposal's typed action

Transfers are not performed here. They leave as a TransferMessage that the
host applies to the token ledger inside the same atomic call.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple, Type

from ..logger import get_logger
from .proposals import Action, AddVoter, Proposal, RemoveVoter, Transfer
from .state import GovernanceState

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransferMessage:
    """Move `amount` from `sender` custody to `recipient` on `contract`."""
    contract: str
    sender: str
    recipient: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract": self.contract,
            "transfer": {
                "sender": self.sender,
                "recipient": self.recipient,
                "amount": str(self.amount),
            },
        }


@dataclass
class Response:
    """Result of a state-changing call."""
    attributes: List[Tuple[str, str]] = field(default_factory=list)
    messages: List[TransferMessage] = field(default_factory=list)

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append((key, str(value)))
        return self

    def add_attributes(self, attrs: Dict[str, Any]) -> "Response":
        for key, value in attrs.items():
            self.add_attribute(key, value)
        return self

    def add_message(self, message: TransferMessage) -> "Response":
        self.messages.append(message)
        return self

    def attribute(self, key: str) -> str:
        """Last value recorded under *key*."""
        for k, v in reversed(self.attributes):
            if k == key:
                return v
        raise KeyError(key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attributes": [{"key": k, "value": v} for k, v in self.attributes],
            "messages": [m.to_dict() for m in self.messages],
        }


class ActionExecutor:
    """
    Dispatches a typed action against governance state.

    Each handler mutates only through the WeightLedger aggregate or emits a
    message; nothing else is touched.
    """

    def __init__(self, state: GovernanceState):
        self.state = state
        self._handlers: Dict[Type, Callable[[Proposal, Any, Response], None]] = {
            Transfer: self._execute_transfer,
            AddVoter: self._execute_add_voter,
            RemoveVoter: self._execute_remove_voter,
        }

    def execute(self, proposal: Proposal, response: Response):
        action: Action = proposal.action
        handler = self._handlers[type(action)]
        handler(proposal, action, response)

    def _execute_transfer(self, proposal: Proposal, action: Transfer, response: Response):
        config = self.state.config
        response.add_message(TransferMessage(
            contract=config.cw20_address,
            sender=config.contract_address,
            recipient=action.recipient,
            amount=action.amount,
        ))
        response.add_attribute("action", "send")
        response.add_attributes(action.attributes())
        logger.info(
            f"Proposal #{proposal.id}: transfer {action.amount} → {action.recipient}"
        )

    def _require_reachable_threshold(self):
        """The rule must stay satisfiable by the voter set left behind."""
        self.state.config.threshold.validate(self.state.ledger.total_weight)

    def _execute_add_voter(self, proposal: Proposal, action: AddVoter, response: Response):
        self.state.ledger.upsert_voter(action.address, action.weight)
        self._require_reachable_threshold()
        response.add_attribute("action", "add_voter")
        response.add_attributes(action.attributes())

    def _execute_remove_voter(self, proposal: Proposal, action: RemoveVoter, response: Response):
        self.state.ledger.remove_voter(action.address, expected_weight=action.weight)
        self._require_reachable_threshold()
        response.add_attribute("action", "remove_voter")
        response.add_attributes(action.attributes())
