"""
Token Ledger capability consumed by the vesting service.

The vesting service never owns token balances. It talks to a token ledger
through the narrow ``TokenLedger`` protocol:
- balance_of / allowance reads
- transfer_from for custody intake (admin -> custody address)
- transfer for claim payouts (custody address -> stakeholder)

A ledger is bound to the custody identity of the vesting service, so
``transfer`` always moves tokens out of custody. ``InMemoryTokenLedger`` is a
small ERC20-style ledger used for local runs and tests; production
deployments plug in their own ``TokenLedger`` implementation per token
reference through ``LedgerDirectory``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1


class LedgerOperationError(Exception):
    """Raised by a ledger when it rejects an operation."""
    pass


@runtime_checkable
class TokenLedger(Protocol):
    """
    Protocol for the token ledger as seen from the custody identity.

    Thread Safety: implementations MUST make each call atomic.
    All four calls are assumed truthful: a ``True`` transfer result means the
    tokens moved.
    """

    def balance_of(self, identity: str) -> int:
        """Return the token balance of ``identity``."""
        ...

    def allowance(self, owner: str, spender: str) -> int:
        """Return how much ``spender`` may move on behalf of ``owner``."""
        ...

    def transfer_from(self, owner: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` to ``recipient`` using the custody allowance."""
        ...

    def transfer(self, recipient: str, amount: int) -> bool:
        """Move ``amount`` from custody to ``recipient``."""
        ...


@dataclass
class LedgerTransfer:
    """A Transfer or Approval recorded by the in-memory ledger."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class InMemoryTokenLedger:
    """
    ERC20-style in-memory ledger.

    Operations take the acting identity explicitly (the ``msg.sender`` of an
    on-chain token). Failures raise ``LedgerOperationError``.
    """

    name: str
    symbol: str
    owner: str = ""
    total_supply: int = 0

    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)
    events: list[LedgerTransfer] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.owner = self._normalize(self.owner)
        self._lock = threading.RLock()

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self.allowances.get(self._normalize(owner), {}).get(
                self._normalize(spender), 0
            )

    # ==================== State-Changing Functions ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """Mint new tokens (owner only)."""
        with self._lock:
            if self.owner and self._normalize(minter) != self.owner:
                raise LedgerOperationError("Ledger: caller is not owner")
            to_norm = self._normalize(to)
            self._validate_address(to_norm, "recipient")
            self._validate_amount(amount)

            self.total_supply += amount
            self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
            self._emit("Transfer", "", to_norm, amount)
            return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Approve ``spender`` to move up to ``amount`` of ``owner``'s tokens."""
        with self._lock:
            owner_norm = self._normalize(owner)
            spender_norm = self._normalize(spender)
            self._validate_address(spender_norm, "spender")
            self._validate_amount(amount)

            self.allowances.setdefault(owner_norm, {})[spender_norm] = amount
            self._emit("Approval", owner_norm, spender_norm, amount)
            return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Transfer tokens from ``sender`` to ``recipient``."""
        with self._lock:
            sender_norm = self._normalize(sender)
            recipient_norm = self._normalize(recipient)
            self._validate_address(recipient_norm, "recipient")
            self._validate_amount(amount)

            sender_balance = self.balances.get(sender_norm, 0)
            if sender_balance < amount:
                raise LedgerOperationError(
                    f"Ledger: transfer amount exceeds balance ({amount} > {sender_balance})"
                )

            self.balances[sender_norm] = sender_balance - amount
            self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount
            self._emit("Transfer", sender_norm, recipient_norm, amount)

            logger.debug(
                "Ledger transfer",
                extra={
                    "event": "ledger.transfer",
                    "token": self.symbol,
                    "from": sender_norm[:10],
                    "to": recipient_norm[:10],
                    "amount": amount,
                },
            )
            return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """Transfer tokens on behalf of ``from_addr`` using ``spender``'s allowance."""
        with self._lock:
            spender_norm = self._normalize(spender)
            from_norm = self._normalize(from_addr)
            to_norm = self._normalize(to_addr)
            self._validate_address(to_norm, "recipient")
            self._validate_amount(amount)

            current_allowance = self.allowance(from_norm, spender_norm)
            if current_allowance < amount:
                raise LedgerOperationError(
                    f"Ledger: insufficient allowance ({current_allowance} < {amount})"
                )

            from_balance = self.balances.get(from_norm, 0)
            if from_balance < amount:
                raise LedgerOperationError(
                    f"Ledger: transfer amount exceeds balance ({amount} > {from_balance})"
                )

            # Unlimited allowances are never decremented
            if current_allowance != UINT256_MAX:
                self.allowances[from_norm][spender_norm] = current_allowance - amount

            self.balances[from_norm] = from_balance - amount
            self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
            self._emit("Transfer", from_norm, to_norm, amount)
            return True

    def bind(self, operator: str) -> "TokenLedgerClient":
        """Return a ``TokenLedger`` view acting as ``operator``."""
        return TokenLedgerClient(self, operator)

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return (address or "").lower()

    def _validate_address(self, address: str, field_name: str) -> None:
        if not address:
            raise LedgerOperationError(f"Ledger: {field_name} is empty")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise LedgerOperationError("Ledger: amount must be an integer")
        if amount < 0:
            raise LedgerOperationError("Ledger: amount cannot be negative")
        if amount > UINT256_MAX:
            raise LedgerOperationError("Ledger: amount exceeds uint256")

    def _emit(self, event_type: str, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            LedgerTransfer(
                event_type=event_type,
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )


class TokenLedgerClient:
    """
    ``TokenLedger`` adapter over an ``InMemoryTokenLedger``.

    Binds the ledger to the custody identity and reports rejected transfers
    as ``False`` instead of raising.
    """

    def __init__(self, token: InMemoryTokenLedger, operator: str):
        if not operator:
            raise ValueError("Ledger client requires an operator identity")
        self.token = token
        self.operator = operator.lower()

    def balance_of(self, identity: str) -> int:
        return self.token.balance_of(identity)

    def allowance(self, owner: str, spender: str) -> int:
        return self.token.allowance(owner, spender)

    def transfer_from(self, owner: str, recipient: str, amount: int) -> bool:
        try:
            return self.token.transfer_from(self.operator, owner, recipient, amount)
        except LedgerOperationError as exc:
            logger.warning(
                "Ledger rejected transfer_from: %s",
                exc,
                extra={"event": "ledger.transfer_from_rejected", "token": self.token.symbol},
            )
            return False

    def transfer(self, recipient: str, amount: int) -> bool:
        try:
            return self.token.transfer(self.operator, recipient, amount)
        except LedgerOperationError as exc:
            logger.warning(
                "Ledger rejected transfer: %s",
                exc,
                extra={"event": "ledger.transfer_rejected", "token": self.token.symbol},
            )
            return False


class LedgerDirectory:
    """Maps an organization's token reference to the ledger serving it."""

    def __init__(self, ledgers: dict[str, TokenLedger] | None = None):
        self._ledgers: dict[str, TokenLedger] = {}
        self._lock = threading.RLock()
        for reference, ledger in (ledgers or {}).items():
            self.register(reference, ledger)

    def register(self, token_reference: str, ledger: TokenLedger) -> None:
        if not token_reference:
            raise ValueError("Token reference cannot be empty.")
        if not isinstance(ledger, TokenLedger):
            raise TypeError(f"{type(ledger).__name__} does not implement TokenLedger")
        with self._lock:
            self._ledgers[token_reference.lower()] = ledger
        logger.info(
            "Token ledger registered for %s",
            token_reference,
            extra={"event": "ledger.registered", "token_reference": token_reference},
        )

    def get(self, token_reference: str) -> TokenLedger | None:
        with self._lock:
            return self._ledgers.get((token_reference or "").lower())

    def references(self) -> list[str]:
        with self._lock:
            return sorted(self._ledgers)

    def __contains__(self, token_reference: str) -> bool:
        return self.get(token_reference) is not None
