from collections import Counter
from dataclasses import dataclass, field
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
)
from enum import Enum
from typing import Optional

# All balances carry exactly four fractional digits. Anything that cannot be
# represented exactly in this context raises instead of rounding.
MONEY_CONTEXT = Context(prec=28, traps=[InvalidOperation, Overflow, DivisionByZero, Inexact])
FOUR_PLACES = Decimal("0.0001")
ZERO = Decimal("0.0000")

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DisputeState(Enum):
    CLEAN = "clean"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


class WithdrawalDisputePolicy(Enum):
    """
    How dispute, resolve and chargeback treat a withdrawal.

    IGNORE: withdrawals cannot be disputed.
    HOLD: same funds movement as a deposit dispute.
    REVERSE: the disputed amount is held as a provisional credit and a
    chargeback refunds it to available.
    """

    IGNORE = "ignore"
    HOLD = "hold"
    REVERSE = "reverse"


class ProcessingResult(Enum):
    APPLIED = "applied"
    IGNORED = "ignored"


class IgnoreReason(Enum):
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    ACCOUNT_LOCKED = "account_locked"
    UNKNOWN_ACCOUNT = "unknown_account"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    CLIENT_MISMATCH = "client_mismatch"
    INVALID_DISPUTE_STATE = "invalid_dispute_state"
    NOT_DISPUTABLE = "not_disputable"


class RejectionReason(Enum):
    WRONG_COLUMN_COUNT = "wrong_column_count"
    INVALID_ID = "invalid_id"
    ID_OUT_OF_RANGE = "id_out_of_range"
    UNKNOWN_TYPE = "unknown_type"
    INVALID_AMOUNT = "invalid_amount"
    NEGATIVE_AMOUNT = "negative_amount"
    TOO_MANY_DECIMALS = "too_many_decimals"
    MISSING_AMOUNT = "missing_amount"
    UNEXPECTED_AMOUNT = "unexpected_amount"


class SourceError(Exception):
    """The input source cannot be read at all. Aborts the run."""


class LedgerInvariantError(AssertionError):
    """An account reached a state the ledger rules should make impossible."""


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    line_number: int
    detail: str

    def __repr__(self) -> str:
        return f"Rejection({self.reason.value}, line={self.line_number}: {self.detail})"


@dataclass(frozen=True)
class Outcome:
    result: ProcessingResult
    reason: Optional[IgnoreReason] = None

    @property
    def applied(self) -> bool:
        return self.result is ProcessingResult.APPLIED

    @classmethod
    def ignored(cls, reason: IgnoreReason) -> "Outcome":
        return cls(ProcessingResult.IGNORED, reason)


APPLIED = Outcome(ProcessingResult.APPLIED)


@dataclass
class JournalEntry:
    transaction_id: int
    client_id: int
    amount: Decimal
    transaction_type: TransactionType
    dispute_state: DisputeState = DisputeState.CLEAN


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = ZERO
    held: Decimal = ZERO
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return MONEY_CONTEXT.add(self.available, self.held)

    def credit(self, amount: Decimal) -> None:
        self._update(available=self._money(MONEY_CONTEXT.add, self.available, amount))

    def debit(self, amount: Decimal) -> None:
        available = self._money(MONEY_CONTEXT.subtract, self.available, amount)
        if available < 0:
            raise LedgerInvariantError(f"Client {self.client_id}: debit of {amount} would leave available at {available}")
        self._update(available=available)

    def hold(self, amount: Decimal) -> None:
        # available may go below zero when the disputed funds were already withdrawn
        self._update(
            available=self._money(MONEY_CONTEXT.subtract, self.available, amount),
            held=self._money(MONEY_CONTEXT.add, self.held, amount),
        )

    def release_hold(self, amount: Decimal) -> None:
        self._update(
            available=self._money(MONEY_CONTEXT.add, self.available, amount),
            held=self._money(MONEY_CONTEXT.subtract, self.held, amount),
        )

    def remove_held(self, amount: Decimal) -> None:
        self._update(held=self._money(MONEY_CONTEXT.subtract, self.held, amount))

    def add_held(self, amount: Decimal) -> None:
        self._update(held=self._money(MONEY_CONTEXT.add, self.held, amount))

    def _money(self, operation, balance: Decimal, amount: Decimal) -> Decimal:
        try:
            return operation(balance, amount)
        except (Inexact, Overflow) as e:
            raise LedgerInvariantError(
                f"Client {self.client_id}: amount {amount} against balance {balance} exceeds the supported precision"
            ) from e

    def _update(self, available: Optional[Decimal] = None, held: Optional[Decimal] = None) -> None:
        """Check the new balances, then store them. A failed check leaves the account unchanged."""
        available = self.available if available is None else available
        held = self.held if held is None else held
        if held < 0:
            raise LedgerInvariantError(f"Client {self.client_id}: held funds would go negative ({held})")
        self._money(MONEY_CONTEXT.add, available, held)
        self.available = available
        self.held = held


@dataclass
class ProcessingStats:
    """Counters for one run."""

    applied: int = 0
    ignored: int = 0
    rejected: int = 0
    reasons: Counter = field(default_factory=Counter)

    def record_outcome(self, outcome: Outcome) -> None:
        if outcome.applied:
            self.applied += 1
        else:
            self.ignored += 1
            self.reasons[outcome.reason] += 1

    def record_rejection(self, rejection: Rejection) -> None:
        self.rejected += 1
        self.reasons[rejection.reason] += 1
