import sys
import os
from decimal import Decimal, Inexact

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models import (
    APPLIED,
    MONEY_CONTEXT,
    ClientAccount,
    IgnoreReason,
    LedgerInvariantError,
    Outcome,
    ProcessingResult,
    ProcessingStats,
    Rejection,
    RejectionReason,
    Transaction,
    TransactionType,
)


class TestTransaction:
    def test_create_deposit(self):
        transaction = Transaction(
            transaction_type=TransactionType.DEPOSIT,
            client_id=1,
            transaction_id=1,
            amount=Decimal("100.0"),
        )
        assert transaction.transaction_type == TransactionType.DEPOSIT
        assert transaction.client_id == 1
        assert transaction.transaction_id == 1
        assert transaction.amount == Decimal("100.0")

    def test_create_dispute_no_amount(self):
        transaction = Transaction(
            transaction_type=TransactionType.DISPUTE,
            client_id=1,
            transaction_id=1,
        )
        assert transaction.amount is None

    def test_only_deposit_and_withdrawal_carry_amount(self):
        carrying = {t for t in TransactionType if t.carries_amount}
        assert carrying == {TransactionType.DEPOSIT, TransactionType.WITHDRAWAL}


class TestClientAccount:
    def test_default_values(self):
        account = ClientAccount(client_id=1)
        assert account.available == Decimal("0")
        assert account.held == Decimal("0")
        assert account.locked is False

    def test_total_property(self):
        account = ClientAccount(
            client_id=1,
            available=Decimal("100"),
            held=Decimal("50"),
        )
        assert account.total == Decimal("150")

    def test_hold_and_release(self):
        account = ClientAccount(client_id=1, available=Decimal("100"))
        account.hold(Decimal("40"))
        assert account.available == Decimal("60")
        assert account.held == Decimal("40")
        assert account.total == Decimal("100")

        account.release_hold(Decimal("40"))
        assert account.available == Decimal("100")
        assert account.held == Decimal("0")

    def test_hold_may_take_available_below_zero(self):
        account = ClientAccount(client_id=1, available=Decimal("10"))
        account.hold(Decimal("30"))
        assert account.available == Decimal("-20")
        assert account.total == Decimal("10")

    def test_debit_below_zero_is_invariant_violation(self):
        account = ClientAccount(client_id=1, available=Decimal("10"))
        with pytest.raises(LedgerInvariantError):
            account.debit(Decimal("10.0001"))

    def test_negative_held_is_invariant_violation(self):
        account = ClientAccount(client_id=1, held=Decimal("5"))
        with pytest.raises(LedgerInvariantError):
            account.remove_held(Decimal("6"))

    def test_inexact_arithmetic_raises(self):
        with pytest.raises(Inexact):
            MONEY_CONTEXT.add(Decimal("9" * 28), Decimal("0.0001"))


    def test_credit_beyond_precision_leaves_account_unchanged(self):
        account = ClientAccount(client_id=1, available=Decimal("9" * 24 + ".9999"))
        with pytest.raises(LedgerInvariantError):
            account.credit(Decimal("1"))
        assert account.available == Decimal("9" * 24 + ".9999")
        assert account.held == Decimal("0")


class TestOutcome:
    def test_applied(self):
        assert APPLIED.applied
        assert APPLIED.result == ProcessingResult.APPLIED
        assert APPLIED.reason is None

    def test_ignored_carries_reason(self):
        outcome = Outcome.ignored(IgnoreReason.INSUFFICIENT_FUNDS)
        assert not outcome.applied
        assert outcome.result == ProcessingResult.IGNORED
        assert outcome.reason == IgnoreReason.INSUFFICIENT_FUNDS


class TestProcessingStats:
    def test_counts(self):
        stats = ProcessingStats()
        stats.record_outcome(APPLIED)
        stats.record_outcome(Outcome.ignored(IgnoreReason.ACCOUNT_LOCKED))
        stats.record_outcome(Outcome.ignored(IgnoreReason.ACCOUNT_LOCKED))
        stats.record_rejection(Rejection(RejectionReason.INVALID_AMOUNT, 3, "amount 'x' is not a number"))

        assert stats.applied == 1
        assert stats.ignored == 2
        assert stats.rejected == 1
        assert stats.reasons[IgnoreReason.ACCOUNT_LOCKED] == 2
        assert stats.reasons[RejectionReason.INVALID_AMOUNT] == 1
