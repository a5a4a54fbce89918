import logging
from typing import Dict, Iterable, Optional, Union

from journal import TransactionJournal
from models import (
    APPLIED,
    ClientAccount,
    DisputeState,
    IgnoreReason,
    JournalEntry,
    Outcome,
    ProcessingStats,
    Rejection,
    Transaction,
    TransactionType,
    WithdrawalDisputePolicy,
)

logger = logging.getLogger(__name__)


class LedgerEngine:
    """
    Applies transactions to client accounts, one at a time, in input order.

    Owns the account map and the transaction journal it is given. Every call to
    apply() either mutates state and returns APPLIED, or leaves state untouched
    and returns an IGNORED outcome carrying the reason.
    """

    def __init__(
        self,
        accounts: Optional[Dict[int, ClientAccount]] = None,
        journal: Optional[TransactionJournal] = None,
        withdrawal_disputes: WithdrawalDisputePolicy = WithdrawalDisputePolicy.IGNORE,
    ):
        self._accounts = accounts if accounts is not None else {}
        self._journal = journal if journal is not None else TransactionJournal()
        self._withdrawal_disputes = withdrawal_disputes

    @property
    def accounts(self) -> Dict[int, ClientAccount]:
        """Accounts in order of first appearance."""
        return self._accounts

    @property
    def journal(self) -> TransactionJournal:
        return self._journal

    def process(self, records: Iterable[Union[Transaction, Rejection]]) -> ProcessingStats:
        """Apply every transaction from a parsed stream. Rejected rows are logged and skipped."""
        stats = ProcessingStats()
        for record in records:
            if isinstance(record, Rejection):
                logger.warning(f"Skipping line {record.line_number}: {record.reason.value}: {record.detail}")
                stats.record_rejection(record)
                continue
            stats.record_outcome(self.apply(record))
        return stats

    def apply(self, transaction: Transaction) -> Outcome:
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                outcome = self._handle_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                outcome = self._handle_withdrawal(transaction)
            case TransactionType.DISPUTE:
                outcome = self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                outcome = self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                outcome = self._handle_chargeback(transaction)
            case _:
                raise ValueError(f"Unhandled transaction type {transaction.transaction_type}")

        if not outcome.applied:
            logger.info(f"Ignored {transaction}: {outcome.reason.value}")
        return outcome

    def _handle_deposit(self, transaction: Transaction) -> Outcome:
        if transaction.transaction_id in self._journal:
            return Outcome.ignored(IgnoreReason.DUPLICATE_TRANSACTION)

        account = self._accounts.get(transaction.client_id)
        if account is not None and account.locked:
            return Outcome.ignored(IgnoreReason.ACCOUNT_LOCKED)

        if account is None:
            account = self._accounts[transaction.client_id] = ClientAccount(client_id=transaction.client_id)
        account.credit(transaction.amount)
        self._record(transaction)
        return APPLIED

    def _handle_withdrawal(self, transaction: Transaction) -> Outcome:
        if transaction.transaction_id in self._journal:
            return Outcome.ignored(IgnoreReason.DUPLICATE_TRANSACTION)

        account = self._accounts.get(transaction.client_id)
        if account is None:
            return Outcome.ignored(IgnoreReason.UNKNOWN_ACCOUNT)
        if account.locked:
            return Outcome.ignored(IgnoreReason.ACCOUNT_LOCKED)
        if account.available < transaction.amount:
            return Outcome.ignored(IgnoreReason.INSUFFICIENT_FUNDS)

        account.debit(transaction.amount)
        self._record(transaction)
        return APPLIED

    def _handle_dispute(self, transaction: Transaction) -> Outcome:
        entry, rejected = self._find_entry(transaction, DisputeState.CLEAN)
        if rejected is not None:
            return rejected

        is_withdrawal = entry.transaction_type == TransactionType.WITHDRAWAL
        if is_withdrawal and self._withdrawal_disputes == WithdrawalDisputePolicy.IGNORE:
            return Outcome.ignored(IgnoreReason.NOT_DISPUTABLE)

        account = self._accounts[entry.client_id]
        if self._reverses(entry):
            account.add_held(entry.amount)
        else:
            account.hold(entry.amount)
        self._journal.set_state(entry.transaction_id, DisputeState.DISPUTED)
        return APPLIED

    def _handle_resolve(self, transaction: Transaction) -> Outcome:
        entry, rejected = self._find_entry(transaction, DisputeState.DISPUTED)
        if rejected is not None:
            return rejected

        account = self._accounts[entry.client_id]
        if self._reverses(entry):
            # the withdrawal stands, drop the provisional credit
            account.remove_held(entry.amount)
        else:
            account.release_hold(entry.amount)
        self._journal.set_state(entry.transaction_id, DisputeState.CLEAN)
        return APPLIED

    def _handle_chargeback(self, transaction: Transaction) -> Outcome:
        entry, rejected = self._find_entry(transaction, DisputeState.DISPUTED)
        if rejected is not None:
            return rejected

        account = self._accounts[entry.client_id]
        if self._reverses(entry):
            # refund the withdrawn funds
            account.release_hold(entry.amount)
        else:
            account.remove_held(entry.amount)
        account.locked = True
        self._journal.set_state(entry.transaction_id, DisputeState.CHARGED_BACK)
        logger.info(f"Client {account.client_id}: account locked by chargeback of tx {entry.transaction_id}")
        return APPLIED

    def _find_entry(self, transaction: Transaction, expected_state: DisputeState):
        """Look up the referenced entry and check it may move out of expected_state."""
        entry = self._journal.get(transaction.transaction_id)

        if entry is None:
            return None, Outcome.ignored(IgnoreReason.UNKNOWN_TRANSACTION)

        if entry.client_id != transaction.client_id:
            logger.warning(
                f"{transaction.transaction_type.value.capitalize()} for tx {transaction.transaction_id}: "
                f"client mismatch (expected {entry.client_id}, got {transaction.client_id})"
            )
            return None, Outcome.ignored(IgnoreReason.CLIENT_MISMATCH)

        if entry.dispute_state != expected_state:
            return None, Outcome.ignored(IgnoreReason.INVALID_DISPUTE_STATE)

        return entry, None

    def _reverses(self, entry: JournalEntry) -> bool:
        return (
            entry.transaction_type == TransactionType.WITHDRAWAL
            and self._withdrawal_disputes == WithdrawalDisputePolicy.REVERSE
        )

    def _record(self, transaction: Transaction) -> None:
        self._journal.record(
            JournalEntry(
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
                amount=transaction.amount,
                transaction_type=transaction.transaction_type,
            )
        )
