from typing import Dict, Optional

from models import DisputeState, JournalEntry

_ALLOWED_TRANSITIONS = {
    (DisputeState.CLEAN, DisputeState.DISPUTED),
    (DisputeState.DISPUTED, DisputeState.CLEAN),
    (DisputeState.DISPUTED, DisputeState.CHARGED_BACK),
}


class DuplicateTransactionError(ValueError):
    pass


class TransactionJournal:
    """
    Append-only store of accepted deposits and withdrawals, keyed by transaction id.
    Disputes look up the original amount and owner here.
    Entries are never removed; only their dispute state changes.
    """

    def __init__(self):
        self._entries: Dict[int, JournalEntry] = {}

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: JournalEntry) -> None:
        """Store an accepted transaction. A reused transaction id raises DuplicateTransactionError."""
        if entry.transaction_id in self._entries:
            raise DuplicateTransactionError(f"Transaction {entry.transaction_id} is already in the journal")
        self._entries[entry.transaction_id] = entry

    def get(self, transaction_id: int) -> Optional[JournalEntry]:
        """Retrieve stored transaction by ID."""
        return self._entries.get(transaction_id)

    def set_state(self, transaction_id: int, new_state: DisputeState) -> None:
        """
        Move an entry to a new dispute state.
        Caller must have checked the current state; an illegal transition is a bug.
        """
        entry = self._entries[transaction_id]
        assert (entry.dispute_state, new_state) in _ALLOWED_TRANSITIONS, (
            f"Transaction {transaction_id}: illegal transition {entry.dispute_state.value} -> {new_state.value}"
        )
        entry.dispute_state = new_state
