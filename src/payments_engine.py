import csv
import logging
from typing import Dict, Optional, TextIO

from ledger import LedgerEngine
from models import ClientAccount, ProcessingStats, SourceError, WithdrawalDisputePolicy
from record_parser import read_transactions

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Runs one input source through the parser and the ledger.
    Each run starts from empty accounts and an empty journal.
    """

    def __init__(self, withdrawal_disputes: WithdrawalDisputePolicy = WithdrawalDisputePolicy.IGNORE):
        self._withdrawal_disputes = withdrawal_disputes
        self._stats: Optional[ProcessingStats] = None

    @property
    def stats(self) -> Optional[ProcessingStats]:
        """Counters of the last completed run."""
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        try:
            with open(filepath, "r", encoding="utf-8-sig", newline="") as f:
                return self.process_stream(f)
        except OSError as e:
            raise SourceError(f"Cannot read {filepath}: {e}") from e

    def process_stream(self, stream: TextIO) -> Dict[int, ClientAccount]:
        """Process a CSV text stream and return final account states."""
        ledger = LedgerEngine(withdrawal_disputes=self._withdrawal_disputes)

        logger.info("Starting processing")
        try:
            stats = ledger.process(read_transactions(stream))
        except UnicodeDecodeError as e:
            raise SourceError(f"Input is not valid UTF-8: {e}") from e
        except csv.Error as e:
            raise SourceError(f"Input is not readable CSV: {e}") from e

        self._stats = stats
        logger.info(
            f"Processing complete: {stats.applied} applied, {stats.ignored} ignored, "
            f"{stats.rejected} rejected, {len(ledger.accounts)} accounts"
        )
        return ledger.accounts
