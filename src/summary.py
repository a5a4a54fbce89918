import csv
from decimal import Decimal
from typing import Dict, Iterator, TextIO, Tuple

from models import FOUR_PLACES, MONEY_CONTEXT, ClientAccount

SUMMARY_HEADER = ("client", "available", "held", "total", "locked")


def format_amount(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{MONEY_CONTEXT.quantize(value, FOUR_PLACES):f}"


def summarize(accounts: Dict[int, ClientAccount], sort_by_client: bool = False) -> Iterator[Tuple[str, ...]]:
    """
    Yield one output row per account.
    Accounts come out in order of first appearance unless sort_by_client is set.
    """
    client_ids = sorted(accounts) if sort_by_client else list(accounts)
    for client_id in client_ids:
        account = accounts[client_id]
        yield (
            str(client_id),
            format_amount(account.available),
            format_amount(account.held),
            format_amount(account.total),
            str(account.locked).lower(),
        )


def write_summary(accounts: Dict[int, ClientAccount], stream: TextIO, sort_by_client: bool = False) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(SUMMARY_HEADER)
    writer.writerows(summarize(accounts, sort_by_client=sort_by_client))
