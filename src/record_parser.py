import csv
import logging
from decimal import Decimal, Inexact, InvalidOperation
from typing import Dict, Iterator, Sequence, TextIO, Union

from models import (
    FOUR_PLACES,
    MAX_CLIENT_ID,
    MAX_TRANSACTION_ID,
    MONEY_CONTEXT,
    Rejection,
    RejectionReason,
    SourceError,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("type", "client", "tx")
AMOUNT_COLUMN = "amount"

ParsedRecord = Union[Transaction, Rejection]


class _RowError(Exception):
    def __init__(self, reason: RejectionReason, detail: str):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


def read_transactions(stream: TextIO) -> Iterator[ParsedRecord]:
    """
    Lazily parse a CSV stream into transactions or rejections, in input order.

    The first row is the header and names the columns, in any order.
    Blank lines are skipped. A missing or incomplete header raises SourceError.
    """
    reader = csv.reader(stream, skipinitialspace=True)
    columns = _read_header(reader)

    for row in reader:
        if not any(field.strip() for field in row):
            continue
        yield parse_row(row, columns, reader.line_num)


def _read_header(reader) -> Dict[str, int]:
    for header in reader:
        if not any(field.strip() for field in header):
            continue
        columns = {name.strip().lstrip("\ufeff").lower(): index for index, name in enumerate(header)}
        missing = [name for name in REQUIRED_COLUMNS if name not in columns]
        if missing:
            raise SourceError(f"Header is missing column(s) {', '.join(missing)}: {header}")
        if AMOUNT_COLUMN not in columns:
            raise SourceError(f"Header is missing column {AMOUNT_COLUMN}: {header}")
        logger.debug(f"Input columns: {columns}")
        return columns
    raise SourceError("Input has no header row")


def parse_row(row: Sequence[str], columns: Dict[str, int], line_number: int = 0) -> ParsedRecord:
    """Parse one CSV row into a Transaction, or a Rejection saying why it is unusable."""
    try:
        return _parse(row, columns)
    except _RowError as e:
        return Rejection(reason=e.reason, line_number=line_number, detail=e.detail)


def _parse(row: Sequence[str], columns: Dict[str, int]) -> Transaction:
    width = max(columns.values()) + 1
    needed = max(columns[name] for name in REQUIRED_COLUMNS) + 1
    if len(row) < needed or len(row) > width:
        raise _RowError(RejectionReason.WRONG_COLUMN_COUNT, f"expected {width} columns, got {len(row)}: {list(row)}")

    normalized = [value.strip() for value in row]

    type_str = normalized[columns["type"]].lower()
    try:
        transaction_type = TransactionType(type_str)
    except ValueError:
        raise _RowError(RejectionReason.UNKNOWN_TYPE, f"unknown transaction type {type_str!r}")

    client_id = _parse_id(normalized[columns["client"]], "client", MAX_CLIENT_ID)
    transaction_id = _parse_id(normalized[columns["tx"]], "tx", MAX_TRANSACTION_ID)

    amount_index = columns[AMOUNT_COLUMN]
    amount_str = normalized[amount_index] if amount_index < len(normalized) else ""
    amount = _parse_amount(amount_str) if amount_str else None

    if transaction_type.carries_amount and amount is None:
        raise _RowError(RejectionReason.MISSING_AMOUNT, f"{type_str} tx {transaction_id} has no amount")
    if not transaction_type.carries_amount and amount is not None:
        raise _RowError(RejectionReason.UNEXPECTED_AMOUNT, f"{type_str} tx {transaction_id} must not carry an amount")

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _parse_id(value: str, name: str, maximum: int) -> int:
    if not (value.isascii() and value.isdigit()):
        raise _RowError(RejectionReason.INVALID_ID, f"{name} id {value!r} is not an unsigned integer")
    parsed = int(value)
    if parsed > maximum:
        raise _RowError(RejectionReason.ID_OUT_OF_RANGE, f"{name} id {parsed} exceeds {maximum}")
    return parsed


def _parse_amount(value: str) -> Decimal:
    # Decimal() also accepts digit-grouping underscores
    if "_" in value:
        raise _RowError(RejectionReason.INVALID_AMOUNT, f"amount {value!r} is not a number")

    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise _RowError(RejectionReason.INVALID_AMOUNT, f"amount {value!r} is not a number")

    if not amount.is_finite():
        raise _RowError(RejectionReason.INVALID_AMOUNT, f"amount {value!r} is not a number")
    if amount < 0:
        raise _RowError(RejectionReason.NEGATIVE_AMOUNT, f"amount {value} is negative")

    try:
        return MONEY_CONTEXT.quantize(amount.copy_abs(), FOUR_PLACES)
    except Inexact:
        raise _RowError(RejectionReason.TOO_MANY_DECIMALS, f"amount {value} has more than four decimal places")
    except InvalidOperation:
        raise _RowError(RejectionReason.INVALID_AMOUNT, f"amount {value} is too large")
