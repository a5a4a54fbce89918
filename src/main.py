import argparse
import logging
import sys
from typing import List, Optional

from models import LedgerInvariantError, SourceError, WithdrawalDisputePolicy
from payments_engine import PaymentsEngine
from summary import write_summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="client-ledger",
        description="Replay a CSV transaction log and print the final state of every client account.",
    )
    parser.add_argument("input", help="path to the transactions CSV")
    parser.add_argument(
        "--withdrawal-disputes",
        choices=[policy.value for policy in WithdrawalDisputePolicy],
        default=WithdrawalDisputePolicy.IGNORE.value,
        help="how disputes on withdrawals are treated (default: %(default)s)",
    )
    parser.add_argument("--sort", action="store_true", help="order output by client id instead of first appearance")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="log ignored transactions (-vv for debug)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=[logging.WARNING, logging.INFO, logging.DEBUG][min(args.verbose, 2)],
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    engine = PaymentsEngine(withdrawal_disputes=WithdrawalDisputePolicy(args.withdrawal_disputes))
    try:
        accounts = engine.process_file(args.input)
    except (SourceError, LedgerInvariantError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    write_summary(accounts, sys.stdout, sort_by_client=args.sort)

    if args.verbose:
        stats = engine.stats
        print(f"Processed: {stats.applied}, Ignored: {stats.ignored}, Rejected: {stats.rejected}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
