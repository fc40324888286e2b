from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from sqlalchemy.orm import Session

from config import config
from db.db import init_db
from db.repositories import ExternalAccountRepository, LedgerEventRepository, LedgerStateRepository
from domain.errors import MalformedBatch, MultisendError
from domain.ledger import RESERVE_HOLDER, Deposit, DisbursementBatch, HolderId, Payout, is_native
from domain.multisend import Multisend
from services.simulated_substrate import SimulatedSubstrate
from utils.formatting import format_amount, to_base_units
from utils.payout_csv import load_payouts, parse_asset

logger = logging.getLogger(__name__)


class LedgerNotInitialised(MultisendError):
    pass


class LedgerSession:
    """Ledger and simulated substrate loaded from, and saved back to, the database."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.state_repository = LedgerStateRepository(session)
        self.account_repository = ExternalAccountRepository(session)
        self.event_repository = LedgerEventRepository(session)

        address = self.state_repository.address()
        if address is None:
            raise LedgerNotInitialised("Ledger is not initialised; run `init` first")
        self.substrate = self.account_repository.load(custody_id=address)
        multisend = self.state_repository.load(self.substrate)
        if multisend is None:
            raise LedgerNotInitialised("Ledger is not initialised; run `init` first")
        self.multisend = multisend

    def save(self) -> None:
        self.state_repository.save(self.multisend)
        self.account_repository.save(self.substrate)
        events = self.multisend.journal
        if events:
            self.event_repository.create_many(events)


def run_init(session: Session, args: argparse.Namespace) -> None:
    state_repository = LedgerStateRepository(session)
    if state_repository.address() is not None:
        raise MultisendError("Ledger is already initialised; pass --reset to start over")
    owner = args.owner or config().owner
    if not owner:
        raise MultisendError("An owner is required: pass --owner or set MULTISEND_OWNER")
    substrate = SimulatedSubstrate(custody_id=args.address)
    multisend = Multisend(owner=owner, fee_policy=args.fee_bps, substrate=substrate, address=args.address)
    state_repository.save(multisend)
    print(f"Initialised ledger {multisend.address} owned by {multisend.current_owner()} at {args.fee_bps} bps")


def run_command(ledger: LedgerSession, args: argparse.Namespace) -> None:
    multisend = ledger.multisend
    decimals = args.decimals

    if args.command == "fund":
        asset_id = parse_asset(args.asset)
        balance = ledger.substrate.mint(
            account_id=args.account,
            asset_id=asset_id,
            amount=to_base_units(args.amount, decimals),
        )
        print(f"{args.account} now holds {format_amount(balance, decimals)} {asset_id}")
    elif args.command == "whitelist":
        for raw in args.assets:
            asset_id = parse_asset(raw)
            added = multisend.whitelist(args.caller, asset_id)
            print(f"{asset_id}: {'whitelisted' if added else 'already whitelisted'}")
    elif args.command == "deposit":
        deposits = [parse_deposit(raw, decimals) for raw in args.deposit]
        value = to_base_units(args.value, decimals)
        receipt = multisend.deposit(
            args.caller,
            [d.asset_id for d in deposits],
            [d.amount for d in deposits],
            value=value,
        )
        for outcome in receipt.deposits:
            print(
                f"Deposited {format_amount(outcome.amount, decimals)} {outcome.asset_id} "
                f"(fee {format_amount(outcome.fee, decimals)}, available {format_amount(outcome.net, decimals)})"
            )
    elif args.command == "pay":
        deposits = [parse_deposit(raw, decimals) for raw in args.deposit]
        payouts = [parse_payout(raw, decimals) for raw in args.payout]
        if args.payouts_csv is not None:
            payouts.extend(load_payouts(args.payouts_csv, decimals=decimals))
        batch = DisbursementBatch(deposits=tuple(deposits), payouts=tuple(payouts))
        receipt = multisend.disburse(args.caller, batch, value=to_base_units(args.value, decimals))
        for asset_id, fee in receipt.fees().items():
            print(f"Fee retained: {format_amount(fee, decimals)} {asset_id}")
        for payout in receipt.payouts:
            print(f"Paid {format_amount(payout.amount, decimals)} {payout.asset_id} to {payout.recipient}")
    elif args.command == "withdraw-reserve":
        withdrawn = multisend.withdraw_reserves(args.caller, [parse_asset(raw) for raw in args.assets])
        for asset_id, amount in withdrawn.items():
            print(f"Withdrew {format_amount(amount, decimals)} {asset_id} to {multisend.current_owner()}")
    elif args.command == "withdraw-unspent":
        asset_id = parse_asset(args.asset)
        amount = to_base_units(args.amount, decimals)
        multisend.withdraw_unspent(args.caller, asset_id, amount)
        print(f"Returned {format_amount(amount, decimals)} {asset_id} to {args.caller}")
    elif args.command == "transfer-ownership":
        multisend.transfer_ownership(args.caller, args.new_owner)
        print(f"Owner is now {multisend.current_owner()}")
    elif args.command == "balance":
        asset_id = parse_asset(args.asset)
        if args.external:
            balance = ledger.substrate.balance_of(args.holder, asset_id)
        else:
            balance = multisend.balance_of(args.holder, asset_id)
        print(format_amount(balance, decimals))
    elif args.command == "owner":
        print(multisend.current_owner())
    elif args.command == "journal":
        for event in ledger.event_repository.list():
            print(f"{event.timestamp.isoformat()} {event.event_type} by {event.caller}")
            for leg in event.legs:
                print(f"  {leg.holder_id} {leg.asset_id} {leg.quantity:+d}{' fee' if leg.is_fee else ''}")
            for transfer in event.transfers:
                print(f"  {transfer.direction} {transfer.asset_id} {transfer.account_id} {transfer.amount}")


def parse_deposit(raw: str, decimals: int) -> Deposit:
    asset, sep, amount = raw.rpartition(":")
    if not sep or not asset:
        raise MalformedBatch(f"deposit must look like ASSET:AMOUNT, got {raw!r}")
    asset_id = parse_asset(asset)
    if is_native(asset_id):
        raise MalformedBatch("attach native value with --value instead of --deposit")
    return Deposit(asset_id=asset_id, amount=parse_amount(amount, decimals))


def parse_payout(raw: str, decimals: int) -> Payout:
    parts = raw.split(":")
    if len(parts) != 3 or not all(parts):
        raise MalformedBatch(f"payout must look like ASSET:RECIPIENT:AMOUNT, got {raw!r}")
    asset, recipient, amount = parts
    return Payout(asset_id=parse_asset(asset), recipient=HolderId(recipient), amount=parse_amount(amount, decimals))


def parse_amount(raw: str, decimals: int) -> int:
    try:
        return to_base_units(raw, decimals)
    except ValueError as err:
        raise MalformedBatch(str(err)) from err


def build_parser() -> argparse.ArgumentParser:
    settings = config()
    parser = argparse.ArgumentParser(description="Batched multi-asset disbursement ledger.")
    parser.add_argument("--db", type=Path, default=settings.db_file, help="SQLite file holding the ledger state")
    parser.add_argument(
        "--decimals",
        type=int,
        default=0,
        help="Amounts are given in token units with this many decimals (default: base units)",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create a new ledger")
    init.add_argument("--owner")
    init.add_argument("--fee-bps", type=int, default=settings.fee_bps)
    init.add_argument("--address", default=RESERVE_HOLDER)
    init.add_argument("--reset", action="store_true", help="Delete any existing ledger first")

    fund = subparsers.add_parser("fund", help="Credit an external account on the simulated substrate")
    fund.add_argument("account")
    fund.add_argument("asset")
    fund.add_argument("amount")

    whitelist = subparsers.add_parser("whitelist", help="Approve token assets for deposit")
    whitelist.add_argument("--caller", required=True)
    whitelist.add_argument("assets", nargs="+")

    deposit = subparsers.add_parser("deposit", help="Deposit without paying anyone")
    deposit.add_argument("--caller", required=True)
    deposit.add_argument("--deposit", action="append", default=[], metavar="ASSET:AMOUNT")
    deposit.add_argument("--value", default="0", help="Native value attached to the call")

    pay = subparsers.add_parser("pay", help="Deposit and pay recipients in one batch")
    pay.add_argument("--caller", required=True)
    pay.add_argument("--deposit", action="append", default=[], metavar="ASSET:AMOUNT")
    pay.add_argument("--value", default="0", help="Native value attached to the call")
    pay.add_argument("--payout", action="append", default=[], metavar="ASSET:RECIPIENT:AMOUNT")
    pay.add_argument("--payouts-csv", type=Path, help="CSV with asset_id,recipient,amount columns")

    withdraw_reserve = subparsers.add_parser("withdraw-reserve", help="Send reserve balances to the owner")
    withdraw_reserve.add_argument("--caller", required=True)
    withdraw_reserve.add_argument("assets", nargs="+")

    withdraw_unspent = subparsers.add_parser("withdraw-unspent", help="Reclaim part of your unspent deposits")
    withdraw_unspent.add_argument("--caller", required=True)
    withdraw_unspent.add_argument("asset")
    withdraw_unspent.add_argument("amount")

    transfer = subparsers.add_parser("transfer-ownership", help="Hand the ledger to a new owner")
    transfer.add_argument("--caller", required=True)
    transfer.add_argument("new_owner")

    balance = subparsers.add_parser("balance", help="Show a ledger (or external) balance")
    balance.add_argument("holder")
    balance.add_argument("asset")
    balance.add_argument("--external", action="store_true", help="Read the substrate account instead")

    subparsers.add_parser("owner", help="Show the current owner")
    subparsers.add_parser("journal", help="List recorded ledger events")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    session = init_db(args.db, reset=args.command == "init" and args.reset)
    try:
        if args.command == "init":
            run_init(session, args)
        else:
            ledger = LedgerSession(session)
            run_command(ledger, args)
            ledger.save()
    except (MultisendError, ValueError) as err:
        session.rollback()
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {err}", file=sys.stderr)
        return 1
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
