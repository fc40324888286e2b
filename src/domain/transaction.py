from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator

from .balance_ledger import BalanceLedger
from .errors import SubstrateFailure
from .ledger import AssetId, EventType, HolderId, LedgerEvent, LedgerLeg, Transfer, TransferDirection
from .substrate import TransferSubstrate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UnitOfWork:
    """Ledger and substrate access for one atomic operation.

    Every balance delta and substrate movement goes through here so the operation
    can be journaled once it completes.
    """

    def __init__(self, ledger: BalanceLedger, substrate: TransferSubstrate) -> None:
        self.ledger = ledger
        self.substrate = substrate
        self.legs: list[LedgerLeg] = []
        self.transfers: list[Transfer] = []

    def credit(self, *, holder_id: HolderId, asset_id: AssetId, amount: int, is_fee: bool = False) -> None:
        self.ledger.credit(holder_id=holder_id, asset_id=asset_id, amount=amount)
        if amount:
            self.legs.append(LedgerLeg(holder_id=holder_id, asset_id=asset_id, quantity=amount, is_fee=is_fee))

    def debit(self, *, holder_id: HolderId, asset_id: AssetId, amount: int) -> None:
        self.ledger.debit(holder_id=holder_id, asset_id=asset_id, amount=amount)
        if amount:
            self.legs.append(LedgerLeg(holder_id=holder_id, asset_id=asset_id, quantity=-amount))

    def pull(self, *, asset_id: AssetId, source: HolderId, amount: int) -> None:
        if not amount:
            return
        if not self.substrate.pull(asset_id, source, amount):
            raise SubstrateFailure(operation="pull", asset_id=asset_id, account_id=source, amount=amount)
        self.transfers.append(
            Transfer(direction=TransferDirection.PULL, asset_id=asset_id, account_id=source, amount=amount)
        )

    def push(self, *, asset_id: AssetId, destination: HolderId, amount: int) -> None:
        if not amount:
            return
        if not self.substrate.push(asset_id, destination, amount):
            raise SubstrateFailure(operation="push", asset_id=asset_id, account_id=destination, amount=amount)
        self.transfers.append(
            Transfer(direction=TransferDirection.PUSH, asset_id=asset_id, account_id=destination, amount=amount)
        )

    def to_event(self, *, event_type: EventType, caller: HolderId, timestamp: datetime) -> LedgerEvent | None:
        if not self.legs and not self.transfers:
            return None
        return LedgerEvent(
            timestamp=timestamp,
            event_type=event_type,
            caller=caller,
            legs=list(self.legs),
            transfers=list(self.transfers),
        )


@contextmanager
def atomic(ledger: BalanceLedger, substrate: TransferSubstrate) -> Iterator[UnitOfWork]:
    """Run an operation all-or-nothing.

    On any exception the balance table is restored to its state on entry and the
    substrate transaction is discarded before the exception propagates.
    """
    snapshot = ledger.snapshot()
    try:
        with substrate.transaction():
            yield UnitOfWork(ledger, substrate)
    except Exception as err:
        ledger.restore(snapshot)
        logger.warning("Rolled back ledger operation: %s", err)
        raise
