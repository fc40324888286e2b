from __future__ import annotations

import logging
from typing import Iterable

from pydantic import BaseModel

from .balance_ledger import BalanceLedger
from .errors import InsufficientBalance, InsufficientFunds, MalformedBatch, Unauthorized
from .fees import FeePolicy
from .ledger import (
    NATIVE_ASSET,
    RESERVE_HOLDER,
    AssetId,
    Deposit,
    DisbursementBatch,
    EventType,
    HolderId,
    LedgerEvent,
    Payout,
    is_native,
)
from .substrate import TransferSubstrate
from .transaction import Clock, UnitOfWork, atomic, utc_now
from .whitelist import WhitelistRegistry

logger = logging.getLogger(__name__)


class DepositOutcome(BaseModel):
    asset_id: AssetId
    amount: int
    fee: int
    net: int


class DisbursementReceipt(BaseModel):
    caller: HolderId
    deposits: list[DepositOutcome]
    payouts: list[Payout]
    event: LedgerEvent | None = None

    def fees(self) -> dict[AssetId, int]:
        totals: dict[AssetId, int] = {}
        for outcome in self.deposits:
            totals[outcome.asset_id] = totals.get(outcome.asset_id, 0) + outcome.fee
        return totals

    def paid(self) -> dict[AssetId, int]:
        totals: dict[AssetId, int] = {}
        for payout in self.payouts:
            totals[payout.asset_id] = totals.get(payout.asset_id, 0) + payout.amount
        return totals


class DisbursementEngine:
    """Deposit, fee and payout processing.

    A deposit is pulled from the caller, its fee is credited to the reserve holder
    and the remainder to the caller's own entry (the caller's pool). Payouts are
    debited from that pool and pushed to recipients. Each call is one atomic unit.
    """

    def __init__(
        self,
        *,
        ledger: BalanceLedger,
        whitelist: WhitelistRegistry,
        fee_policy: FeePolicy,
        substrate: TransferSubstrate,
        reserve_holder: HolderId = RESERVE_HOLDER,
        clock: Clock = utc_now,
    ) -> None:
        self._ledger = ledger
        self._whitelist = whitelist
        self._fee_policy = fee_policy
        self._substrate = substrate
        self._reserve_holder = reserve_holder
        self._clock = clock

    def deposit(self, caller: HolderId, deposits: Iterable[Deposit], *, value: int = 0) -> DisbursementReceipt:
        batch = DisbursementBatch(deposits=tuple(deposits))
        return self._execute(caller, batch, value=value, event_type=EventType.DEPOSIT)

    def deposit_and_pay(self, caller: HolderId, batch: DisbursementBatch, *, value: int = 0) -> DisbursementReceipt:
        return self._execute(caller, batch, value=value, event_type=EventType.DISBURSEMENT)

    def withdraw_unspent(self, caller: HolderId, asset_id: AssetId, amount: int) -> LedgerEvent | None:
        """Return part of the caller's unspent pool to the caller."""
        self._require_external(caller, action="withdraw unspent balance")
        with atomic(self._ledger, self._substrate) as uow:
            self._debit_pool(uow, caller, asset_id, amount)
            uow.push(asset_id=asset_id, destination=caller, amount=amount)
        logger.info("Returned %d %s of unspent balance to %s", amount, asset_id, caller)
        return uow.to_event(event_type=EventType.UNSPENT_WITHDRAWAL, caller=caller, timestamp=self._clock())

    def _execute(
        self,
        caller: HolderId,
        batch: DisbursementBatch,
        *,
        value: int,
        event_type: EventType,
    ) -> DisbursementReceipt:
        self._require_external(caller, action="deposit into or pay from the ledger")
        if value < 0:
            raise MalformedBatch(f"attached value must be >= 0, got {value}")
        for deposit in batch.deposits:
            if is_native(deposit.asset_id):
                raise MalformedBatch("native value must be attached to the call, not listed as a deposit")
        for payout in batch.payouts:
            if payout.recipient == self._reserve_holder:
                raise MalformedBatch(f"cannot pay the ledger's own address {payout.recipient}")

        deposits = list(batch.deposits)
        if value:
            deposits.append(Deposit(asset_id=NATIVE_ASSET, amount=value))

        # Whitelist gating covers the whole batch before anything is pulled.
        for deposit in deposits:
            self._whitelist.require(deposit.asset_id)

        with atomic(self._ledger, self._substrate) as uow:
            outcomes = [self._take_deposit(uow, caller, deposit) for deposit in deposits]
            # Every payout is debited before the first push, so an overdrawn pool
            # fails the batch without any value leaving custody.
            for payout in batch.payouts:
                self._debit_pool(uow, caller, payout.asset_id, payout.amount)
            for payout in batch.payouts:
                uow.push(asset_id=payout.asset_id, destination=payout.recipient, amount=payout.amount)

        event = uow.to_event(event_type=event_type, caller=caller, timestamp=self._clock())
        logger.info(
            "%s by %s: %d deposits, %d payouts",
            event_type.value.lower(),
            caller,
            len(outcomes),
            len(batch.payouts),
        )
        return DisbursementReceipt(caller=caller, deposits=outcomes, payouts=list(batch.payouts), event=event)

    def _require_external(self, caller: HolderId, *, action: str) -> None:
        # The ledger's own address holds the reserve; it never acts as a depositor.
        if caller == self._reserve_holder:
            raise Unauthorized(caller=caller, action=action)

    def _take_deposit(self, uow: UnitOfWork, caller: HolderId, deposit: Deposit) -> DepositOutcome:
        uow.pull(asset_id=deposit.asset_id, source=caller, amount=deposit.amount)
        fee, net = self._fee_policy.split(deposit.amount)
        uow.credit(holder_id=self._reserve_holder, asset_id=deposit.asset_id, amount=fee, is_fee=True)
        uow.credit(holder_id=caller, asset_id=deposit.asset_id, amount=net)
        return DepositOutcome(asset_id=deposit.asset_id, amount=deposit.amount, fee=fee, net=net)

    def _debit_pool(self, uow: UnitOfWork, caller: HolderId, asset_id: AssetId, amount: int) -> None:
        try:
            uow.debit(holder_id=caller, asset_id=asset_id, amount=amount)
        except InsufficientBalance as err:
            raise InsufficientFunds(
                holder_id=caller,
                asset_id=asset_id,
                attempted_amount=amount,
                available_balance=err.available_balance,
            ) from err
