from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import NewType, Sequence
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import MalformedBatch

AssetId = NewType("AssetId", str)
HolderId = NewType("HolderId", str)
LedgerEventId = NewType("LedgerEventId", UUID)
LegId = NewType("LegId", UUID)
TransferId = NewType("TransferId", UUID)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

NATIVE_ASSET = AssetId(ZERO_ADDRESS)
NULL_HOLDER = HolderId(ZERO_ADDRESS)
RESERVE_HOLDER = HolderId("multisend")

MAX_AMOUNT = 2**256 - 1


def is_native(asset_id: str) -> bool:
    return asset_id == NATIVE_ASSET


def is_null_holder(holder_id: str | None) -> bool:
    return not holder_id or holder_id == NULL_HOLDER


class EventType(StrEnum):
    DEPOSIT = "DEPOSIT"
    DISBURSEMENT = "DISBURSEMENT"
    RESERVE_WITHDRAWAL = "RESERVE_WITHDRAWAL"
    UNSPENT_WITHDRAWAL = "UNSPENT_WITHDRAWAL"


class TransferDirection(StrEnum):
    PULL = "PULL"
    PUSH = "PUSH"


class Deposit(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    amount: int = Field(ge=0)


class Payout(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    recipient: HolderId
    amount: int = Field(ge=0)


class DisbursementBatch(BaseModel):
    """Deposits pulled from the caller and payouts drawn against the caller's pool."""

    model_config = ConfigDict(frozen=True)

    deposits: tuple[Deposit, ...] = ()
    payouts: tuple[Payout, ...] = ()

    @classmethod
    def from_parallel(
        cls,
        deposit_assets: Sequence[str],
        deposit_amounts: Sequence[int],
        pay_assets: Sequence[str] = (),
        pay_recipients: Sequence[str] = (),
        pay_amounts: Sequence[int] = (),
    ) -> DisbursementBatch:
        """Build a batch from the parallel-array encoding.

        Deposits are paired index by index with their amounts, payouts with their
        recipients and amounts. Any length mismatch or invalid entry raises
        MalformedBatch before anything touches the ledger.
        """
        if len(deposit_assets) != len(deposit_amounts):
            raise MalformedBatch(
                f"deposit arrays differ in length: assets={len(deposit_assets)} amounts={len(deposit_amounts)}"
            )
        if not len(pay_assets) == len(pay_recipients) == len(pay_amounts):
            raise MalformedBatch(
                "payout arrays differ in length: "
                f"assets={len(pay_assets)} recipients={len(pay_recipients)} amounts={len(pay_amounts)}"
            )

        try:
            deposits = tuple(
                Deposit(asset_id=AssetId(asset_id), amount=amount)
                for asset_id, amount in zip(deposit_assets, deposit_amounts)
            )
            payouts = tuple(
                Payout(asset_id=AssetId(asset_id), recipient=HolderId(recipient), amount=amount)
                for asset_id, recipient, amount in zip(pay_assets, pay_recipients, pay_amounts)
            )
        except ValidationError as err:
            raise MalformedBatch(f"invalid batch entry: {err.errors()[0]['msg']}") from err

        return cls(deposits=deposits, payouts=payouts)


class LedgerLeg(BaseModel):
    """A single balance delta within an event.

    Quantity sign convention:
    - Positive quantity indicates the holder's ledger entry increased.
    - Negative quantity indicates the holder's ledger entry decreased.
    """

    id: LegId = LegId(Field(default_factory=uuid4))
    holder_id: HolderId
    asset_id: AssetId
    quantity: int
    is_fee: bool = False

    @model_validator(mode="after")
    def _validate_quantity(self) -> LedgerLeg:
        # Zero-quantity legs are not meaningful in the ledger.
        if self.quantity == 0:
            raise ValueError("LedgerLeg.quantity must be non-zero")
        return self


class Transfer(BaseModel):
    """A movement of value through the substrate, into or out of custody."""

    id: TransferId = TransferId(Field(default_factory=uuid4))
    direction: TransferDirection
    asset_id: AssetId
    account_id: HolderId
    amount: int = Field(gt=0)


class LedgerEvent(BaseModel):
    id: LedgerEventId = LedgerEventId(Field(default_factory=uuid4))
    timestamp: datetime
    event_type: EventType
    caller: HolderId
    legs: list[LedgerLeg] = Field(default_factory=list)
    transfers: list[Transfer] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_fields(self) -> LedgerEvent:
        if not self.legs and not self.transfers:
            raise ValueError("LedgerEvent must have at least one leg or transfer")
        return self

    def pulled(self, asset_id: str) -> int:
        return sum(
            t.amount for t in self.transfers if t.asset_id == asset_id and t.direction == TransferDirection.PULL
        )

    def pushed(self, asset_id: str) -> int:
        return sum(
            t.amount for t in self.transfers if t.asset_id == asset_id and t.direction == TransferDirection.PUSH
        )
