from __future__ import annotations

from datetime import timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from db import models
from domain.balance_ledger import BalanceLedger
from domain.fees import FeePolicy
from domain.ledger import (
    AssetId,
    EventType,
    HolderId,
    LedgerEvent,
    LedgerLeg,
    Transfer,
    TransferDirection,
)
from domain.multisend import Multisend
from domain.substrate import TransferSubstrate
from domain.transaction import Clock, utc_now
from domain.whitelist import WhitelistRegistry
from services.simulated_substrate import SimulatedSubstrate


class LedgerStateRepository:
    """Owner, fee rate, whitelist and balance table of a single ledger."""

    ADMIN_ROW_ID = 1

    def __init__(self, session: Session) -> None:
        self._session = session

    def save(self, multisend: Multisend) -> None:
        admin = self._session.get(models.AdministrationOrm, self.ADMIN_ROW_ID)
        if admin is None:
            admin = models.AdministrationOrm(id=self.ADMIN_ROW_ID)
            self._session.add(admin)
        admin.address = multisend.address
        admin.owner_id = multisend.current_owner()
        admin.fee_bps = multisend.fee_policy.rate_bps

        for asset_id in multisend.whitelisted_assets():
            self._session.merge(models.WhitelistedAssetOrm(asset_id=asset_id))
        for holder_id, asset_id, amount in multisend.ledger.entries():
            self._session.merge(models.BalanceEntryOrm(holder_id=holder_id, asset_id=asset_id, amount=amount))

        self._session.commit()

    def address(self) -> HolderId | None:
        admin = self._session.get(models.AdministrationOrm, self.ADMIN_ROW_ID)
        return None if admin is None else HolderId(admin.address)

    def load(self, substrate: TransferSubstrate, *, clock: Clock = utc_now) -> Multisend | None:
        admin = self._session.get(models.AdministrationOrm, self.ADMIN_ROW_ID)
        if admin is None:
            return None

        whitelist = WhitelistRegistry(
            AssetId(row.asset_id) for row in self._session.scalars(select(models.WhitelistedAssetOrm))
        )
        ledger = BalanceLedger.from_entries(
            (HolderId(row.holder_id), AssetId(row.asset_id), row.amount)
            for row in self._session.scalars(select(models.BalanceEntryOrm))
        )
        return Multisend(
            owner=HolderId(admin.owner_id),
            fee_policy=FeePolicy(rate_bps=admin.fee_bps),
            substrate=substrate,
            address=HolderId(admin.address),
            ledger=ledger,
            whitelist=whitelist,
            clock=clock,
        )


class ExternalAccountRepository:
    """Account balances held by the simulated substrate."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def save(self, substrate: SimulatedSubstrate) -> None:
        for account_id, asset_id, amount in substrate.accounts.entries():
            self._session.merge(models.ExternalBalanceOrm(account_id=account_id, asset_id=asset_id, amount=amount))
        self._session.commit()

    def load(self, *, custody_id: HolderId) -> SimulatedSubstrate:
        accounts = BalanceLedger.from_entries(
            (HolderId(row.account_id), AssetId(row.asset_id), row.amount)
            for row in self._session.scalars(select(models.ExternalBalanceOrm))
        )
        return SimulatedSubstrate(custody_id=custody_id, accounts=accounts)


class LedgerEventRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, events: list[LedgerEvent]) -> list[LedgerEvent]:
        orm_events = [self._to_orm(event) for event in events]
        self._session.add_all(orm_events)
        self._session.commit()
        return [self._to_domain(orm_event) for orm_event in orm_events]

    def list(self) -> list[LedgerEvent]:
        stmt = select(models.LedgerEventOrm).order_by(models.LedgerEventOrm.timestamp.asc())
        return [self._to_domain(event) for event in self._session.scalars(stmt)]

    @staticmethod
    def _to_orm(event: LedgerEvent) -> models.LedgerEventOrm:
        orm_event = models.LedgerEventOrm(
            id=event.id,
            timestamp=event.timestamp,
            event_type=event.event_type.value,
            caller=event.caller,
        )
        orm_event.legs = [
            models.LedgerLegOrm(
                id=leg.id,
                position=position,
                holder_id=leg.holder_id,
                asset_id=leg.asset_id,
                quantity=leg.quantity,
                is_fee=leg.is_fee,
            )
            for position, leg in enumerate(event.legs)
        ]
        orm_event.transfers = [
            models.TransferOrm(
                id=transfer.id,
                position=position,
                direction=transfer.direction.value,
                asset_id=transfer.asset_id,
                account_id=transfer.account_id,
                amount=transfer.amount,
            )
            for position, transfer in enumerate(event.transfers)
        ]
        return orm_event

    @staticmethod
    def _to_domain(orm_event: models.LedgerEventOrm) -> LedgerEvent:
        timestamp = orm_event.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        legs = [
            LedgerLeg(
                id=leg.id,
                holder_id=HolderId(leg.holder_id),
                asset_id=AssetId(leg.asset_id),
                quantity=leg.quantity,
                is_fee=leg.is_fee,
            )
            for leg in orm_event.legs
        ]
        transfers = [
            Transfer(
                id=transfer.id,
                direction=TransferDirection(transfer.direction),
                asset_id=AssetId(transfer.asset_id),
                account_id=HolderId(transfer.account_id),
                amount=transfer.amount,
            )
            for transfer in orm_event.transfers
        ]
        return LedgerEvent(
            id=orm_event.id,
            timestamp=timestamp,
            event_type=EventType(orm_event.event_type),
            caller=HolderId(orm_event.caller),
            legs=legs,
            transfers=transfers,
        )
