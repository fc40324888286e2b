from __future__ import annotations

import logging
from typing import Iterable

from .balance_ledger import BalanceLedger
from .errors import InvalidOwner, Unauthorized
from .ledger import RESERVE_HOLDER, AssetId, EventType, HolderId, LedgerEvent, is_null_holder
from .substrate import TransferSubstrate
from .transaction import Clock, atomic, utc_now

logger = logging.getLogger(__name__)


class Administration:
    """Owner identity and the owner's claim on the reserve."""

    def __init__(
        self,
        owner: HolderId,
        *,
        ledger: BalanceLedger,
        substrate: TransferSubstrate,
        reserve_holder: HolderId = RESERVE_HOLDER,
        clock: Clock = utc_now,
    ) -> None:
        if is_null_holder(owner) or owner == reserve_holder:
            raise InvalidOwner(new_owner=owner)
        self._owner = owner
        self._ledger = ledger
        self._substrate = substrate
        self._reserve_holder = reserve_holder
        self._clock = clock

    @property
    def owner(self) -> HolderId:
        return self._owner

    def require_owner(self, caller: str, *, action: str) -> None:
        if caller != self._owner:
            raise Unauthorized(caller=caller, action=action)

    def transfer_ownership(self, caller: HolderId, new_owner: HolderId) -> HolderId:
        self.require_owner(caller, action="transfer ownership")
        if is_null_holder(new_owner) or new_owner == self._reserve_holder:
            raise InvalidOwner(new_owner=new_owner)
        previous, self._owner = self._owner, new_owner
        logger.info("Ownership transferred from %s to %s", previous, new_owner)
        return previous

    def withdraw_reserves(
        self,
        caller: HolderId,
        asset_ids: Iterable[AssetId],
    ) -> tuple[dict[AssetId, int], LedgerEvent | None]:
        """Push the reserve's whole balance of each asset to the owner, all or nothing."""
        self.require_owner(caller, action="withdraw the reserve")
        withdrawn: dict[AssetId, int] = {}
        with atomic(self._ledger, self._substrate) as uow:
            for asset_id in asset_ids:
                amount = self._ledger.balance_of(holder_id=self._reserve_holder, asset_id=asset_id)
                uow.debit(holder_id=self._reserve_holder, asset_id=asset_id, amount=amount)
                uow.push(asset_id=asset_id, destination=self._owner, amount=amount)
                withdrawn[asset_id] = withdrawn.get(asset_id, 0) + amount

        for asset_id, amount in withdrawn.items():
            logger.info("Owner %s withdrew %d %s from the reserve", self._owner, amount, asset_id)
        event = uow.to_event(event_type=EventType.RESERVE_WITHDRAWAL, caller=caller, timestamp=self._clock())
        return withdrawn, event
