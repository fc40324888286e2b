from __future__ import annotations

import logging
import threading
from typing import Iterable, Sequence

from .administration import Administration
from .balance_ledger import BalanceLedger
from .disbursement import DisbursementEngine, DisbursementReceipt
from .fees import FeePolicy
from .ledger import RESERVE_HOLDER, AssetId, DisbursementBatch, HolderId, LedgerEvent
from .substrate import TransferSubstrate
from .transaction import Clock, utc_now
from .whitelist import WhitelistRegistry

logger = logging.getLogger(__name__)


class Multisend:
    """Batched multi-asset disbursement ledger.

    Operations run one at a time under a single lock; each is applied fully or
    not at all. Successful value movements are appended to ``journal``.
    """

    def __init__(
        self,
        *,
        owner: HolderId,
        fee_policy: FeePolicy | int,
        substrate: TransferSubstrate,
        address: HolderId = RESERVE_HOLDER,
        ledger: BalanceLedger | None = None,
        whitelist: WhitelistRegistry | None = None,
        clock: Clock = utc_now,
    ) -> None:
        if isinstance(fee_policy, int):
            fee_policy = FeePolicy(rate_bps=fee_policy)
        self._address = address
        self._fee_policy = fee_policy
        self._substrate = substrate
        self._ledger = ledger if ledger is not None else BalanceLedger()
        self._whitelist = whitelist if whitelist is not None else WhitelistRegistry()
        self._admin = Administration(
            owner,
            ledger=self._ledger,
            substrate=substrate,
            reserve_holder=address,
            clock=clock,
        )
        self._engine = DisbursementEngine(
            ledger=self._ledger,
            whitelist=self._whitelist,
            fee_policy=fee_policy,
            substrate=substrate,
            reserve_holder=address,
            clock=clock,
        )
        self._lock = threading.RLock()
        self._journal: list[LedgerEvent] = []

    @property
    def address(self) -> HolderId:
        return self._address

    @property
    def fee_policy(self) -> FeePolicy:
        return self._fee_policy

    @property
    def ledger(self) -> BalanceLedger:
        return self._ledger

    @property
    def journal(self) -> list[LedgerEvent]:
        with self._lock:
            return list(self._journal)

    def current_owner(self) -> HolderId:
        with self._lock:
            return self._admin.owner

    def whitelist(self, caller: HolderId, asset_id: AssetId) -> bool:
        with self._lock:
            self._admin.require_owner(caller, action="whitelist assets")
            added = self._whitelist.add(asset_id)
        if added:
            logger.info("Whitelisted asset %s", asset_id)
        return added

    def is_whitelisted(self, asset_id: AssetId) -> bool:
        with self._lock:
            return self._whitelist.is_whitelisted(asset_id)

    def whitelisted_assets(self) -> list[AssetId]:
        with self._lock:
            return self._whitelist.assets()

    def deposit(
        self,
        caller: HolderId,
        assets: Sequence[str],
        amounts: Sequence[int],
        *,
        value: int = 0,
    ) -> DisbursementReceipt:
        batch = DisbursementBatch.from_parallel(assets, amounts)
        with self._lock:
            receipt = self._engine.deposit(caller, batch.deposits, value=value)
            self._record(receipt.event)
        return receipt

    def deposit_and_pay(
        self,
        caller: HolderId,
        deposit_assets: Sequence[str],
        deposit_amounts: Sequence[int],
        pay_assets: Sequence[str],
        pay_recipients: Sequence[str],
        pay_amounts: Sequence[int],
        *,
        value: int = 0,
    ) -> DisbursementReceipt:
        batch = DisbursementBatch.from_parallel(
            deposit_assets,
            deposit_amounts,
            pay_assets,
            pay_recipients,
            pay_amounts,
        )
        return self.disburse(caller, batch, value=value)

    def disburse(self, caller: HolderId, batch: DisbursementBatch, *, value: int = 0) -> DisbursementReceipt:
        with self._lock:
            receipt = self._engine.deposit_and_pay(caller, batch, value=value)
            self._record(receipt.event)
        return receipt

    def withdraw_unspent(self, caller: HolderId, asset_id: AssetId, amount: int) -> None:
        with self._lock:
            self._record(self._engine.withdraw_unspent(caller, asset_id, amount))

    def withdraw_reserve(self, caller: HolderId, asset_id: AssetId) -> int:
        return self.withdraw_reserves(caller, [asset_id])[asset_id]

    def withdraw_reserves(self, caller: HolderId, asset_ids: Iterable[AssetId]) -> dict[AssetId, int]:
        with self._lock:
            withdrawn, event = self._admin.withdraw_reserves(caller, asset_ids)
            self._record(event)
        return withdrawn

    def transfer_ownership(self, caller: HolderId, new_owner: HolderId) -> None:
        with self._lock:
            self._admin.transfer_ownership(caller, new_owner)

    def balance_of(self, holder_id: str, asset_id: str) -> int:
        with self._lock:
            return self._ledger.balance_of(holder_id=holder_id, asset_id=asset_id)

    def reserve_balance(self, asset_id: str) -> int:
        return self.balance_of(self._address, asset_id)

    def _record(self, event: LedgerEvent | None) -> None:
        if event is not None:
            self._journal.append(event)
