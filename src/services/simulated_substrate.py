from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator

from domain.balance_ledger import BalanceLedger
from domain.errors import InsufficientBalance, Overflow
from domain.ledger import RESERVE_HOLDER, AssetId, HolderId, is_native, is_null_holder

logger = logging.getLogger(__name__)


class SimulatedSubstrate:
    """In-process transfer substrate.

    External accounts (and the ledger's custody account) are kept in their own
    BalanceLedger. Transfers fail instead of raising: a pull from an account that
    cannot cover it, a push the custody account cannot cover, a token push to the
    zero address, a push to an account configured to refuse value, or any transfer
    that would start and end in the custody account.
    """

    def __init__(
        self,
        *,
        custody_id: HolderId = RESERVE_HOLDER,
        accounts: BalanceLedger | None = None,
        rejecting: Iterable[HolderId] = (),
    ) -> None:
        self.custody_id = custody_id
        self._accounts = accounts if accounts is not None else BalanceLedger()
        self._rejecting: set[HolderId] = set(rejecting)
        self._depth = 0

    @property
    def accounts(self) -> BalanceLedger:
        return self._accounts

    def mint(self, *, account_id: HolderId, asset_id: AssetId, amount: int) -> int:
        return self._accounts.credit(holder_id=account_id, asset_id=asset_id, amount=amount)

    def balance_of(self, account_id: str, asset_id: str) -> int:
        return self._accounts.balance_of(holder_id=account_id, asset_id=asset_id)

    def custody_balance(self, asset_id: str) -> int:
        return self.balance_of(self.custody_id, asset_id)

    def reject_payments_to(self, account_id: HolderId) -> None:
        self._rejecting.add(account_id)

    def accept_payments_to(self, account_id: HolderId) -> None:
        self._rejecting.discard(account_id)

    def pull(self, asset_id: AssetId, source: HolderId, amount: int) -> bool:
        if source == self.custody_id:
            logger.warning("Pull of %d %s from the custody account refused", amount, asset_id)
            return False
        return self._move(asset_id, source=source, destination=self.custody_id, amount=amount)

    def push(self, asset_id: AssetId, destination: HolderId, amount: int) -> bool:
        if destination == self.custody_id:
            logger.warning("Push of %d %s back into the custody account refused", amount, asset_id)
            return False
        if destination in self._rejecting:
            logger.warning("Push of %d %s refused by %s", amount, asset_id, destination)
            return False
        if is_null_holder(destination) and not is_native(asset_id):
            logger.warning("Push of %d %s to the zero address refused", amount, asset_id)
            return False
        return self._move(asset_id, source=self.custody_id, destination=destination, amount=amount)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        # Only the outermost transaction snapshots; inner ones share its fate.
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = self._accounts.snapshot()
        self._depth = 1
        try:
            yield
        except Exception:
            self._accounts.restore(snapshot)
            raise
        finally:
            self._depth = 0

    def _move(self, asset_id: AssetId, *, source: HolderId, destination: HolderId, amount: int) -> bool:
        try:
            self._accounts.debit(holder_id=source, asset_id=asset_id, amount=amount)
        except InsufficientBalance as err:
            logger.warning(
                "Transfer of %d %s from %s failed: available %d",
                amount,
                asset_id,
                source,
                err.available_balance,
            )
            return False
        try:
            self._accounts.credit(holder_id=destination, asset_id=asset_id, amount=amount)
        except Overflow:
            self._accounts.credit(holder_id=source, asset_id=asset_id, amount=amount)
            logger.warning("Transfer of %d %s to %s failed: balance overflow", amount, asset_id, destination)
            return False
        return True
