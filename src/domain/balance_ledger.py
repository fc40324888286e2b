from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Iterator

from .errors import InsufficientBalance, Overflow
from .ledger import MAX_AMOUNT, AssetId, HolderId

BalanceSnapshot = dict[AssetId, dict[HolderId, int]]


class BalanceLedger:
    """Per-(holder, asset) balance table.

    Entries are created on first credit and never removed; zero is a valid resting
    balance. All mutation goes through credit/debit.
    """

    def __init__(self) -> None:
        self._balances: dict[AssetId, dict[HolderId, int]] = defaultdict(dict)

    @classmethod
    def from_entries(cls, entries: Iterable[tuple[HolderId, AssetId, int]]) -> BalanceLedger:
        ledger = cls()
        for holder_id, asset_id, amount in entries:
            ledger.credit(holder_id=holder_id, asset_id=asset_id, amount=amount)
        return ledger

    def credit(self, *, holder_id: HolderId, asset_id: AssetId, amount: int) -> int:
        self._check_amount(amount)
        current_balance = self.balance_of(holder_id=holder_id, asset_id=asset_id)
        new_balance = current_balance + amount
        if new_balance > MAX_AMOUNT:
            raise Overflow(holder_id=holder_id, asset_id=asset_id, current_balance=current_balance, amount=amount)
        self._balances[asset_id][holder_id] = new_balance
        return new_balance

    def debit(self, *, holder_id: HolderId, asset_id: AssetId, amount: int) -> int:
        self._check_amount(amount)
        current_balance = self.balance_of(holder_id=holder_id, asset_id=asset_id)
        new_balance = current_balance - amount
        if new_balance < 0:
            raise InsufficientBalance(
                holder_id=holder_id,
                asset_id=asset_id,
                attempted_amount=amount,
                available_balance=current_balance,
            )
        self._balances[asset_id][holder_id] = new_balance
        return new_balance

    def balance_of(self, *, holder_id: str, asset_id: str) -> int:
        holders = self._balances.get(AssetId(asset_id))
        if holders is None:
            return 0
        return holders.get(HolderId(holder_id), 0)

    def has_available(self, *, holder_id: str, asset_id: str, amount: int) -> bool:
        return self.balance_of(holder_id=holder_id, asset_id=asset_id) >= amount

    def total_for(self, asset_id: str) -> int:
        return sum(self._balances.get(AssetId(asset_id), {}).values())

    def asset_balances_for(self, holder_ids: set[str] | None = None) -> dict[AssetId, int]:
        totals: dict[AssetId, int] = {}
        for asset_id, holder_balances in self._balances.items():
            totals[asset_id] = sum(
                balance
                for holder_id, balance in holder_balances.items()
                if holder_ids is None or holder_id in holder_ids
            )
        return totals

    def entries(self) -> Iterator[tuple[HolderId, AssetId, int]]:
        for asset_id, holder_balances in sorted(self._balances.items()):
            for holder_id, balance in sorted(holder_balances.items()):
                yield holder_id, asset_id, balance

    def snapshot(self) -> BalanceSnapshot:
        return {asset_id: dict(holders) for asset_id, holders in self._balances.items()}

    def restore(self, snapshot: BalanceSnapshot) -> None:
        self._balances = defaultdict(dict, {asset_id: dict(holders) for asset_id, holders in snapshot.items()})

    @staticmethod
    def _check_amount(amount: int) -> None:
        if amount < 0:
            msg = f"amount must be >= 0, got {amount}"
            raise ValueError(msg)
