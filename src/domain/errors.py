"""Failures of ledger operations.

Every error is fatal to the operation that raised it: the operation is rolled back
as a whole before the error reaches the caller.
"""

from __future__ import annotations


class MultisendError(Exception):
    pass


class Unauthorized(MultisendError):
    def __init__(self, *, caller: str, action: str) -> None:
        self.caller = caller
        self.action = action
        super().__init__(f"{caller} is not allowed to {action}")


class InvalidOwner(MultisendError):
    def __init__(self, *, new_owner: str | None) -> None:
        self.new_owner = new_owner
        super().__init__(f"Invalid owner: {new_owner!r}")


class AssetNotWhitelisted(MultisendError):
    def __init__(self, *, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} is not whitelisted for deposit")


class MalformedBatch(MultisendError):
    pass


class InsufficientBalance(MultisendError):
    def __init__(
        self,
        *,
        holder_id: str,
        asset_id: str,
        attempted_amount: int,
        available_balance: int,
    ) -> None:
        self.holder_id = holder_id
        self.asset_id = asset_id
        self.attempted_amount = attempted_amount
        self.available_balance = available_balance
        message = (
            f"Insufficient balance for asset={asset_id} holder={holder_id} "
            f"attempted={attempted_amount} available={available_balance}"
        )
        super().__init__(message)


class InsufficientFunds(MultisendError):
    def __init__(
        self,
        *,
        holder_id: str,
        asset_id: str,
        attempted_amount: int,
        available_balance: int,
    ) -> None:
        self.holder_id = holder_id
        self.asset_id = asset_id
        self.attempted_amount = attempted_amount
        self.available_balance = available_balance
        message = (
            f"Payout of {attempted_amount} {asset_id} exceeds the funds available to {holder_id} "
            f"({available_balance})"
        )
        super().__init__(message)


class Overflow(MultisendError):
    def __init__(self, *, holder_id: str, asset_id: str, current_balance: int, amount: int) -> None:
        self.holder_id = holder_id
        self.asset_id = asset_id
        self.current_balance = current_balance
        self.amount = amount
        super().__init__(
            f"Crediting {amount} to holder={holder_id} asset={asset_id} overflows balance {current_balance}"
        )


class SubstrateFailure(MultisendError):
    def __init__(self, *, operation: str, asset_id: str, account_id: str, amount: int) -> None:
        self.operation = operation
        self.asset_id = asset_id
        self.account_id = account_id
        self.amount = amount
        super().__init__(f"Substrate {operation} of {amount} {asset_id} for {account_id} failed")
