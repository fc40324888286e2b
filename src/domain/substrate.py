from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol, runtime_checkable

from .ledger import AssetId, HolderId


@runtime_checkable
class TransferSubstrate(Protocol):
    """External mechanism that physically moves value in and out of the ledger's custody.

    The ledger only decides how much moves where. pull/push report failure by
    returning False (an insufficient authorization, a recipient refusing value).
    Native value attached to a call is settled through pull as well.

    transaction() delimits one all-or-nothing unit: leaving it with an exception
    must discard every pull and push made inside it. Pushes to third parties cannot
    be reversed from the ledger side, so this guarantee belongs to the substrate.
    """

    def pull(self, asset_id: AssetId, source: HolderId, amount: int) -> bool: ...

    def push(self, asset_id: AssetId, destination: HolderId, amount: int) -> bool: ...

    def transaction(self) -> AbstractContextManager[None]: ...
