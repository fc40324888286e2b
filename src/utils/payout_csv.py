from __future__ import annotations

import csv
from pathlib import Path

from domain.errors import MalformedBatch
from domain.ledger import NATIVE_ASSET, AssetId, HolderId, Payout
from utils.formatting import to_base_units

NATIVE_ALIASES = {"native", "eth"}


def parse_asset(raw: str) -> AssetId:
    asset = raw.strip()
    if asset.lower() in NATIVE_ALIASES:
        return NATIVE_ASSET
    return AssetId(asset)


def load_payouts(csv_path: Path, *, decimals: int = 0) -> list[Payout]:
    """Load payout instructions from a CSV file.

    Each row should contain: asset_id,recipient,amount[,label]
    Amounts are scaled by ``decimals``; "native" names the native asset.
    """

    with csv_path.open(newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise MalformedBatch(f"Payout CSV {csv_path} is empty or missing headers")

        fieldnames = {name.strip().lower() for name in reader.fieldnames}
        required = {"asset_id", "recipient", "amount"}
        missing = required - fieldnames
        if missing:
            raise MalformedBatch(f"Payout CSV {csv_path} missing required columns: {', '.join(sorted(missing))}")

        payouts: list[Payout] = []
        for row_num, row in enumerate(reader, start=2):
            normalized = {k.strip().lower(): (v or "").strip() for k, v in row.items() if k is not None}
            recipient = normalized["recipient"]
            if not recipient:
                raise MalformedBatch(f"Row {row_num}: missing recipient")
            try:
                amount = to_base_units(normalized["amount"], decimals)
            except ValueError as err:
                raise MalformedBatch(f"Row {row_num}: {err}") from err

            payouts.append(
                Payout(
                    asset_id=parse_asset(normalized["asset_id"]),
                    recipient=HolderId(recipient),
                    amount=amount,
                )
            )

    return payouts
