from pathlib import Path

import pytest

from db.repositories import LedgerStateRepository
from domain.errors import MalformedBatch
from domain.ledger import NATIVE_ASSET
from main import main, parse_deposit, parse_payout

TOKEN = "0x00000000000000000000000000000000000000aa"


@pytest.fixture()
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "ledger.db"


def run(db_file: Path, *argv: str) -> int:
    return main(["--db", str(db_file), *argv])


@pytest.fixture()
def initialised(db_file: Path, capsys: pytest.CaptureFixture[str]) -> Path:
    assert run(db_file, "init", "--owner", "owner", "--fee-bps", "5") == 0
    assert run(db_file, "fund", "employer", TOKEN, "20000") == 0
    assert run(db_file, "fund", "employer", "native", "1000") == 0
    assert run(db_file, "whitelist", "--caller", "owner", TOKEN) == 0
    capsys.readouterr()
    return db_file


def balance(db_file: Path, capsys: pytest.CaptureFixture[str], *argv: str) -> str:
    assert run(db_file, "balance", *argv) == 0
    return capsys.readouterr().out.strip()


def test_init_reports_ledger(db_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(db_file, "init", "--owner", "owner") == 0

    assert "owned by owner" in capsys.readouterr().out
    assert db_file.exists()


def test_init_twice_requires_reset(db_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run(db_file, "init", "--owner", "owner")

    assert run(db_file, "init", "--owner", "other") == 1
    assert "already initialised" in capsys.readouterr().err
    assert run(db_file, "init", "--owner", "other", "--reset") == 0
    run(db_file, "owner")
    assert capsys.readouterr().out.strip().endswith("other")


def test_commands_require_initialised_ledger(db_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(db_file, "owner") == 1
    assert "not initialised" in capsys.readouterr().err


def test_pay_persists_between_invocations(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert (
        run(
            initialised,
            "pay",
            "--caller",
            "employer",
            "--deposit",
            f"{TOKEN}:10000",
            "--payout",
            f"{TOKEN}:alice:6000",
            "--payout",
            f"{TOKEN}:bob:3000",
        )
        == 0
    )
    out = capsys.readouterr().out
    assert f"Fee retained: 5 {TOKEN}" in out
    assert f"Paid 6000 {TOKEN} to alice" in out

    assert balance(initialised, capsys, "alice", TOKEN, "--external") == "6000"
    assert balance(initialised, capsys, "bob", TOKEN, "--external") == "3000"
    assert balance(initialised, capsys, "employer", TOKEN, "--external") == "10000"
    assert balance(initialised, capsys, "employer", TOKEN) == "995"
    assert balance(initialised, capsys, "multisend", TOKEN) == "5"


def test_pay_with_native_value_and_csv(initialised: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    payouts = tmp_path / "payouts.csv"
    payouts.write_text("asset_id,recipient,amount\nnative,carol,500\n")

    assert (
        run(initialised, "pay", "--caller", "employer", "--value", "1000", "--payouts-csv", str(payouts))
        == 0
    )
    capsys.readouterr()

    assert balance(initialised, capsys, "carol", "native", "--external") == "500"
    assert balance(initialised, capsys, "employer", "native") == "500"


def test_failed_pay_changes_nothing(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = run(
        initialised,
        "pay",
        "--caller",
        "employer",
        "--deposit",
        f"{TOKEN}:100",
        "--payout",
        f"{TOKEN}:alice:200",
    )

    assert code == 1
    assert "error:" in capsys.readouterr().err
    assert balance(initialised, capsys, "employer", TOKEN, "--external") == "20000"
    assert balance(initialised, capsys, "alice", TOKEN, "--external") == "0"
    run(initialised, "journal")
    assert capsys.readouterr().out == ""


def test_only_owner_can_whitelist(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(initialised, "whitelist", "--caller", "employer", "0xbb") == 1
    assert "employer is not allowed to" in capsys.readouterr().err


def test_owner_withdraws_reserve(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run(initialised, "deposit", "--caller", "employer", "--deposit", f"{TOKEN}:10000")
    capsys.readouterr()

    assert run(initialised, "withdraw-reserve", "--caller", "employer", TOKEN) == 1
    assert run(initialised, "withdraw-reserve", "--caller", "owner", TOKEN) == 0
    capsys.readouterr()

    assert balance(initialised, capsys, "owner", TOKEN, "--external") == "5"
    assert balance(initialised, capsys, "multisend", TOKEN) == "0"


def test_transfer_ownership_and_journal(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    run(initialised, "deposit", "--caller", "employer", "--deposit", f"{TOKEN}:10000")
    run(initialised, "withdraw-unspent", "--caller", "employer", TOKEN, "995")
    assert run(initialised, "transfer-ownership", "--caller", "owner", "new-owner") == 0
    capsys.readouterr()

    run(initialised, "owner")
    assert capsys.readouterr().out.strip() == "new-owner"
    run(initialised, "journal")
    journal = capsys.readouterr().out
    assert "DEPOSIT by employer" in journal
    assert "UNSPENT_WITHDRAWAL by employer" in journal
    assert balance(initialised, capsys, "employer", TOKEN) == "9000"


def test_decimals_scale_amounts(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(initialised, "--decimals", "2", "fund", "dave", TOKEN, "1.25") == 0
    capsys.readouterr()

    assert balance(initialised, capsys, "dave", TOKEN, "--external") == "125"
    assert run(initialised, "--decimals", "2", "balance", "dave", TOKEN, "--external") == 0
    assert capsys.readouterr().out.strip() == "1.25"


def test_parse_deposit_and_payout() -> None:
    deposit = parse_deposit(f"{TOKEN}:1.5", 1)
    payout = parse_payout("native:alice:2", 0)

    assert deposit.asset_id == TOKEN
    assert deposit.amount == 15
    assert payout.asset_id == NATIVE_ASSET
    assert payout.recipient == "alice"
    assert payout.amount == 2


@pytest.mark.parametrize("raw", ["alice", f"{TOKEN}:alice", f"{TOKEN}::1", f"{TOKEN}:alice:x"])
def test_parse_payout_rejects_malformed(raw: str) -> None:
    with pytest.raises(MalformedBatch):
        parse_payout(raw, 0)


def test_native_deposit_must_use_value(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(initialised, "deposit", "--caller", "employer", "--deposit", "native:100") == 1
    assert "--value" in capsys.readouterr().err
    assert balance(initialised, capsys, "employer", "native", "--external") == "1000"


def test_ledger_address_cannot_take_part_in_batches(initialised: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(initialised, "deposit", "--caller", "multisend", "--deposit", f"{TOKEN}:100") == 1
    code = run(
        initialised,
        "pay",
        "--caller",
        "employer",
        "--deposit",
        f"{TOKEN}:100",
        "--payout",
        f"{TOKEN}:multisend:50",
    )
    assert code == 1
    capsys.readouterr()

    assert balance(initialised, capsys, "employer", TOKEN, "--external") == "20000"
    assert balance(initialised, capsys, "multisend", TOKEN) == "0"


def test_unloadable_ledger_is_reported(
    initialised: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(LedgerStateRepository, "load", lambda self, substrate: None)

    assert run(initialised, "owner") == 1
    assert "not initialised" in capsys.readouterr().err
