import pytest

from domain.ledger import NATIVE_ASSET, NULL_HOLDER, RESERVE_HOLDER, AssetId, HolderId
from domain.substrate import TransferSubstrate
from services.simulated_substrate import SimulatedSubstrate

TOKEN = AssetId("0x00000000000000000000000000000000000000aa")
ALICE = HolderId("alice")
BOB = HolderId("bob")


@pytest.fixture()
def substrate() -> SimulatedSubstrate:
    substrate = SimulatedSubstrate()
    substrate.mint(account_id=ALICE, asset_id=TOKEN, amount=100)
    return substrate


def test_satisfies_transfer_substrate_protocol(substrate: SimulatedSubstrate) -> None:
    assert isinstance(substrate, TransferSubstrate)


def test_pull_moves_value_into_custody(substrate: SimulatedSubstrate) -> None:
    assert substrate.pull(TOKEN, ALICE, 40) is True

    assert substrate.balance_of(ALICE, TOKEN) == 60
    assert substrate.custody_balance(TOKEN) == 40
    assert substrate.balance_of(RESERVE_HOLDER, TOKEN) == 40


def test_pull_beyond_balance_fails_without_side_effects(substrate: SimulatedSubstrate) -> None:
    assert substrate.pull(TOKEN, ALICE, 101) is False

    assert substrate.balance_of(ALICE, TOKEN) == 100
    assert substrate.custody_balance(TOKEN) == 0


def test_push_pays_out_of_custody(substrate: SimulatedSubstrate) -> None:
    substrate.pull(TOKEN, ALICE, 40)

    assert substrate.push(TOKEN, BOB, 15) is True
    assert substrate.push(TOKEN, BOB, 26) is False

    assert substrate.balance_of(BOB, TOKEN) == 15
    assert substrate.custody_balance(TOKEN) == 25


def test_rejecting_account_refuses_pushes(substrate: SimulatedSubstrate) -> None:
    substrate.pull(TOKEN, ALICE, 40)
    substrate.reject_payments_to(BOB)

    assert substrate.push(TOKEN, BOB, 10) is False
    substrate.accept_payments_to(BOB)
    assert substrate.push(TOKEN, BOB, 10) is True


def test_token_push_to_zero_address_fails_but_native_burn_succeeds() -> None:
    substrate = SimulatedSubstrate()
    substrate.mint(account_id=RESERVE_HOLDER, asset_id=TOKEN, amount=10)
    substrate.mint(account_id=RESERVE_HOLDER, asset_id=NATIVE_ASSET, amount=10)

    assert substrate.push(TOKEN, NULL_HOLDER, 1) is False
    assert substrate.push(NATIVE_ASSET, NULL_HOLDER, 1) is True
    assert substrate.custody_balance(NATIVE_ASSET) == 9


def test_transaction_restores_accounts_on_error(substrate: SimulatedSubstrate) -> None:
    with pytest.raises(RuntimeError):
        with substrate.transaction():
            substrate.pull(TOKEN, ALICE, 40)
            substrate.push(TOKEN, BOB, 40)
            raise RuntimeError("abort")

    assert substrate.balance_of(ALICE, TOKEN) == 100
    assert substrate.balance_of(BOB, TOKEN) == 0
    assert substrate.custody_balance(TOKEN) == 0


def test_nested_transaction_is_rolled_back_by_outer(substrate: SimulatedSubstrate) -> None:
    with pytest.raises(RuntimeError):
        with substrate.transaction():
            with substrate.transaction():
                substrate.pull(TOKEN, ALICE, 40)
            assert substrate.custody_balance(TOKEN) == 40
            raise RuntimeError("abort")

    assert substrate.balance_of(ALICE, TOKEN) == 100
    assert substrate.custody_balance(TOKEN) == 0


def test_committed_transaction_keeps_changes(substrate: SimulatedSubstrate) -> None:
    with substrate.transaction():
        substrate.pull(TOKEN, ALICE, 40)

    assert substrate.custody_balance(TOKEN) == 40


def test_transfers_within_custody_fail() -> None:
    substrate = SimulatedSubstrate()
    substrate.mint(account_id=RESERVE_HOLDER, asset_id=TOKEN, amount=10)

    assert substrate.pull(TOKEN, RESERVE_HOLDER, 5) is False
    assert substrate.push(TOKEN, RESERVE_HOLDER, 5) is False
    assert substrate.custody_balance(TOKEN) == 10
