from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from domain.multisend import Multisend
from services.simulated_substrate import SimulatedSubstrate
from tests.constants import (
    EMPLOYEE1,
    EMPLOYER,
    FEE_BPS,
    NATIVE,
    OWNER,
    STARTING_NATIVE,
    STARTING_TOKENS,
    TOKEN1,
    TOKEN2,
    TOKEN3,
    UNLISTED_TOKEN,
)

engine: Engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def substrate() -> SimulatedSubstrate:
    substrate = SimulatedSubstrate()
    for account in (EMPLOYER, EMPLOYEE1):
        for token in (TOKEN1, TOKEN2, TOKEN3, UNLISTED_TOKEN):
            substrate.mint(account_id=account, asset_id=token, amount=STARTING_TOKENS)
        substrate.mint(account_id=account, asset_id=NATIVE, amount=STARTING_NATIVE)
    return substrate


@pytest.fixture(scope="function")
def multisend(substrate: SimulatedSubstrate) -> Multisend:
    ledger = Multisend(owner=OWNER, fee_policy=FEE_BPS, substrate=substrate)
    for token in (TOKEN1, TOKEN2, TOKEN3):
        ledger.whitelist(OWNER, token)
    return ledger
