import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from core.entropy import EntropySource
from core.account_manager import AccountManager
from services.provenance_service import compute_provenance_hash

ADMIN = "0x" + "a" * 40
ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40

SLOT_COUNT = 10
SLOT_PRICE = 10 ** 17  # 0.1 ether
INDICES = [2, 1, 8, 5, 3, 7, 0, 4, 6, 9]
SALT = "0xdeadbeef"
PROVENANCE_HASH = compute_provenance_hash(INDICES, SALT)


def buyer(n: int) -> str:
    return "0x" + f"{n + 1:040x}"


class StubEntropy(EntropySource):
    """Entropy with a value the test controls; counts how often it is read."""

    def __init__(self, value: int = 0) -> None:
        self.value = value
        self.reads = 0

    def current_value(self, db) -> int:
        self.reads += 1
        return self.value


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def entropy():
    return StubEntropy(0)


@pytest.fixture
def fund(db):
    def _fund(address: str, amount: int = 10 ** 19) -> int:
        return AccountManager.fund(db, address, amount)
    return _fund
