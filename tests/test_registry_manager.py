import pytest

from models import Raffle
from core.registry_manager import RegistryManager
from core.raffle_manager import RaffleManager
from core import ledger
from core.exceptions import (
    InvalidAdministrator,
    InvalidCommitment,
    RaffleNotFound,
    RegistryNotFound,
    TooFewSlots,
    Unauthorized,
)
from tests.conftest import ADMIN, ALICE, BOB, PROVENANCE_HASH, SLOT_COUNT, SLOT_PRICE


@pytest.fixture
def registry(db):
    return RegistryManager.deploy_registry(db, ADMIN)


def test_new_registry_is_empty(db, registry):
    assert registry.administrator == ADMIN
    assert RegistryManager.count(db, registry.address) == 0
    assert RegistryManager.list_raffles(db, registry.address) == []


def test_create_forwards_administration(db, registry):
    raffle = RegistryManager.create_raffle(
        db, registry.address, ADMIN, SLOT_COUNT, SLOT_PRICE, PROVENANCE_HASH
    )
    assert raffle.administrator == ADMIN
    assert RegistryManager.count(db, registry.address) == 1
    assert RegistryManager.raffle_at(db, registry.address, 0) == raffle.address

    events = RaffleManager.get_events(db, raffle.address)
    assert [(e.event_type, e.data) for e in events] == [
        ("OWNERSHIP_TRANSFERRED", {"previous": None, "new": registry.address}),
        ("OWNERSHIP_TRANSFERRED", {"previous": registry.address, "new": ADMIN}),
    ]


def test_registry_administrator_controls_created_raffle(db, registry):
    raffle = RegistryManager.create_raffle(db, registry.address, ADMIN, 2, 0, PROVENANCE_HASH)
    assert RaffleManager.purchase_privileged(db, raffle.address, ADMIN) == 0
    with pytest.raises(Unauthorized):
        RaffleManager.purchase_privileged(db, raffle.address, registry.address)


def test_list_grows_in_creation_order(db, registry):
    created = [
        RegistryManager.create_raffle(db, registry.address, ADMIN, n, SLOT_PRICE, PROVENANCE_HASH).address
        for n in (2, 3, 4)
    ]
    assert RegistryManager.list_raffles(db, registry.address) == created
    assert RegistryManager.count(db, registry.address) == 3
    assert len(set(created)) == 3

    registry_events = ledger.list_events(db, registry.address)
    assert [e.data["address"] for e in registry_events if e.event_type == "RAFFLE_CREATED"] == created


def test_create_by_non_administrator(db, registry):
    with pytest.raises(Unauthorized):
        RegistryManager.create_raffle(db, registry.address, ALICE, SLOT_COUNT, SLOT_PRICE, PROVENANCE_HASH)
    assert RegistryManager.count(db, registry.address) == 0
    assert db.query(Raffle).count() == 0


@pytest.mark.parametrize(
    "slot_count, provenance_hash, error",
    [
        (1, PROVENANCE_HASH, TooFewSlots),
        (SLOT_COUNT, "0x" + "0" * 64, InvalidCommitment),
    ],
)
def test_invalid_raffle_leaves_no_entry(db, registry, slot_count, provenance_hash, error):
    with pytest.raises(error):
        RegistryManager.create_raffle(db, registry.address, ADMIN, slot_count, SLOT_PRICE, provenance_hash)
    assert RegistryManager.count(db, registry.address) == 0
    assert db.query(Raffle).count() == 0


def test_raffle_at_out_of_range(db, registry):
    with pytest.raises(RaffleNotFound):
        RegistryManager.raffle_at(db, registry.address, 0)


def test_unknown_registry(db):
    with pytest.raises(RegistryNotFound):
        RegistryManager.count(db, "0x" + "e" * 40)
    with pytest.raises(RegistryNotFound):
        RegistryManager.create_raffle(db, "0x" + "e" * 40, ADMIN, 2, 1, PROVENANCE_HASH)


def test_deploy_rejects_zero_administrator(db):
    with pytest.raises(InvalidAdministrator):
        RegistryManager.deploy_registry(db, "0x" + "0" * 40)


def test_transfer_registry_administration(db, registry):
    before = RegistryManager.create_raffle(db, registry.address, ADMIN, 2, 1, PROVENANCE_HASH)
    RegistryManager.transfer_administration(db, registry.address, ADMIN, BOB)

    with pytest.raises(Unauthorized):
        RegistryManager.create_raffle(db, registry.address, ADMIN, 2, 1, PROVENANCE_HASH)
    after = RegistryManager.create_raffle(db, registry.address, BOB, 2, 1, PROVENANCE_HASH)

    assert after.administrator == BOB
    # raffles created earlier keep their administrator
    assert RaffleManager.get_raffle(db, before.address).administrator == ADMIN
