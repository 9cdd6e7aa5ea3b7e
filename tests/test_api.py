import pytest
from fastapi.testclient import TestClient

from main import app
from database import get_db
from core.entropy import get_entropy_source
from tests.conftest import (
    ADMIN,
    ALICE,
    BOB,
    INDICES,
    PROVENANCE_HASH,
    SALT,
    SLOT_COUNT,
    SLOT_PRICE,
    StubEntropy,
)


@pytest.fixture
def client(session_factory, entropy):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_entropy_source] = lambda: entropy
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def registry(client):
    resp = client.post("/api/registries", json={"administrator": ADMIN})
    assert resp.status_code == 200
    return resp.json()["address"]


@pytest.fixture
def raffle(client, registry):
    resp = client.post(
        f"/api/registries/{registry}/raffles",
        json={
            "caller": ADMIN,
            "slot_count": SLOT_COUNT,
            "slot_price": SLOT_PRICE,
            "provenance_hash": PROVENANCE_HASH,
        },
    )
    assert resp.status_code == 200
    return resp.json()["address"]


def error_of(resp):
    return resp.json()["detail"]["error"]


def fill(client, raffle, who=ALICE):
    client.post(f"/api/accounts/{who}/fund", json={"amount": SLOT_PRICE * SLOT_COUNT})
    for i in range(SLOT_COUNT):
        resp = client.post(
            f"/api/raffles/{raffle}/purchase",
            json={"caller": who, "paid_amount": SLOT_PRICE},
        )
        assert resp.status_code == 200
        assert resp.json() == {"slot_index": i}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_registry_view(client, registry, raffle):
    resp = client.get(f"/api/registries/{registry}")
    assert resp.json() == {"address": registry, "administrator": ADMIN, "count": 1}
    assert client.get(f"/api/registries/{registry}/raffles").json()["raffles"] == [raffle]


def test_registry_create_by_non_administrator(client, registry):
    resp = client.post(
        f"/api/registries/{registry}/raffles",
        json={"caller": BOB, "slot_count": 2, "slot_price": 1, "provenance_hash": PROVENANCE_HASH},
    )
    assert resp.status_code == 403
    assert error_of(resp) == "Unauthorized"


def test_create_validation_errors(client):
    resp = client.post(
        "/api/raffles",
        json={"caller": ADMIN, "slot_count": 1, "slot_price": 1, "provenance_hash": PROVENANCE_HASH},
    )
    assert resp.status_code == 400
    assert error_of(resp) == "TooFewSlots"

    resp = client.post(
        "/api/raffles",
        json={"caller": ADMIN, "slot_count": 2, "slot_price": 1, "provenance_hash": "0x" + "0" * 64},
    )
    assert resp.status_code == 400
    assert error_of(resp) == "InvalidCommitment"

    resp = client.post(
        "/api/raffles",
        json={"caller": ADMIN, "slot_count": 2, "slot_price": -1, "provenance_hash": PROVENANCE_HASH},
    )
    assert resp.status_code == 422


def test_full_lifecycle(client, raffle, entropy):
    view = client.get(f"/api/raffles/{raffle}").json()
    assert view["phase"] == "SELLING"
    assert view["administrator"] == ADMIN
    assert view["has_available_slots"] is True

    fill(client, raffle)
    view = client.get(f"/api/raffles/{raffle}").json()
    assert view["phase"] == "FULL"
    assert view["balance"] == SLOT_PRICE * SLOT_COUNT

    resp = client.post(
        f"/api/raffles/{raffle}/purchase", json={"caller": BOB, "paid_amount": SLOT_PRICE}
    )
    assert resp.status_code == 409
    assert error_of(resp) == "NoSlotsAvailable"

    entropy.value = 30
    resp = client.post(
        f"/api/raffles/{raffle}/reveal",
        json={"caller": ADMIN, "indices": INDICES, "salt": SALT},
    )
    assert resp.status_code == 200
    view = resp.json()
    assert view["phase"] == "WINNER_SELECTED"
    assert view["winning_slot"] == 2
    assert view["winner"] == ALICE
    assert view["winning_indices"] == INDICES

    resp = client.post(
        f"/api/raffles/{raffle}/reveal",
        json={"caller": ADMIN, "indices": INDICES, "salt": SALT},
    )
    assert resp.status_code == 409
    assert error_of(resp) == "WinnerAlreadyPicked"

    resp = client.post(f"/api/raffles/{raffle}/withdraw", json={"caller": ADMIN})
    assert resp.json() == {"amount": SLOT_PRICE * SLOT_COUNT}
    assert client.get(f"/api/accounts/{ADMIN}").json()["balance"] == SLOT_PRICE * SLOT_COUNT
    assert client.get(f"/api/raffles/{raffle}").json()["balance"] == 0

    events = client.get(f"/api/raffles/{raffle}/events").json()
    assert events[-2]["event_type"] == "WINNER_SELECTED"
    assert events[-2]["data"] == {"winner": ALICE, "slot_index": 2}
    assert events[-1]["event_type"] == "FUNDS_WITHDRAWN"


def test_purchase_errors(client, raffle):
    resp = client.post(
        f"/api/raffles/{raffle}/purchase", json={"caller": ADMIN, "paid_amount": SLOT_PRICE}
    )
    assert resp.status_code == 403
    assert error_of(resp) == "OwnerCannotBuyUnprivileged"

    resp = client.post(
        f"/api/raffles/{raffle}/purchase", json={"caller": BOB, "paid_amount": 1}
    )
    assert resp.status_code == 400
    assert error_of(resp) == "InsufficientPayment"

    resp = client.post(
        f"/api/raffles/{raffle}/purchase", json={"caller": BOB, "paid_amount": SLOT_PRICE}
    )
    assert resp.status_code == 400
    assert error_of(resp) == "InsufficientFunds"


def test_reveal_errors(client, raffle):
    resp = client.post(
        f"/api/raffles/{raffle}/reveal", json={"caller": ADMIN, "indices": INDICES, "salt": SALT}
    )
    assert resp.status_code == 409
    assert error_of(resp) == "SaleOngoing"

    fill(client, raffle)
    resp = client.post(
        f"/api/raffles/{raffle}/reveal", json={"caller": BOB, "indices": INDICES, "salt": SALT}
    )
    assert resp.status_code == 403

    resp = client.post(
        f"/api/raffles/{raffle}/reveal", json={"caller": ADMIN, "indices": INDICES[:3], "salt": SALT}
    )
    assert error_of(resp) == "ArrayLengthMismatch"

    resp = client.post(
        f"/api/raffles/{raffle}/reveal", json={"caller": ADMIN, "indices": INDICES, "salt": "0x00"}
    )
    assert error_of(resp) == "InvalidCommitment"


def test_privileged_purchase_and_slot_lookup(client, raffle):
    resp = client.post(f"/api/raffles/{raffle}/purchase-privileged", json={"caller": ADMIN})
    assert resp.json() == {"slot_index": 0}
    assert client.get(f"/api/raffles/{raffle}/slots/0").json() == {"slot_index": 0, "buyer": ADMIN}

    resp = client.get(f"/api/raffles/{raffle}/slots/1")
    assert resp.status_code == 404
    assert error_of(resp) == "SlotNotFound"

    resp = client.post(f"/api/raffles/{raffle}/purchase-privileged", json={"caller": BOB})
    assert resp.status_code == 403


def test_transfer_raffle_administration(client, raffle):
    resp = client.post(
        f"/api/raffles/{raffle}/administrator",
        json={"caller": ADMIN, "new_administrator": BOB},
    )
    assert resp.json()["administrator"] == BOB
    resp = client.post(f"/api/raffles/{raffle}/withdraw", json={"caller": ADMIN})
    assert resp.status_code == 403


def test_unknown_raffle(client):
    resp = client.get("/api/raffles/0x" + "f" * 40)
    assert resp.status_code == 404
    assert error_of(resp) == "RaffleNotFound"


def test_bad_address_is_rejected(client, raffle):
    resp = client.post(
        f"/api/raffles/{raffle}/purchase", json={"caller": "alice", "paid_amount": SLOT_PRICE}
    )
    assert resp.status_code == 422


def test_raffle_view_lists_slot_owners_in_order(client, raffle):
    assert client.get(f"/api/raffles/{raffle}").json()["slots"] == []

    client.post(f"/api/raffles/{raffle}/purchase-privileged", json={"caller": ADMIN})
    client.post(f"/api/accounts/{BOB}/fund", json={"amount": SLOT_PRICE})
    client.post(f"/api/raffles/{raffle}/purchase", json={"caller": BOB, "paid_amount": SLOT_PRICE})
    client.post(f"/api/raffles/{raffle}/purchase-privileged", json={"caller": ADMIN, "paid_amount": 0})

    view = client.get(f"/api/raffles/{raffle}").json()
    assert view["slots"] == [ADMIN, BOB, ADMIN]
    assert view["slots_sold"] == 3
