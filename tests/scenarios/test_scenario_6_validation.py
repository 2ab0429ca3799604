"""Scenario 6: Validation Boundaries, Missing Header and Snapshot TTL

Server side:
- The idempotency header is checked before the body is looked at
- Malformed bodies are 400, invalid values are 422
- amount 0, -5 and NaN and a blank destination are rejected; 0.0001 is accepted
- Rejected requests store nothing and do not bind the key

Client side:
- A snapshot younger than the TTL is restored verbatim
- An older snapshot is discarded
"""

import pytest
from fastapi.testclient import TestClient

from idempotent_withdrawals.adapters.http import create_app
from idempotent_withdrawals.client.machine import WithdrawalRequestMachine
from idempotent_withdrawals.client.snapshot import MemoryKeyValueStorage, SnapshotPersistence
from idempotent_withdrawals.config import WithdrawalsConfig
from idempotent_withdrawals.models import ErrorKind, RequestStatus, WithdrawState


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def post_json(client, body, key="key-1"):
    headers = {"Idempotency-Key": key} if key is not None else {}
    return client.post("/withdrawals", json=body, headers=headers)


def post_raw(client, content, key="key-1"):
    headers = {"Content-Type": "application/json"}
    if key is not None:
        headers["Idempotency-Key"] = key
    return client.post("/withdrawals", content=content, headers=headers)


class TestMissingHeader:
    def test_missing_header_is_400(self, client, records):
        response = post_json(client, {"amount": 100, "destination": "acc"}, key=None)
        assert response.status_code == 400
        assert response.json() == {"message": "Missing Idempotency-Key header."}
        assert records._records == {}

    @pytest.mark.parametrize("key", ["", "   "])
    def test_blank_header_is_400(self, client, key):
        response = post_json(client, {"amount": 100, "destination": "acc"}, key=key)
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "content",
        [b"", b"not json", b"[1, 2]", b'{"amount": 0, "destination": ""}'],
    )
    def test_header_checked_before_body(self, client, content):
        response = post_raw(client, content, key=None)
        assert response.status_code == 400
        assert response.json() == {"message": "Missing Idempotency-Key header."}

    def test_overlong_key_is_400(self, client):
        response = post_json(client, {"amount": 1, "destination": "acc"}, key="k" * 256)
        assert response.status_code == 400
        assert "255" in response.json()["message"]

    def test_key_limit_is_configurable(self, records, index):
        client = TestClient(create_app(records, index, WithdrawalsConfig(max_key_length=8)))
        assert post_json(client, {"amount": 1, "destination": "a"}, key="k" * 9).status_code == 400
        assert post_json(client, {"amount": 1, "destination": "a"}, key="k" * 8).status_code == 201


class TestMalformedBody:
    @pytest.mark.parametrize("content", [b"", b"not json", b"[1, 2]", b'"text"', b"42", b"null"])
    def test_malformed_body_is_400(self, client, content):
        response = post_raw(client, content)
        assert response.status_code == 400
        assert response.json() == {"message": "Malformed request body."}


class TestValueValidation:
    @pytest.mark.parametrize(
        "amount",
        [0, -5, -0.0001, "abc", None, True, [], {}],
    )
    def test_invalid_amount_is_422(self, client, amount, records):
        response = post_json(client, {"amount": amount, "destination": "acc"})
        assert response.status_code == 422
        assert response.json() == {"message": "Amount must be a number greater than 0."}
        assert records._records == {}

    @pytest.mark.parametrize("token", [b"NaN", b"Infinity", b"-Infinity"])
    def test_non_finite_amount_is_422(self, client, token):
        response = post_raw(client, b'{"amount": ' + token + b', "destination": "acc"}')
        assert response.status_code == 422

    @pytest.mark.parametrize("sign", [b"", b"-"])
    def test_amount_beyond_float_range_is_422(self, client, sign, records):
        huge = sign + b"1" + b"0" * 400
        response = post_raw(client, b'{"amount": ' + huge + b', "destination": "acc"}')
        assert response.status_code == 422
        assert response.json() == {"message": "Amount must be a number greater than 0."}
        assert records._records == {}

    def test_missing_amount_is_422(self, client):
        assert post_json(client, {"destination": "acc"}).status_code == 422

    @pytest.mark.parametrize("destination", ["", "   ", "\t\n", None])
    def test_blank_destination_is_422(self, client, destination):
        response = post_json(client, {"amount": 10, "destination": destination})
        assert response.status_code == 422
        assert response.json() == {"message": "Destination is required."}

    def test_amount_checked_before_destination(self, client):
        response = post_json(client, {"amount": 0, "destination": ""})
        assert response.json() == {"message": "Amount must be a number greater than 0."}

    @pytest.mark.parametrize("amount", [0.0001, "12.5", 1e9])
    def test_boundary_amounts_accepted(self, client, amount):
        response = post_json(client, {"amount": amount, "destination": "acc"})
        assert response.status_code == 201
        assert response.json()["withdrawal"]["amount"] == float(amount)

    def test_rejection_does_not_bind_key(self, client):
        assert post_json(client, {"amount": -5, "destination": "acc"}).status_code == 422
        assert post_json(client, {"amount": 5, "destination": "acc"}).status_code == 201


class TestSnapshotTTL:
    def make_machine(self, snapshots, clock):
        return WithdrawalRequestMachine(
            api=None,  # type: ignore[arg-type]
            snapshots=snapshots,
            clock=clock,
        )

    def seed(self, snapshots, clock):
        snapshots.save(
            WithdrawState(
                amount="100",
                destination="acc-42",
                confirm=True,
                status=RequestStatus.ERROR,
                error_kind=ErrorKind.NETWORK,
                last_idempotency_key="key-1",
                last_request_at=clock.now,
            )
        )

    def test_fresh_snapshot_restored_verbatim(self, clock):
        snapshots = SnapshotPersistence(MemoryKeyValueStorage(), clock=clock)
        self.seed(snapshots, clock)
        clock.advance(120)

        machine = self.make_machine(snapshots, clock)

        assert machine.resume() is True
        state = machine.state
        assert (state.amount, state.destination, state.confirm) == ("100", "acc-42", True)
        assert state.last_idempotency_key == "key-1"

    def test_stale_snapshot_discarded(self, clock):
        snapshots = SnapshotPersistence(MemoryKeyValueStorage(), clock=clock)
        self.seed(snapshots, clock)
        clock.advance(301)

        machine = self.make_machine(snapshots, clock)

        assert machine.resume() is False
        assert machine.state == WithdrawState()
        assert snapshots.storage.get("withdraw:last") is None
