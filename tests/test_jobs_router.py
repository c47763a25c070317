"""
Tests for jobs router.

Covers the HTTP surface over the engine: status codes, caller identity
resolution, and the trigger callback path.
"""

import pytest

from src.engine.entities import ScheduleRef

from engine.conftest import MockClock

CALLBACK_TOKEN = "callback-secret"


def _as(caller: str) -> dict:
    return {"X-Caller-Id": caller}


SCHEDULER_HEADERS = {"X-Scheduler-Token": CALLBACK_TOKEN}


@pytest.fixture
def clock(init_engine) -> MockClock:
    """Freeze the engine clock so fire times are predictable."""
    mock_clock = MockClock(start=5000)
    init_engine.engine.clock = mock_clock
    return mock_clock


def _create(client, caller="alice", kind="ONE_SHOT", interval=60):
    return client.post(
        "/jobs",
        json={"kind": kind, "interval_seconds": interval},
        headers=_as(caller),
    )


class TestCreateEndpoint:
    """Tests for POST /jobs."""

    def test_create_one_shot(self, client, clock, fake_gateway):
        response = _create(client, interval=60)

        assert response.status_code == 201
        data = response.json()
        assert data["owner_id"] == "alice"
        assert data["kind"] == "ONE_SHOT"
        assert data["next_fire_time"] == 5060
        assert data["trigger_count"] == 0
        assert data["active"] is True
        assert data["has_pending_schedule"] is True
        assert fake_gateway.schedule_calls[0]["payload"] == {"job_id": data["job_id"]}

    def test_second_recurring_chain_conflicts(self, client, clock):
        assert _create(client, kind="RECURRING", interval=15).status_code == 201

        response = _create(client, kind="RECURRING", interval=30)

        assert response.status_code == 409

    def test_other_owner_may_start_chain(self, client, clock):
        assert _create(client, caller="alice", kind="RECURRING").status_code == 201
        assert _create(client, caller="bob", kind="RECURRING").status_code == 201

    @pytest.mark.parametrize("interval", [0, -5])
    def test_non_positive_interval(self, client, clock, interval):
        response = _create(client, interval=interval)
        assert response.status_code == 422

    def test_unknown_kind(self, client, clock):
        response = _create(client, kind="WEEKLY")
        assert response.status_code == 422

    def test_placement_failure_still_creates(self, client, clock, fake_gateway):
        fake_gateway.fail_schedule = True

        response = _create(client)

        assert response.status_code == 201
        assert response.json()["has_pending_schedule"] is False


class TestCallerIdentity:
    """Tests for X-Caller-Id / X-Scheduler-Token resolution."""

    def test_missing_caller(self, client, clock):
        response = client.post("/jobs", json={"kind": "ONE_SHOT", "interval_seconds": 60})
        assert response.status_code == 401

    def test_caller_cannot_claim_scheduler_identity(self, client, clock):
        job_id = _create(client).json()["job_id"]

        response = client.post(f"/jobs/{job_id}/trigger", headers=_as("scheduler"))

        assert response.status_code == 401

    def test_bad_scheduler_token(self, client, clock):
        job_id = _create(client).json()["job_id"]

        response = client.post(
            f"/jobs/{job_id}/trigger",
            headers={"X-Scheduler-Token": "wrong"},
        )

        assert response.status_code == 401


class TestTriggerEndpoint:
    """Tests for POST /jobs/{job_id}/trigger."""

    def test_scheduler_callback(self, client, clock):
        job_id = _create(client).json()["job_id"]
        clock.set(5060)

        response = client.post(f"/jobs/{job_id}/trigger", headers=SCHEDULER_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["trigger_count"] == 1
        assert data["last_triggered_at"] == 5060
        assert data["active"] is False

    def test_one_shot_second_trigger_conflicts(self, client, clock):
        job_id = _create(client).json()["job_id"]
        client.post(f"/jobs/{job_id}/trigger", headers=_as("alice"))

        response = client.post(f"/jobs/{job_id}/trigger", headers=SCHEDULER_HEADERS)

        assert response.status_code == 409

    def test_stranger_forbidden(self, client, clock):
        job_id = _create(client).json()["job_id"]

        response = client.post(f"/jobs/{job_id}/trigger", headers=_as("mallory"))

        assert response.status_code == 403

    def test_recurring_replaces_itself(self, client, clock, fake_gateway):
        job_id = _create(client, kind="RECURRING", interval=15).json()["job_id"]

        response = client.post(f"/jobs/{job_id}/trigger", headers=SCHEDULER_HEADERS)

        data = response.json()
        assert data["next_fire_time"] == 5030
        assert data["has_pending_schedule"] is True
        assert [c["instant"] for c in fake_gateway.schedule_calls] == [5015, 5030]

    def test_unknown_job(self, client, clock):
        response = client.post("/jobs/999/trigger", headers=SCHEDULER_HEADERS)
        assert response.status_code == 404


class TestGatewayDelivery:
    """The gateway POSTs the registered payload to the registered target."""

    def _deliver(self, client, fake_gateway, call):
        fake_gateway.fire(ScheduleRef(call["ref"]))
        return client.post(call["target"], json=call["payload"], headers=SCHEDULER_HEADERS)

    def _last_call(self, fake_gateway):
        ref, call = list(fake_gateway.scheduled.items())[-1]
        return {**call, "ref": ref}

    def test_registered_target_is_the_trigger_endpoint(self, client, clock, fake_gateway):
        job_id = _create(client, kind="RECURRING", interval=15).json()["job_id"]

        call = self._last_call(fake_gateway)

        assert call["target"] == f"http://testserver/jobs/{job_id}/trigger"
        assert call["payload"] == {"job_id": job_id}

    def test_delivery_fires_and_replaces(self, client, clock, fake_gateway):
        job_id = _create(client, kind="RECURRING", interval=15).json()["job_id"]

        for expected in (1, 2, 3):
            response = self._deliver(client, fake_gateway, self._last_call(fake_gateway))

            assert response.status_code == 200
            assert response.json()["trigger_count"] == expected
            assert len(fake_gateway.scheduled) == 1

        assert self._last_call(fake_gateway)["target"].endswith(f"/jobs/{job_id}/trigger")

    def test_one_shot_delivery(self, client, clock, fake_gateway):
        _create(client, interval=60)

        response = self._deliver(client, fake_gateway, self._last_call(fake_gateway))

        assert response.status_code == 200
        assert response.json()["active"] is False

    def test_payload_for_other_job_rejected(self, client, clock):
        first = _create(client, caller="alice").json()["job_id"]
        second = _create(client, caller="bob").json()["job_id"]

        response = client.post(
            f"/jobs/{first}/trigger",
            json={"job_id": second},
            headers=SCHEDULER_HEADERS,
        )

        assert response.status_code == 422
        assert client.get(f"/jobs/{first}").json()["trigger_count"] == 0


class TestCancelEndpoint:
    """Tests for POST /jobs/{job_id}/cancel."""

    def test_owner_cancels(self, client, clock, fake_gateway):
        job_id = _create(client, kind="RECURRING", interval=15).json()["job_id"]

        response = client.post(f"/jobs/{job_id}/cancel", headers=_as("alice"))

        assert response.status_code == 200
        assert response.json()["active"] is False
        assert response.json()["has_pending_schedule"] is False
        assert fake_gateway.cancelled == ["sched-1"]

    def test_cancel_is_idempotent(self, client, clock):
        job_id = _create(client).json()["job_id"]
        client.post(f"/jobs/{job_id}/cancel", headers=_as("alice"))

        response = client.post(f"/jobs/{job_id}/cancel", headers=_as("alice"))

        assert response.status_code == 200

    def test_scheduler_may_not_cancel(self, client, clock):
        job_id = _create(client).json()["job_id"]

        response = client.post(f"/jobs/{job_id}/cancel", headers=SCHEDULER_HEADERS)

        assert response.status_code == 403

    def test_cancel_frees_owner_chain(self, client, clock):
        job_id = _create(client, kind="RECURRING").json()["job_id"]
        client.post(f"/jobs/{job_id}/cancel", headers=_as("alice"))

        assert _create(client, kind="RECURRING").status_code == 201


class TestQueryEndpoints:
    """Tests for GET /jobs, /jobs/{id}, /jobs/stalled."""

    def test_get_job(self, client, clock):
        job_id = _create(client).json()["job_id"]

        response = client.get(f"/jobs/{job_id}")

        assert response.status_code == 200
        assert response.json()["job_id"] == job_id

    def test_get_missing_job(self, client, clock):
        assert client.get("/jobs/424242").status_code == 404

    def test_list_filters(self, client, clock):
        _create(client, caller="alice")
        _create(client, caller="bob")

        response = client.get("/jobs", params={"owner_id": "bob"})

        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["owner_id"] == "bob"

    def test_stalled(self, client, clock, fake_gateway):
        fake_gateway.fail_schedule = True
        stalled_id = _create(client, interval=10).json()["job_id"]
        fake_gateway.fail_schedule = False
        _create(client, interval=10)

        assert client.get("/jobs/stalled").json()["total"] == 0

        clock.set(5010)
        data = client.get("/jobs/stalled").json()

        assert [j["job_id"] for j in data["jobs"]] == [stalled_id]
