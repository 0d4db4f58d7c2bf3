from fastapi.testclient import TestClient
import pytest

from travel_scheduler.main import create_app
from travel_scheduler.tasks.job_runner import IntervalTrigger, JobRunner
from travel_scheduler.tasks.schedule import (
    CLEANUP_NOTIFICATIONS,
    DISPATCH_NOTIFICATIONS,
    TRANSITION_BOOKINGS,
)


@pytest.fixture
def runner():
    runner = JobRunner()
    runner.register(
        DISPATCH_NOTIFICATIONS,
        lambda: {"checked": 4, "sent": 3, "failed": 1},
        IntervalTrigger(120),
    )
    runner.register(
        TRANSITION_BOOKINGS,
        lambda: {"checked": 2, "to_ongoing": 1, "to_completed": 1, "reprompted": 0, "failed": 0},
        IntervalTrigger(600),
    )
    runner.register(
        CLEANUP_NOTIFICATIONS,
        lambda retention_days=30: {"removed": 5, "retention_days": retention_days},
        IntervalTrigger(86400),
    )
    return runner


@pytest.fixture
def client(runner):
    # No context manager: the lifespan (and the timers) stay off
    return TestClient(create_app(job_runner=runner))


@pytest.mark.unit
class TestInternalJobRoutes:
    def test_list_jobs(self, client):
        response = client.get("/internal/jobs")

        assert response.status_code == 200
        body = response.json()
        assert body["started"] is False
        assert [job["name"] for job in body["jobs"]] == [
            DISPATCH_NOTIFICATIONS,
            TRANSITION_BOOKINGS,
            CLEANUP_NOTIFICATIONS,
        ]

    def test_dispatch(self, client):
        response = client.post("/internal/jobs/notifications/dispatch")

        assert response.status_code == 200
        assert response.json() == {"checked": 4, "sent": 3, "failed": 1}

    def test_transition(self, client):
        response = client.post("/internal/jobs/bookings/transition")

        assert response.status_code == 200
        assert response.json()["to_completed"] == 1

    def test_cleanup_passes_retention(self, client):
        response = client.post("/internal/jobs/notifications/cleanup", params={"retention_days": 7})

        assert response.status_code == 200
        assert response.json() == {"removed": 5, "retention_days": 7}

    def test_cleanup_without_retention_uses_job_default(self, client, runner):
        runner.get_job(CLEANUP_NOTIFICATIONS).func = lambda retention_days=45: {
            "removed": 0,
            "retention_days": retention_days,
        }

        response = client.post("/internal/jobs/notifications/cleanup")

        assert response.status_code == 200
        assert response.json()["retention_days"] == 45

    def test_cleanup_rejects_negative_retention(self, client):
        response = client.post("/internal/jobs/notifications/cleanup", params={"retention_days": -1})

        assert response.status_code == 422

    def test_running_job_returns_conflict(self, client, runner):
        job = runner.get_job(DISPATCH_NOTIFICATIONS)
        job.lock.acquire()
        try:
            response = client.post("/internal/jobs/notifications/dispatch")
        finally:
            job.lock.release()

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "JOB_ALREADY_RUNNING"

    def test_failed_job_returns_server_error(self, client, runner):
        def broken():
            raise RuntimeError("database unavailable")

        runner.get_job(DISPATCH_NOTIFICATIONS).func = broken

        response = client.post("/internal/jobs/notifications/dispatch")

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "JOB_FAILED"

    def test_generic_run(self, client):
        response = client.post(f"/internal/jobs/{TRANSITION_BOOKINGS}/run")

        assert response.status_code == 200
        body = response.json()
        assert body["job"] == TRANSITION_BOOKINGS
        assert body["status"] == "success"
        assert body["result"]["checked"] == 2

    def test_generic_run_reports_failure_in_body(self, client, runner):
        runner.get_job(TRANSITION_BOOKINGS).func = lambda: 1 / 0

        response = client.post(f"/internal/jobs/{TRANSITION_BOOKINGS}/run")

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert response.json()["error"].startswith("ZeroDivisionError")

    def test_unknown_job(self, client):
        response = client.post("/internal/jobs/nope/run")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "UNKNOWN_JOB"

    def test_metrics(self, client):
        client.post("/internal/jobs/notifications/dispatch")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "travel_scheduler_job_runs_total" in response.text
