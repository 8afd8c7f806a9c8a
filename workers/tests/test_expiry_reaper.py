import asyncio
import logging

from skillboard_worker.jobs.expiry_reaper import reap_due, run_expiry_reap


class FakeMaintenanceClient:
    def __init__(self, results: list[int]) -> None:
        self.results = results
        self.calls = 0

    async def reap_expired_jobs(self) -> int:
        self.calls += 1
        return self.results.pop(0)


def test_first_iteration_is_always_due() -> None:
    assert reap_due(last_reap_at=None, now=0.0, interval_seconds=300.0)


def test_not_due_inside_interval() -> None:
    assert not reap_due(last_reap_at=100.0, now=399.0, interval_seconds=300.0)


def test_due_once_interval_elapsed() -> None:
    assert reap_due(last_reap_at=100.0, now=400.0, interval_seconds=300.0)


def test_negative_interval_means_every_iteration() -> None:
    assert reap_due(last_reap_at=100.0, now=100.0, interval_seconds=-5.0)


def test_run_expiry_reap_returns_deactivated_count(caplog) -> None:
    client = FakeMaintenanceClient([3, 0])

    with caplog.at_level(logging.INFO, logger="skillboard_worker.jobs.expiry_reaper"):
        assert asyncio.run(run_expiry_reap(client)) == 3
        assert asyncio.run(run_expiry_reap(client)) == 0

    assert client.calls == 2
    assert "deactivated expired postings: 3" in caplog.text
