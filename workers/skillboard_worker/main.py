from __future__ import annotations

import asyncio
import logging
import random
import time

from opentelemetry import trace

from skillboard_worker.core.config import get_settings
from skillboard_worker.core.telemetry import (
    configure_worker_logging,
    setup_worker_telemetry,
    shutdown_worker_telemetry,
)
from skillboard_worker.jobs.expiry_reaper import reap_due, run_expiry_reap
from skillboard_worker.services.maintenance_client import MaintenanceClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def run_worker() -> None:
    settings = get_settings()
    configure_worker_logging(settings)
    telemetry_runtime = setup_worker_telemetry(settings)
    client = MaintenanceClient(
        base_url=settings.api_base_url,
        api_key=settings.api_key,
        timeout_seconds=settings.request_timeout_seconds,
    )

    backoff = settings.poll_interval_seconds
    last_reap_at: float | None = None

    try:
        while True:
            try:
                now = time.monotonic()
                if reap_due(last_reap_at=last_reap_at, now=now, interval_seconds=settings.reaper_interval_seconds):
                    with tracer.start_as_current_span("worker.reap_expired") as span:
                        deactivated = await run_expiry_reap(client)
                        span.set_attribute("jobs.deactivated", deactivated)
                    last_reap_at = now

                backoff = settings.poll_interval_seconds
                await asyncio.sleep(settings.poll_interval_seconds)
            except Exception as exc:  # pragma: no cover - runtime robustness
                jitter = random.uniform(0.0, 0.5)
                sleep_for = min(backoff * (2.0 + jitter), settings.max_backoff_seconds)
                logger.exception("worker iteration failed: %s; retry in %.1fs", exc, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
    finally:
        shutdown_worker_telemetry(telemetry_runtime)


if __name__ == "__main__":
    asyncio.run(run_worker())
