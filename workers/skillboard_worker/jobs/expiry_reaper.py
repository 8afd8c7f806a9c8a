from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class ReaperClient(Protocol):
    async def reap_expired_jobs(self) -> int: ...


def reap_due(*, last_reap_at: float | None, now: float, interval_seconds: float) -> bool:
    if last_reap_at is None:
        return True
    return now - last_reap_at >= max(0.0, interval_seconds)


async def run_expiry_reap(client: ReaperClient) -> int:
    deactivated = await client.reap_expired_jobs()
    if deactivated:
        logger.info("deactivated expired postings: %s", deactivated)
    else:
        logger.debug("no expired postings to deactivate")
    return deactivated
