from __future__ import annotations

import httpx


class MaintenanceClient:
    def __init__(self, base_url: str, api_key: str, *, timeout_seconds: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.headers = {"X-API-Key": api_key}

    async def reap_expired_jobs(self) -> int:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(f"{self.base_url}/maintenance/reap-expired", headers=self.headers)
            response.raise_for_status()
            payload = response.json()
            return int(payload.get("deactivated", 0))
