"""API Endpoint Wrappers - Typed calls against the Pulse Engine API"""

from typing import Any

from ..utils.config_manager import config
from .base import APIClient, PulseAPIError  # noqa: F401


class PulseClient:
    """High-level client with typed endpoint methods"""

    def __init__(
        self,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        api_config = config.load_config().get("api", {})
        final_base_url = base_url or api_config.get("base_url", "http://localhost:3000")
        final_headers = headers or api_config.get("headers") or {}

        self.api = APIClient(
            base_url=final_base_url,
            timeout=api_config.get("timeout", 30),
            headers=final_headers,
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health Check
    def health_check(self) -> dict[str, Any]:
        """Check API health and loop status"""
        return self.api.get("/healthz")

    # Job Endpoints
    def schedule_job(
        self,
        type: str,
        run_at: str,
        payload: dict[str, Any] | None = None,
        recurrence: str | None = None,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {"type": type, "run_at": run_at, "payload": payload or {}}
        if recurrence:
            data["recurrence"] = recurrence
        return self.api.post("/jobs", data)

    def list_jobs(self, status: list[str] | None = None) -> dict[str, Any]:
        params = {"status": status} if status else None
        return self.api.get("/jobs", params)

    def get_job(self, job_id: str) -> dict[str, Any]:
        return self.api.get(f"/jobs/{job_id}")

    def cancel_job(self, job_id: str) -> dict[str, Any]:
        return self.api.delete(f"/jobs/{job_id}")

    # Notification Endpoints
    def pull_notifications(self, limit: int | None = None) -> dict[str, Any]:
        """Drain queued notifications"""
        params = {"limit": limit} if limit else None
        return self.api.get("/notifications", params)
