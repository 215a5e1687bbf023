from __future__ import annotations

from typing import Any

import httpx

from stackpilot.clients.base import BaseHTTPClient, PermanentHTTPError


def jsonapi_errors(body: Any) -> list[str]:
    """Messages from a JSON:API ``errors`` array, ``title: detail`` per entry."""
    if not isinstance(body, dict) or not isinstance(body.get("errors"), list):
        return []
    messages = []
    for entry in body["errors"]:
        if isinstance(entry, str):
            messages.append(entry)
        elif isinstance(entry, dict):
            parts = [str(entry[key]) for key in ("title", "detail") if entry.get(key)]
            if parts:
                messages.append(": ".join(parts))
    return messages


class TerraformCloudClient(BaseHTTPClient):
    """Terraform Cloud / Enterprise API client with retry logic and circuit breaker."""

    def __init__(
        self,
        hostname: str = "app.terraform.io",
        token: str | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(f"https://{hostname}", timeout=timeout)
        self._hostname = hostname
        self._token = token

    @property
    def hostname(self) -> str:
        return self._hostname

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/vnd.api+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _error_message(self, response: httpx.Response) -> str:
        try:
            messages = jsonapi_errors(response.json())
        except ValueError:
            messages = []
        if not messages:
            return super()._error_message(response)
        return f"HTTP {response.status_code}: {'; '.join(messages)}"

    async def _get_data(self, path: str) -> dict[str, Any]:
        response = await self.get(path)
        data = response.get("data") if isinstance(response, dict) else None
        if not isinstance(data, dict):
            raise PermanentHTTPError(f"Unexpected response from {path}: no 'data' object")
        return data

    async def get_workspace(self, organization: str, name: str) -> dict[str, Any]:
        return await self._get_data(f"/api/v2/organizations/{organization}/workspaces/{name}")

    async def get_run(self, run_id: str) -> dict[str, Any]:
        return await self._get_data(f"/api/v2/runs/{run_id}")

    async def get_plan_json(self, run_id: str) -> dict[str, Any]:
        """Fetch the JSON plan (``terraform show -json`` format) of a run."""
        run = await self.get_run(run_id)
        plan_ref = run.get("relationships", {}).get("plan", {}).get("data") or {}
        plan_id = plan_ref.get("id")
        if not plan_id:
            return {}
        plan = await self.get(f"/api/v2/plans/{plan_id}/json-output")
        if not isinstance(plan, dict):
            raise PermanentHTTPError(f"Unexpected JSON plan for run {run_id}")
        return plan
