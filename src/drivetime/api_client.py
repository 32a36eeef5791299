"""HTTP client the CLI uses to talk to a running DriveTime server."""

import os
from typing import Optional, Dict, Any, List

import httpx

from .config import Config


class APIClient:
    """Client for the DriveTime REST API."""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 30.0):
        """Initialize API client.

        Args:
            base_url: Server URL. Defaults to $DRIVETIME_URL, then the
                      host/port from config.toml
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or os.environ.get("DRIVETIME_URL") or self._configured_url()).rstrip("/")
        self.timeout = httpx.Timeout(timeout)

    @staticmethod
    def _configured_url() -> str:
        config = Config.from_file()
        host = "127.0.0.1" if config.host == "0.0.0.0" else config.host
        return f"http://{host}:{config.port}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            RuntimeError: On network failures or error responses
        """
        with httpx.Client(timeout=self.timeout) as client:
            try:
                response = client.request(method, f"{self.base_url}{path}", **kwargs)
            except httpx.RequestError as e:
                raise RuntimeError(f"Network error: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            raise RuntimeError(message or f"API error: {response.status_code}")

        return data

    def create_artifact(
        self,
        content: str,
        artifact_type: str = "note",
        source_url: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Capture a new artifact."""
        payload: Dict[str, Any] = {"type": artifact_type, "content": content}
        if source_url:
            payload["sourceUrl"] = source_url
        if tags:
            payload["tags"] = tags
        return self._request("POST", "/api/artifacts", json=payload)

    def list_artifacts(self) -> Dict[str, Any]:
        """Get {"artifacts": [...], "dayGroups": [...]}."""
        return self._request("GET", "/api/artifacts")

    def update_status(self, artifact_id: str, status: str) -> Dict[str, Any]:
        return self._request(
            "PATCH", f"/api/artifacts/{artifact_id}", json={"status": status}
        )

    def process_artifact(self, artifact_id: str) -> Dict[str, Any]:
        """Run enrichment on the server (may take several seconds)."""
        return self._request("POST", f"/api/artifacts/{artifact_id}/process")
