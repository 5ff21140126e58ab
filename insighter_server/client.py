"""HTTP client for the Insighter REST API."""

from typing import Any

import httpx


class InsighterClient:
    """HTTP client for Insighter Server API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        """Initialize API client.

        Args:
            base_url: Server base URL (e.g., http://localhost:8000)
            token: Session token from ``login``
            transport: Optional httpx transport, mainly for tests
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.transport = transport
        self.timeout = timeout

    def _get_headers(self) -> dict[str, str]:
        """Get request headers."""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.request(
                method,
                f"{self.base_url}/api/v1{path}",
                json=json,
                params=params,
                headers=self._get_headers(),
            )
            response.raise_for_status()
            if response.status_code == 204:
                return None
            return response.json()

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Login and keep the access token for later calls.

        Returns:
            Login response with token and user info
        """
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["access_token"]
        return data

    async def list_organizations(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/organizations")

    async def create_organization(self, name: str, description: str | None = None) -> dict[str, Any]:
        return await self._request(
            "POST", "/organizations", json={"name": name, "description": description}
        )

    async def list_workspaces(self, organization_id: str) -> list[dict[str, Any]]:
        return await self._request(
            "GET", "/workspaces", params={"organization_id": organization_id}
        )

    async def create_workspace(
        self,
        organization_id: str,
        name: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Create a workspace.

        Raises:
            ValueError: If ``name`` is empty or whitespace; nothing is sent
        """
        if not name or not name.strip():
            raise ValueError("Workspace name is required")
        return await self._request(
            "POST",
            "/workspaces",
            json={
                "organization_id": organization_id,
                "name": name.strip(),
                "description": description,
            },
        )

    async def start_google_oauth(
        self,
        workspace_id: str,
        connection_type: str,
        document_id: str | None = None,
    ) -> dict[str, Any]:
        """Get the consent URL to open in a popup."""
        params = {"workspace_id": workspace_id, "connection_type": connection_type}
        if document_id:
            params["document_id"] = document_id
        return await self._request("GET", "/oauth/google", params=params)

    async def complete_google_oauth(self, code: str, state: str) -> dict[str, Any]:
        """Exchange the code received by the popup."""
        return await self._request("POST", "/oauth/google", json={"code": code, "state": state})

    async def list_data_sources(self, workspace_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/workspaces/{workspace_id}/data-sources")
