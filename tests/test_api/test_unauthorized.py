"""Every protected endpoint rejects requests without a valid session."""

from datetime import timedelta

import pytest

from insighter_server.auth import create_access_token

PROTECTED_ENDPOINTS = [
    ("GET", "/api/v1/auth/me"),
    ("GET", "/api/v1/organizations"),
    ("POST", "/api/v1/organizations"),
    ("GET", "/api/v1/organizations/org-1"),
    ("PATCH", "/api/v1/organizations/org-1"),
    ("DELETE", "/api/v1/organizations/org-1"),
    ("GET", "/api/v1/organizations/org-1/members"),
    ("POST", "/api/v1/organizations/org-1/members"),
    ("PATCH", "/api/v1/organizations/org-1/members/user-2"),
    ("DELETE", "/api/v1/organizations/org-1/members/user-2"),
    ("POST", "/api/v1/organizations/org-1/invitations"),
    ("GET", "/api/v1/organizations/org-1/invitations"),
    ("DELETE", "/api/v1/organizations/org-1/invitations/inv-1"),
    ("GET", "/api/v1/invitations"),
    ("GET", "/api/v1/invitations/accept?token=t"),
    ("POST", "/api/v1/invitations/accept"),
    ("GET", "/api/v1/workspaces?organization_id=org-1"),
    ("POST", "/api/v1/workspaces"),
    ("GET", "/api/v1/workspaces/ws-1"),
    ("PATCH", "/api/v1/workspaces/ws-1"),
    ("DELETE", "/api/v1/workspaces/ws-1"),
    ("GET", "/api/v1/workspaces/ws-1/members"),
    ("POST", "/api/v1/workspaces/ws-1/members"),
    ("PATCH", "/api/v1/workspaces/ws-1/members/user-2"),
    ("DELETE", "/api/v1/workspaces/ws-1/members/user-2"),
    ("GET", "/api/v1/workspaces/ws-1/agent"),
    ("GET", "/api/v1/agents/agent-1"),
    ("PATCH", "/api/v1/agents/agent-1"),
    ("GET", "/api/v1/workspaces/ws-1/files"),
    ("POST", "/api/v1/workspaces/ws-1/files"),
    ("GET", "/api/v1/workspaces/ws-1/files/file-1"),
    ("DELETE", "/api/v1/workspaces/ws-1/files/file-1"),
    ("GET", "/api/v1/workspaces/ws-1/files/file-1/summary"),
    ("PUT", "/api/v1/workspaces/ws-1/files/file-1/summary"),
    ("GET", "/api/v1/workspaces/ws-1/data-sources"),
    ("GET", "/api/v1/external-connections?workspace_id=ws-1"),
    ("POST", "/api/v1/external-connections"),
    ("GET", "/api/v1/workspaces/ws-1/database-connections"),
    ("POST", "/api/v1/workspaces/ws-1/database-connections"),
    ("GET", "/api/v1/database-connections/conn-1"),
    ("DELETE", "/api/v1/database-connections/conn-1"),
    ("GET", "/api/v1/oauth/google?workspace_id=ws-1&connection_type=google-sheets"),
    ("POST", "/api/v1/oauth/google"),
]


def _send(client, method, path, headers=None):
    kwargs = {"headers": headers or {}}
    if method in ("POST", "PATCH", "PUT"):
        kwargs["json"] = {}
    return client.request(method, path, **kwargs)


class TestProtectedEndpoints:

    @pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
    def test_missing_token_returns_401(self, client, method, path):
        response = _send(client, method, path)
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    @pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
    def test_malformed_token_returns_401(self, client, method, path):
        response = _send(client, method, path, {"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
    def test_expired_token_returns_401(self, client, method, path):
        token = create_access_token("user-1", "user@example.com", expires_delta=timedelta(seconds=-10))
        response = _send(client, method, path, {"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
    def test_session_cookie_alone_returns_401(self, client, method, path):
        client.cookies.set("access_token", create_access_token("user-1", "user@example.com"))
        response = _send(client, method, path)
        assert response.status_code == 401

    def test_callback_without_session_returns_401_page(self, client):
        response = client.get("/api/v1/oauth/google/callback?code=abc&state=xyz")
        assert response.status_code == 401
        assert "OAUTH_ERROR" in response.text
