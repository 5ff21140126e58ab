"""Tests for organization endpoints."""

from sqlalchemy import select

from conftest import register_user, run_query, user_id_of
from insighter_server.database import AgentAccess


class TestOrganizationCrud:

    def test_creator_becomes_owner(self, client, owner_headers, organization):
        assert organization["user_role"] == "owner"
        assert organization["status"] == "active"

        members = client.get(
            f"/api/v1/organizations/{organization['organization_id']}/members",
            headers=owner_headers,
        ).json()
        assert [m["role"] for m in members] == ["owner"]

    def test_list_includes_workspaces(self, client, owner_headers, organization, workspace):
        response = client.get("/api/v1/organizations", headers=owner_headers)
        assert response.status_code == 200
        orgs = response.json()
        assert len(orgs) == 1
        assert orgs[0]["workspaces"][0]["workspace_id"] == workspace["workspace_id"]

    def test_list_excludes_other_organizations(self, client, organization, outsider_headers):
        response = client.get("/api/v1/organizations", headers=outsider_headers)
        assert response.json() == []

    def test_get_as_non_member_is_403(self, client, organization, outsider_headers):
        response = client.get(
            f"/api/v1/organizations/{organization['organization_id']}",
            headers=outsider_headers,
        )
        assert response.status_code == 403

    def test_get_unknown_is_404(self, client, owner_headers):
        response = client.get("/api/v1/organizations/missing", headers=owner_headers)
        assert response.status_code == 404
        assert response.json()["error_code"] == "ORGANIZATION_NOT_FOUND"

    def test_update(self, client, owner_headers, organization):
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}",
            json={"name": "Acme Corp"},
            headers=owner_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Acme Corp"

    def test_blank_name_rejected(self, client, owner_headers, organization):
        org_id = organization["organization_id"]
        response = client.patch(f"/api/v1/organizations/{org_id}", json={"name": " \t "}, headers=owner_headers)
        assert response.status_code == 400
        assert client.get(f"/api/v1/organizations/{org_id}", headers=owner_headers).json()["name"] == "Acme"

        response = client.post("/api/v1/organizations", json={"name": "   "}, headers=owner_headers)
        assert response.status_code == 400

    def test_timestamps_match_between_create_and_read(self, client, owner_headers, organization):
        fetched = client.get(
            f"/api/v1/organizations/{organization['organization_id']}", headers=owner_headers
        ).json()
        assert fetched["created_at"] == organization["created_at"]
        assert fetched["updated_at"] == organization["updated_at"]

    def test_soft_delete(self, client, owner_headers, organization):
        org_id = organization["organization_id"]
        response = client.delete(f"/api/v1/organizations/{org_id}", headers=owner_headers)
        assert response.status_code == 204
        assert client.get(f"/api/v1/organizations/{org_id}", headers=owner_headers).status_code == 404
        assert client.get("/api/v1/organizations", headers=owner_headers).json() == []


class TestOrganizationMembers:

    def test_add_member_propagates_to_workspaces(self, client, owner_headers, organization, workspace):
        register_user(client, "viewer@example.com", "Viewer")
        response = client.post(
            f"/api/v1/organizations/{organization['organization_id']}/members",
            json={"email": "viewer@example.com", "role": "viewer"},
            headers=owner_headers,
        )
        assert response.status_code == 201
        assert response.json()["workspaces_added"] == 1

        members = client.get(
            f"/api/v1/workspaces/{workspace['workspace_id']}/members",
            headers=owner_headers,
        ).json()
        roles = {m["email"]: m["role"] for m in members}
        assert roles == {"owner@example.com": "admin", "viewer@example.com": "viewer"}

    def test_add_unknown_email_is_404(self, client, owner_headers, organization):
        response = client.post(
            f"/api/v1/organizations/{organization['organization_id']}/members",
            json={"email": "ghost@example.com", "role": "member"},
            headers=owner_headers,
        )
        assert response.status_code == 404

    def test_add_existing_member_is_409(self, client, owner_headers, organization):
        response = client.post(
            f"/api/v1/organizations/{organization['organization_id']}/members",
            json={"email": "owner@example.com", "role": "member"},
            headers=owner_headers,
        )
        assert response.status_code == 409

    def test_member_cannot_add_members(self, client, owner_headers, organization):
        member_headers = register_user(client, "member@example.com")
        register_user(client, "another@example.com")
        org_id = organization["organization_id"]
        client.post(
            f"/api/v1/organizations/{org_id}/members",
            json={"email": "member@example.com", "role": "member"},
            headers=owner_headers,
        )
        response = client.post(
            f"/api/v1/organizations/{org_id}/members",
            json={"email": "another@example.com", "role": "member"},
            headers=member_headers,
        )
        assert response.status_code == 403


def _join(client, owner_headers, organization, email, role="member"):
    headers = register_user(client, email)
    response = client.post(
        f"/api/v1/organizations/{organization['organization_id']}/members",
        json={"email": email, "role": role},
        headers=owner_headers,
    )
    assert response.status_code == 201, response.text
    return headers, response.json()["user_id"]


def _workspace_roles(client, owner_headers, workspace):
    members = client.get(
        f"/api/v1/workspaces/{workspace['workspace_id']}/members",
        headers=owner_headers,
    ).json()
    return {m["email"]: m["role"] for m in members}


class TestMemberRoles:

    def test_role_change_remaps_workspace_role(self, client, owner_headers, organization, workspace):
        member_headers, member_id = _join(client, owner_headers, organization, "m@example.com", "viewer")
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}/members/{member_id}",
            json={"role": "admin"},
            headers=owner_headers,
        )
        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["workspaces_updated"] == 1

        assert _workspace_roles(client, owner_headers, workspace)["m@example.com"] == "admin"
        current = client.get(f"/api/v1/workspaces/{workspace['workspace_id']}", headers=member_headers)
        assert current.json()["user_role"] == "admin"

    def test_cannot_change_own_role(self, client, owner_headers, organization):
        owner_id = user_id_of(client, owner_headers)
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}/members/{owner_id}",
            json={"role": "member"},
            headers=owner_headers,
        )
        assert response.status_code == 400

    def test_admin_cannot_grant_owner(self, client, owner_headers, organization):
        admin_headers, _ = _join(client, owner_headers, organization, "a@example.com", "admin")
        _, member_id = _join(client, owner_headers, organization, "m@example.com")
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}/members/{member_id}",
            json={"role": "owner"},
            headers=admin_headers,
        )
        assert response.status_code == 403

    def test_admin_cannot_demote_owner(self, client, owner_headers, organization):
        admin_headers, _ = _join(client, owner_headers, organization, "a@example.com", "admin")
        owner_id = user_id_of(client, owner_headers)
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}/members/{owner_id}",
            json={"role": "viewer"},
            headers=admin_headers,
        )
        assert response.status_code == 403

    def test_member_cannot_change_roles(self, client, owner_headers, organization):
        member_headers, _ = _join(client, owner_headers, organization, "m@example.com")
        _, other_id = _join(client, owner_headers, organization, "o@example.com")
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}/members/{other_id}",
            json={"role": "viewer"},
            headers=member_headers,
        )
        assert response.status_code == 403

    def test_invalid_role_is_400(self, client, owner_headers, organization):
        _, member_id = _join(client, owner_headers, organization, "m@example.com")
        response = client.patch(
            f"/api/v1/organizations/{organization['organization_id']}/members/{member_id}",
            json={"role": "superuser"},
            headers=owner_headers,
        )
        assert response.status_code == 400


class TestMemberRemoval:

    def test_removal_revokes_workspace_access(self, client, owner_headers, organization, workspace):
        member_headers, member_id = _join(client, owner_headers, organization, "m@example.com")
        response = client.delete(
            f"/api/v1/organizations/{organization['organization_id']}/members/{member_id}",
            headers=owner_headers,
        )
        assert response.status_code == 204

        assert client.get(f"/api/v1/workspaces/{workspace['workspace_id']}", headers=member_headers).status_code == 403
        assert "m@example.com" not in _workspace_roles(client, owner_headers, workspace)
        members = client.get(
            f"/api/v1/organizations/{organization['organization_id']}/members",
            headers=owner_headers,
        ).json()
        assert [m["email"] for m in members] == ["owner@example.com"]

    def test_removal_deactivates_agent_grants(self, client, owner_headers, organization):
        _, member_id = _join(client, owner_headers, organization, "m@example.com")
        workspace = client.post(
            "/api/v1/workspaces",
            json={"organization_id": organization["organization_id"], "name": "Ops"},
            headers=owner_headers,
        ).json()
        client.delete(
            f"/api/v1/organizations/{organization['organization_id']}/members/{member_id}",
            headers=owner_headers,
        )
        grants = run_query(
            client,
            select(AgentAccess).where(
                AgentAccess.agent_id == workspace["agent_id"],
                AgentAccess.user_id == member_id,
            ),
        )
        assert [g.is_active for g in grants] == [False]

    def test_removed_member_can_be_added_again(self, client, owner_headers, organization, workspace):
        member_headers, member_id = _join(client, owner_headers, organization, "m@example.com")
        org_id = organization["organization_id"]
        client.delete(f"/api/v1/organizations/{org_id}/members/{member_id}", headers=owner_headers)

        response = client.post(
            f"/api/v1/organizations/{org_id}/members",
            json={"email": "m@example.com", "role": "viewer"},
            headers=owner_headers,
        )
        assert response.status_code == 201
        assert response.json()["workspaces_added"] == 1
        assert _workspace_roles(client, owner_headers, workspace)["m@example.com"] == "viewer"
        assert client.get(f"/api/v1/workspaces/{workspace['workspace_id']}", headers=member_headers).status_code == 200

    def test_cannot_remove_self(self, client, owner_headers, organization):
        owner_id = user_id_of(client, owner_headers)
        response = client.delete(
            f"/api/v1/organizations/{organization['organization_id']}/members/{owner_id}",
            headers=owner_headers,
        )
        assert response.status_code == 400

    def test_admin_cannot_remove_owner(self, client, owner_headers, organization):
        admin_headers, _ = _join(client, owner_headers, organization, "a@example.com", "admin")
        owner_id = user_id_of(client, owner_headers)
        response = client.delete(
            f"/api/v1/organizations/{organization['organization_id']}/members/{owner_id}",
            headers=admin_headers,
        )
        assert response.status_code == 403

    def test_unknown_member_is_404(self, client, owner_headers, organization):
        response = client.delete(
            f"/api/v1/organizations/{organization['organization_id']}/members/missing",
            headers=owner_headers,
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "MEMBER_NOT_FOUND"
