"""Role gate on every organization-scoped endpoint, table driven."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tenantgate.api.dependencies import session_store
from tests.conftest import (
    add_test_member,
    auth,
    create_test_org,
    create_test_plan,
    create_test_user,
    mint_token,
    run,
)

ROLES = ("owner", "admin", "user")


@pytest.fixture
def tokens() -> dict[str, str]:
    plan = create_test_plan("free", is_default=True, team_members=None)
    org = create_test_org("acme", plan=plan)
    result = {}
    for role in ROLES:
        user = create_test_user(f"{role}@example.com", role.title())
        sid = f"sid-{role}"
        add_test_member(org.id, user.id, role)
        run(session_store.set_current_organization(sid, org.id))
        result[role] = mint_token(user, sid=sid)
    return result


ENDPOINTS = [
    # (method, path, body, minimum role)
    ("GET", "/v1/orgs/current", None, "user"),
    ("GET", "/v1/orgs/current/members", None, "user"),
    ("POST", "/v1/orgs/current/redeem-ltd", {"code": "NOPE"}, "user"),
    ("PATCH", "/v1/orgs/current", {"name": "Renamed"}, "admin"),
    ("GET", "/v1/orgs/current/invites", None, "admin"),
    ("POST", "/v1/orgs/current/invites", {"email": "new@example.com"}, "admin"),
    ("DELETE", f"/v1/orgs/current/invites/{uuid4()}", None, "admin"),
    ("PATCH", f"/v1/orgs/current/members/{uuid4()}", {"role": "user"}, "admin"),
    ("DELETE", f"/v1/orgs/current/members/{uuid4()}", None, "admin"),
]

RANK = {"user": 0, "admin": 1, "owner": 2}


@pytest.mark.parametrize("method,path,body,minimum", ENDPOINTS)
@pytest.mark.parametrize("role", ROLES)
def test_role_gate(
    client: TestClient,
    tokens: dict[str, str],
    role: str,
    method: str,
    path: str,
    body: dict | None,
    minimum: str,
) -> None:
    r = client.request(method, path, json=body, headers=auth(tokens[role]))

    if RANK[role] >= RANK[minimum]:
        assert r.status_code not in (401, 403), r.text
    else:
        assert r.status_code == 403, r.text


@pytest.mark.parametrize("method,path,body,minimum", ENDPOINTS)
def test_missing_token(
    client: TestClient, method: str, path: str, body: dict | None, minimum: str
) -> None:
    r = client.request(method, path, json=body)
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


def test_denial_messages(client: TestClient, tokens: dict[str, str]) -> None:
    r = client.patch("/v1/orgs/current", json={"name": "Renamed"}, headers=auth(tokens["user"]))
    assert r.json()["detail"] == "You do not have the required role to perform this action"


def test_stale_selection_of_non_member(client: TestClient, tokens: dict[str, str]) -> None:
    """A session still pointing at an organization the caller left grants nothing."""
    outsider = create_test_user("outsider@example.com")
    acme_id = run(session_store.get("sid-owner")).current_organization_id
    run(session_store.set_current_organization("sid-outsider", acme_id))

    r = client.get("/v1/orgs/current", headers=auth(mint_token(outsider, sid="sid-outsider")))

    assert r.status_code == 400
    assert r.json()["detail"] == "No organization selected"
