from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tenantgate.api.dependencies import session_store
from tenantgate.models.invitation import Invitation
from tenantgate.repos.registry import memory_repos
from tenantgate.services.notifications import NOTIFICATIONS_QUEUE
from tenantgate.services.task_queue import task_queue
from tests.conftest import (
    SUPER_ADMIN_EMAIL,
    add_test_member,
    auth,
    create_test_coupons,
    create_test_org,
    create_test_plan,
    create_test_user,
    mint_token,
    run,
)


@pytest.fixture
def root_headers(super_admins: frozenset[str]) -> dict[str, str]:
    root = create_test_user(SUPER_ADMIN_EMAIL, "Root")
    return auth(mint_token(root))


def test_no_allow_list_means_no_super_admins(client: TestClient) -> None:
    root = create_test_user(SUPER_ADMIN_EMAIL)
    r = client.get("/v1/admin/check-access", headers=auth(mint_token(root)))
    assert r.status_code == 403
    assert r.json()["detail"] == "No super admins configured"


def test_org_owner_is_not_super_admin(client: TestClient, super_admins: frozenset[str]) -> None:
    owner = create_test_user("owner@example.com")
    org = create_test_org("acme")
    add_test_member(org.id, owner.id, "owner")

    r = client.get("/v1/admin/check-access", headers=auth(mint_token(owner)))

    assert r.status_code == 403
    assert r.json()["detail"] == "Only super admins can access this resource"


def test_check_access(client: TestClient, root_headers: dict[str, str]) -> None:
    r = client.get("/v1/admin/check-access", headers=root_headers)
    assert r.status_code == 200
    assert r.json() == {"is_super_admin": True, "email": SUPER_ADMIN_EMAIL}


def test_generate_and_list_coupons(client: TestClient, root_headers: dict[str, str]) -> None:
    r = client.post("/v1/admin/coupons", json={"prefix": "ltd", "count": 3}, headers=root_headers)
    assert r.status_code == 201
    codes = [c["code"] for c in r.json()]
    assert len(set(codes)) == 3
    assert all(code.startswith("LTD-") for code in codes)

    r = client.get("/v1/admin/coupons", params={"status": "unused", "limit": 2}, headers=root_headers)
    page = r.json()
    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert len(page["coupons"]) == 2


@pytest.mark.parametrize("count", [0, 1001])
def test_generate_rejects_bad_count(
    client: TestClient, root_headers: dict[str, str], count: int
) -> None:
    r = client.post("/v1/admin/coupons", json={"prefix": "LTD", "count": count}, headers=root_headers)
    assert r.status_code == 422


def test_batch_expiry_report(client: TestClient, root_headers: dict[str, str]) -> None:
    free = create_test_plan("free", is_default=True)
    tier1 = create_test_plan("tier1", required_coupon_count=1)
    org = create_test_org("acme", plan=tier1)
    create_test_coupons("LTD-A", "LTD-SPARE")
    run(memory_repos.coupons.claim("LTD-A", org.id, uuid4(), 1))

    r = client.post(
        "/v1/admin/coupons/expire-batch",
        json={"codes": ["ltd-a", "LTD-SPARE", "LTD-NOPE"]},
        headers=root_headers,
    )

    assert r.status_code == 200
    report = r.json()
    assert report["totalExpired"] == 2
    assert report["workspacesDowngraded"] == 1
    assert report["notFoundCodes"] == ["LTD-NOPE"]
    assert report["errors"] == ["Could not find the following coupon codes: LTD-NOPE"]
    assert run(memory_repos.orgs.get_by_id(org.id)).plan_id == free.id


def test_batch_expiry_with_nothing_to_expire(
    client: TestClient, root_headers: dict[str, str]
) -> None:
    r = client.post(
        "/v1/admin/coupons/expire-batch", json={"codes": ["LTD-NOPE"]}, headers=root_headers
    )
    report = r.json()
    assert report["totalExpired"] == 0
    assert report["message"] == "No valid coupon codes found to expire"


def test_batch_expiry_requires_codes(client: TestClient, root_headers: dict[str, str]) -> None:
    r = client.post("/v1/admin/coupons/expire-batch", json={"codes": []}, headers=root_headers)
    assert r.status_code == 422


def test_expire_and_delete_single_coupon(client: TestClient, root_headers: dict[str, str]) -> None:
    create_test_plan("free", is_default=True)
    tier1 = create_test_plan("tier1", required_coupon_count=1)
    org = create_test_org("acme", plan=tier1)
    first, second = create_test_coupons("LTD-1", "LTD-2")
    run(memory_repos.coupons.claim("LTD-1", org.id, uuid4(), 1))

    r = client.post(f"/v1/admin/coupons/{first.id}/expire", headers=root_headers)
    assert r.status_code == 200
    assert r.json()["coupon"]["expired"] is True
    assert r.json()["organization_plan_changed"] is True

    r = client.delete(f"/v1/admin/coupons/{second.id}", headers=root_headers)
    assert r.status_code == 200
    assert r.json()["organization_plan_changed"] is False

    r = client.delete(f"/v1/admin/coupons/{second.id}", headers=root_headers)
    assert r.status_code == 404


def test_org_coupons(client: TestClient, root_headers: dict[str, str]) -> None:
    org = create_test_org("acme")
    create_test_coupons("LTD-1", "LTD-2")
    run(memory_repos.coupons.claim("LTD-2", org.id, uuid4(), 1))

    r = client.get(f"/v1/admin/organizations/{org.id}/coupons", headers=root_headers)

    assert [c["code"] for c in r.json()] == ["LTD-2"]


def test_plan_catalog(client: TestClient, root_headers: dict[str, str]) -> None:
    r = client.post(
        "/v1/admin/plans",
        json={"codename": "free", "name": "Free", "default": True, "quotas": {"team_members": 1}},
        headers=root_headers,
    )
    assert r.status_code == 201
    assert r.json()["is_default"] is True

    r = client.post(
        "/v1/admin/plans",
        json={"codename": "other-free", "name": "Other", "default": True},
        headers=root_headers,
    )
    assert r.status_code == 409

    r = client.post(
        "/v1/admin/plans",
        json={"codename": "ltd1", "name": "LTD 1", "required_coupon_count": 1,
              "quotas": {"team_members": None}},
        headers=root_headers,
    )
    assert r.status_code == 201
    assert r.json()["quotas"] == {"can_use_app": True, "team_members": None}

    r = client.get("/v1/admin/plans", headers=root_headers)
    assert {p["codename"] for p in r.json()} == {"free", "ltd1"}


def test_set_org_plan(client: TestClient, root_headers: dict[str, str]) -> None:
    free = create_test_plan("free", is_default=True)
    pro = create_test_plan("pro")
    org = create_test_org("acme", plan=free)

    r = client.put(
        f"/v1/admin/organizations/{org.id}/plan", json={"plan_id": str(pro.id)}, headers=root_headers
    )
    assert r.status_code == 200
    assert r.json()["plan_id"] == str(pro.id)

    r = client.put(f"/v1/admin/organizations/{org.id}/plan", json={"plan_id": None}, headers=root_headers)
    assert r.json()["plan_id"] == str(free.id)

    r = client.put(
        f"/v1/admin/organizations/{org.id}/plan", json={"plan_id": str(uuid4())}, headers=root_headers
    )
    assert r.status_code == 404


def test_delete_org(client: TestClient, root_headers: dict[str, str]) -> None:
    owner = create_test_user("owner@example.com")
    org = create_test_org("acme")
    add_test_member(org.id, owner.id, "owner")

    r = client.delete(f"/v1/admin/organizations/{org.id}", headers=root_headers)
    assert r.status_code == 204

    r = client.get("/v1/orgs", headers=auth(mint_token(owner)))
    assert r.json() == []

    r = client.delete(f"/v1/admin/organizations/{org.id}", headers=root_headers)
    assert r.status_code == 404


def test_super_admin_has_no_org_access(client: TestClient, root_headers: dict[str, str]) -> None:
    create_test_org("acme")
    r = client.get("/v1/orgs/current", headers=root_headers)
    assert r.status_code == 400


def test_expiring_an_expired_coupon_is_a_no_op(
    client: TestClient, root_headers: dict[str, str]
) -> None:
    create_test_plan("free", is_default=True)
    tier1 = create_test_plan("tier1", required_coupon_count=1)
    org = create_test_org("acme", plan=tier1)
    (coupon,) = create_test_coupons("LTD-1")
    run(memory_repos.coupons.claim("LTD-1", org.id, uuid4(), 1))
    client.post(f"/v1/admin/coupons/{coupon.id}/expire", headers=root_headers)
    # manual override after expiry must survive a repeated expire
    run(memory_repos.orgs.set_plan(org.id, tier1.id, clear_billing_ids=False))

    r = client.post(f"/v1/admin/coupons/{coupon.id}/expire", headers=root_headers)

    assert r.status_code == 200
    assert r.json()["coupon"]["expired"] is True
    assert r.json()["organization_plan_changed"] is False
    assert run(memory_repos.orgs.get_by_id(org.id)).plan_id == tier1.id


def test_deleted_selection_falls_back_to_remaining_org(
    client: TestClient, root_headers: dict[str, str]
) -> None:
    owner = create_test_user("owner@example.com")
    first = create_test_org("first")
    second = create_test_org("second")
    add_test_member(first.id, owner.id, "owner")
    add_test_member(second.id, owner.id, "owner")
    run(session_store.set_current_organization("owner-sid", first.id))
    headers = auth(mint_token(owner, sid="owner-sid"))

    r = client.delete(f"/v1/admin/organizations/{first.id}", headers=root_headers)
    assert r.status_code == 204

    r = client.get("/v1/orgs/current", headers=headers)
    assert r.status_code == 200
    assert r.json()["id"] == str(second.id)


# ---- organization oversight ----


def _acme_team() -> tuple:
    free = create_test_plan("free", is_default=True)
    org = create_test_org("acme", plan=free)
    owner = create_test_user("owner@example.com", "Olive")
    member = create_test_user("member@example.com", "Max")
    add_test_member(org.id, owner.id, "owner")
    add_test_member(org.id, member.id, "user")
    return org, free, owner, member


def test_list_organizations(client: TestClient, root_headers: dict[str, str]) -> None:
    org, free, _, _ = _acme_team()
    other = create_test_org("other")
    create_test_coupons("LTD-1")
    run(memory_repos.coupons.claim("LTD-1", org.id, uuid4(), 1))

    r = client.get("/v1/admin/organizations", headers=root_headers)

    assert r.status_code == 200
    by_slug = {o["slug"]: o for o in r.json()}
    assert by_slug["acme"] == {
        "id": str(org.id),
        "name": "Acme",
        "slug": "acme",
        "plan_id": str(free.id),
        "plan_codename": "free",
        "member_count": 2,
        "coupon_count": 1,
    }
    assert by_slug["other"]["id"] == str(other.id)
    assert by_slug["other"]["plan_codename"] is None
    assert by_slug["other"]["member_count"] == 0


def test_organization_detail(client: TestClient, root_headers: dict[str, str]) -> None:
    org, _, _, _ = _acme_team()
    invitation = Invitation.new(org_id=org.id, email="new@example.com", org_role="admin")
    run(memory_repos.invitations.add(invitation))

    r = client.get(f"/v1/admin/organizations/{org.id}", headers=root_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["plan"]["codename"] == "free"
    assert body["coupon_count"] == 0
    assert {(m["email"], m["role"]) for m in body["members"]} == {
        ("owner@example.com", "owner"),
        ("member@example.com", "user"),
    }
    assert [i["id"] for i in body["invites"]] == [str(invitation.id)]

    r = client.get(f"/v1/admin/organizations/{uuid4()}", headers=root_headers)
    assert r.status_code == 404


def test_change_member_role_in_any_org(client: TestClient, root_headers: dict[str, str]) -> None:
    org, _, _, member = _acme_team()

    r = client.patch(
        f"/v1/admin/organizations/{org.id}/members/{member.id}",
        json={"role": "admin"},
        headers=root_headers,
    )

    assert r.status_code == 200
    assert r.json() == {
        "id": str(member.id),
        "name": "Max",
        "email": "member@example.com",
        "role": "admin",
    }
    assert run(memory_repos.memberships.get(org.id, member.id)).org_role == "admin"
    task = run(task_queue.dequeue(NOTIFICATIONS_QUEUE))
    assert task is not None
    assert task.payload["changed_by"] == SUPER_ADMIN_EMAIL


def test_owner_is_protected_from_super_admin(
    client: TestClient, root_headers: dict[str, str]
) -> None:
    org, _, owner, _ = _acme_team()

    r = client.patch(
        f"/v1/admin/organizations/{org.id}/members/{owner.id}",
        json={"role": "user"},
        headers=root_headers,
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "The organization owner cannot be changed or removed"

    r = client.delete(f"/v1/admin/organizations/{org.id}/members/{owner.id}", headers=root_headers)
    assert r.status_code == 403
    assert run(memory_repos.memberships.get(org.id, owner.id)).org_role == "owner"


def test_owner_role_cannot_be_granted(client: TestClient, root_headers: dict[str, str]) -> None:
    org, _, _, member = _acme_team()
    r = client.patch(
        f"/v1/admin/organizations/{org.id}/members/{member.id}",
        json={"role": "owner"},
        headers=root_headers,
    )
    assert r.status_code == 422


def test_remove_member_in_any_org(client: TestClient, root_headers: dict[str, str]) -> None:
    org, _, _, member = _acme_team()

    r = client.delete(f"/v1/admin/organizations/{org.id}/members/{member.id}", headers=root_headers)
    assert r.status_code == 204
    assert run(memory_repos.memberships.get(org.id, member.id)) is None

    r = client.delete(f"/v1/admin/organizations/{org.id}/members/{member.id}", headers=root_headers)
    assert r.status_code == 404

    r = client.delete(f"/v1/admin/organizations/{uuid4()}/members/{member.id}", headers=root_headers)
    assert r.status_code == 404


def test_revoke_invite_in_any_org(client: TestClient, root_headers: dict[str, str]) -> None:
    org, _, _, _ = _acme_team()
    other = create_test_org("other")
    invitation = Invitation.new(org_id=org.id, email="new@example.com", org_role="user")
    run(memory_repos.invitations.add(invitation))

    r = client.delete(
        f"/v1/admin/organizations/{other.id}/invites/{invitation.id}", headers=root_headers
    )
    assert r.status_code == 404

    r = client.delete(
        f"/v1/admin/organizations/{org.id}/invites/{invitation.id}", headers=root_headers
    )
    assert r.status_code == 204
    assert run(memory_repos.invitations.list_by_org(org.id)) == []


def test_org_admin_cannot_use_oversight_routes(
    client: TestClient, super_admins: frozenset[str]
) -> None:
    org, _, owner, member = _acme_team()
    r = client.delete(
        f"/v1/admin/organizations/{org.id}/members/{member.id}",
        headers=auth(mint_token(owner)),
    )
    assert r.status_code == 403
    assert run(memory_repos.memberships.get(org.id, member.id)) is not None


# ---- plan catalog edits ----


def test_update_plan_fields(client: TestClient, root_headers: dict[str, str]) -> None:
    plan = create_test_plan("pro", team_members=5)

    r = client.patch(
        f"/v1/admin/plans/{plan.id}",
        json={"name": "Professional", "quotas": {"team_members": 20}},
        headers=root_headers,
    )

    assert r.status_code == 200
    body = r.json()
    assert body["plan"]["name"] == "Professional"
    assert body["plan"]["codename"] == "pro"
    assert body["plan"]["quotas"] == {"can_use_app": True, "team_members": 20}
    assert body["organizations_changed"] == 0


def test_changing_required_count_recalculates(
    client: TestClient, root_headers: dict[str, str]
) -> None:
    free = create_test_plan("free", is_default=True)
    ltd = create_test_plan("ltd", required_coupon_count=1)
    on_ltd = create_test_org("on-ltd", plan=ltd)
    two_coupons = create_test_org("two-coupons", plan=free)
    create_test_coupons("LTD-A", "LTD-B", "LTD-C")
    run(memory_repos.coupons.claim("LTD-A", on_ltd.id, uuid4(), 1))
    run(memory_repos.coupons.claim("LTD-B", two_coupons.id, uuid4(), 1))
    run(memory_repos.coupons.claim("LTD-C", two_coupons.id, uuid4(), 1))

    r = client.patch(
        f"/v1/admin/plans/{ltd.id}", json={"required_coupon_count": 2}, headers=root_headers
    )

    assert r.status_code == 200
    assert r.json()["organizations_changed"] == 2
    assert run(memory_repos.orgs.get_by_id(on_ltd.id)).plan_id == free.id
    assert run(memory_repos.orgs.get_by_id(two_coupons.id)).plan_id == ltd.id


def test_second_default_plan_conflicts(client: TestClient, root_headers: dict[str, str]) -> None:
    create_test_plan("free", is_default=True)
    pro = create_test_plan("pro")

    r = client.patch(f"/v1/admin/plans/{pro.id}", json={"default": True}, headers=root_headers)

    assert r.status_code == 409
    assert r.json()["detail"] == "A default plan already exists"


def test_new_default_plan_is_assigned_to_planless_orgs(
    client: TestClient, root_headers: dict[str, str]
) -> None:
    basic = create_test_plan("basic")
    planless = create_test_org("planless")
    pinned = create_test_org("pinned", plan=create_test_plan("pinned"))

    r = client.patch(f"/v1/admin/plans/{basic.id}", json={"default": True}, headers=root_headers)

    assert r.status_code == 200
    assert r.json()["organizations_changed"] == 1
    assert run(memory_repos.orgs.get_by_id(planless.id)).plan_id == basic.id
    assert run(memory_repos.orgs.get_by_id(pinned.id)).plan_id != basic.id


def test_delete_plan_reassigns_its_orgs(client: TestClient, root_headers: dict[str, str]) -> None:
    free = create_test_plan("free", is_default=True)
    ltd = create_test_plan("ltd", required_coupon_count=1)
    org = create_test_org("acme", plan=ltd)
    create_test_coupons("LTD-A")
    run(memory_repos.coupons.claim("LTD-A", org.id, uuid4(), 1))

    r = client.delete(f"/v1/admin/plans/{ltd.id}", headers=root_headers)
    assert r.status_code == 204
    assert run(memory_repos.orgs.get_by_id(org.id)).plan_id == free.id
    plans = client.get("/v1/admin/plans", headers=root_headers).json()
    assert [p["codename"] for p in plans] == ["free"]

    r = client.delete(f"/v1/admin/plans/{ltd.id}", headers=root_headers)
    assert r.status_code == 404
