"""Request and response shapes shared by routers and scripts."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

from tenantgate.models.invitation import Invitation
from tenantgate.models.organization import Organization
from tenantgate.models.plan import Plan
from tenantgate.services.coupon_service import ExpiryReport

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=200)]
AssignableRole = Literal["user", "admin"]


class QuotasOut(BaseModel):
    can_use_app: bool
    team_members: int | None


class PlanOut(BaseModel):
    id: str
    codename: str
    name: str
    required_coupon_count: int | None
    is_default: bool
    quotas: QuotasOut

    @classmethod
    def from_plan(cls, plan: Plan) -> PlanOut:
        return cls(
            id=str(plan.id),
            codename=plan.codename,
            name=plan.name,
            required_coupon_count=plan.required_coupon_count,
            is_default=plan.is_default,
            quotas=QuotasOut(
                can_use_app=plan.quotas.can_use_app,
                team_members=plan.quotas.team_members,
            ),
        )


class OrgOut(BaseModel):
    id: str
    name: str
    slug: str
    plan_id: str | None

    @classmethod
    def from_org(cls, org: Organization) -> OrgOut:
        return cls(
            id=str(org.id),
            name=org.name,
            slug=org.slug,
            plan_id=str(org.plan_id) if org.plan_id else None,
        )


class ExpiryReportOut(BaseModel):
    """Batch expiry outcome; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    workspaces_downgraded: int
    total_expired: int
    errors: list[str]
    not_found_codes: list[str]
    failed_organization_ids: list[str]

    @classmethod
    def from_report(cls, report: ExpiryReport) -> ExpiryReportOut:
        return cls(
            message=report.message,
            workspaces_downgraded=report.workspaces_downgraded,
            total_expired=report.total_expired,
            errors=report.errors,
            not_found_codes=report.not_found_codes,
            failed_organization_ids=[str(i) for i in report.failed_organization_ids],
        )


class MemberOut(BaseModel):
    id: str
    name: str
    email: str
    role: str


class InviteOut(BaseModel):
    id: str
    email: str
    role: str
    expires_at: int
    created_at: int

    @classmethod
    def from_invitation(cls, invitation: Invitation) -> InviteOut:
        return cls(
            id=str(invitation.id),
            email=invitation.email,
            role=invitation.org_role,
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
        )


class UpdateRoleIn(BaseModel):
    role: AssignableRole
