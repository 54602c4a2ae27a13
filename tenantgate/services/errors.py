"""Domain error taxonomy.

Services raise these; the API layer translates each one into an
HTTPException carrying its ``status`` and message.  Per-item failures
inside batch operations are collected into reports instead of being
raised.
"""

from __future__ import annotations


class TenantGateError(Exception):
    code = "error"
    status = 400
    default_message = "request failed"

    def __init__(self, message: str | None = None, *, status: int | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status is not None:
            self.status = status


class Unauthenticated(TenantGateError):
    code = "unauthenticated"
    status = 401
    default_message = "You are not authorized to perform this action"


class Forbidden(TenantGateError):
    code = "forbidden"
    status = 403
    default_message = "Insufficient org permissions"


class NotAMember(TenantGateError):
    code = "not_a_member"
    status = 403
    default_message = "User does not belong to this organization"


class NoOrganizationSelected(TenantGateError):
    code = "no_organization_selected"
    status = 400
    default_message = "No organization selected"


class OrganizationNotFound(TenantGateError):
    code = "organization_not_found"
    status = 404
    default_message = "Organization not found"


class SlugTaken(TenantGateError):
    code = "slug_taken"
    status = 409
    default_message = "slug already taken"


class InvalidCoupon(TenantGateError):
    """One error for absent, used and expired codes alike."""

    code = "invalid_coupon"
    status = 400
    default_message = "The coupon code is invalid, expired, or has already been used."


class CouponNotFound(TenantGateError):
    code = "coupon_not_found"
    status = 404
    default_message = "Coupon not found"


class PlanNotFound(TenantGateError):
    code = "plan_not_found"
    status = 404
    default_message = "Plan not found"


class PlanConflict(TenantGateError):
    code = "plan_conflict"
    status = 409
    default_message = "Plan conflicts with an existing plan"


class MemberNotFound(TenantGateError):
    code = "member_not_found"
    status = 404
    default_message = "Member not found"


class MemberMutationDenied(TenantGateError):
    code = "member_mutation_denied"
    status = 403
    default_message = "This member cannot be changed"


class QuotaExceeded(TenantGateError):
    code = "quota_exceeded"
    status = 400
    default_message = "Team members limit reached"


class InvitationError(TenantGateError):
    code = "invitation_error"
    status = 400
    default_message = "Invalid invitation"
