"""Coupon redemption, expiry and administration.

Redemption claims a coupon with one conditional write; two concurrent
attempts on the same code cannot both succeed.  Every change to the set
of coupons counting toward an organization is followed by a plan
recalculation for that organization.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from uuid import UUID

from tenantgate.core.metrics import COUPON_REDEMPTIONS, COUPONS_EXPIRED, PLAN_RECALCULATIONS
from tenantgate.models.coupon import Coupon, normalize_code
from tenantgate.models.organization import Organization
from tenantgate.models.plan import Plan
from tenantgate.repos.coupon_repo import CouponStatus
from tenantgate.repos.registry import Repos
from tenantgate.services.entitlement_service import RecalculationResult, recalculate
from tenantgate.services.errors import CouponNotFound, InvalidCoupon

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_SUFFIX_LENGTH = 8
MAX_GENERATE = 1000
_PREFIX_RE = re.compile(r"^[A-Z0-9][A-Z0-9_-]*$")


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    coupon: Coupon
    organization: Organization
    plan: Plan | None
    coupon_count: int


@dataclass(slots=True)
class ExpiryReport:
    total_expired: int = 0
    recalculated_organization_ids: list[UUID] = field(default_factory=list)
    failed_organization_ids: list[UUID] = field(default_factory=list)
    not_found_codes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def workspaces_downgraded(self) -> int:
        return len(self.recalculated_organization_ids)


@dataclass(frozen=True, slots=True)
class CouponPage:
    coupons: list[Coupon]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


async def redeem(repos: Repos, code: str, org_id: UUID, user_id: UUID) -> RedemptionResult:
    normalized = normalize_code(code)
    if not normalized:
        COUPON_REDEMPTIONS.labels(result="invalid").inc()
        raise InvalidCoupon()

    claimed = await repos.coupons.claim(normalized, org_id, user_id, int(time.time()))
    if claimed is None:
        COUPON_REDEMPTIONS.labels(result="invalid").inc()
        logger.info("Coupon redemption rejected org=%s user=%s", org_id, user_id)
        raise InvalidCoupon()

    COUPON_REDEMPTIONS.labels(result="redeemed").inc()
    logger.info("Coupon %s redeemed by user=%s for org=%s", claimed.code, user_id, org_id)

    result = await recalculate(repos, org_id)
    return RedemptionResult(
        coupon=claimed,
        organization=result.organization,
        plan=result.plan,
        coupon_count=result.coupon_count,
    )


async def expire_batch(repos: Repos, codes: list[str]) -> ExpiryReport:
    """Expire many codes, then recalculate each affected organization once.

    A failing organization is recorded in the report and does not stop
    the others.  Already-expired and unknown codes are reported, not
    raised.
    """
    normalized = list(dict.fromkeys(c for c in (normalize_code(x) for x in codes) if c))
    expired = await repos.coupons.expire_codes(normalized)
    COUPONS_EXPIRED.inc(len(expired))

    found = {c.code for c in expired}
    report = ExpiryReport(
        total_expired=len(expired),
        not_found_codes=[c for c in normalized if c not in found],
    )

    if not expired:
        report.message = "No valid coupon codes found to expire"
        report.errors.append(report.message)
        logger.info("Batch expiry matched no coupons (%d codes given)", len(normalized))
        return report

    affected = list(
        dict.fromkeys(
            c.organization_id
            for c in expired
            if c.used_at is not None and c.organization_id is not None
        )
    )
    for org_id in affected:
        try:
            async with repos.savepoint():
                await recalculate(repos, org_id)
        except Exception as exc:
            PLAN_RECALCULATIONS.labels(result="failed").inc()
            logger.exception("Plan recalculation failed for org=%s during batch expiry", org_id)
            report.failed_organization_ids.append(org_id)
            report.errors.append(f"Failed to update plan for organization {org_id}: {exc}")
        else:
            report.recalculated_organization_ids.append(org_id)

    if report.not_found_codes:
        report.errors.append(
            "Could not find the following coupon codes: " + ", ".join(report.not_found_codes)
        )

    report.message = (
        f"Successfully expired {report.total_expired} coupon(s) and updated "
        f"{report.workspaces_downgraded} workspace(s)"
    )
    logger.info(
        "Batch expiry: expired=%d recalculated=%d failed=%d not_found=%d",
        report.total_expired,
        report.workspaces_downgraded,
        len(report.failed_organization_ids),
        len(report.not_found_codes),
    )
    return report


def _random_suffix() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_SUFFIX_LENGTH))


async def generate_coupons(repos: Repos, prefix: str, count: int) -> list[Coupon]:
    prefix = prefix.strip().upper()
    if not _PREFIX_RE.match(prefix):
        raise ValueError("prefix must be letters, digits, '-' or '_'")
    if not 1 <= count <= MAX_GENERATE:
        raise ValueError(f"count must be between 1 and {MAX_GENERATE}")

    codes: set[str] = set()
    while len(codes) < count:
        codes.add(f"{prefix}-{_random_suffix()}")

    coupons = [Coupon.new(code=code) for code in sorted(codes)]
    await repos.coupons.add_many(coupons)
    logger.info("Generated %d coupon(s) with prefix %s", count, prefix)
    return coupons


async def expire_coupon(
    repos: Repos, coupon_id: UUID
) -> tuple[Coupon, RecalculationResult | None]:
    coupon = await repos.coupons.expire_by_id(coupon_id)
    if coupon is None:
        existing = await repos.coupons.get_by_id(coupon_id)
        if existing is None:
            raise CouponNotFound()
        # Already expired: nothing changed, nothing to recalculate.
        return existing, None
    COUPONS_EXPIRED.inc()

    result = None
    if coupon.used_at is not None and coupon.organization_id is not None:
        result = await recalculate(repos, coupon.organization_id)
    logger.info("Coupon %s expired", coupon.code)
    return coupon, result


async def delete_coupon(
    repos: Repos, coupon_id: UUID
) -> tuple[Coupon, RecalculationResult | None]:
    coupon = await repos.coupons.delete(coupon_id)
    if coupon is None:
        raise CouponNotFound()

    result = None
    if coupon.organization_id is not None and coupon.counts_toward(coupon.organization_id):
        result = await recalculate(repos, coupon.organization_id)
    logger.info("Coupon %s deleted", coupon.code)
    return coupon, result


async def list_coupons(
    repos: Repos,
    *,
    page: int = 1,
    limit: int = 50,
    search: str = "",
    status: CouponStatus = "all",
) -> CouponPage:
    page = max(page, 1)
    coupons, total = await repos.coupons.list_page(
        search=search.strip(), status=status, offset=(page - 1) * limit, limit=limit
    )
    return CouponPage(coupons=coupons, total=total, page=page, limit=limit)


async def list_org_coupons(repos: Repos, org_id: UUID) -> list[Coupon]:
    return await repos.coupons.list_redeemed_by_org(org_id)
