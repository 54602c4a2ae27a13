#!/usr/bin/env python3
"""Expire coupon codes in bulk and recalculate the affected organizations.

RUN:  python -m scripts.expire_coupons LTD-AAAA1111 LTD-BBBB2222
      python -m scripts.expire_coupons --file codes.txt

Runs against the database in DATABASE_URL and prints the expiry report
as JSON.  Exits 1 when the report contains errors.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from tenantgate.api.schemas import ExpiryReportOut
from tenantgate.core.config import SETTINGS
from tenantgate.core.logging import setup_logging
from tenantgate.db.engine import async_session_factory, engine
from tenantgate.repos.registry import pg_repos
from tenantgate.services.coupon_service import ExpiryReport, expire_batch


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("codes", nargs="*", help="coupon codes to expire")
    parser.add_argument(
        "--file",
        type=Path,
        help="read codes from a file, one per line or comma separated",
    )
    return parser.parse_args(argv)


def collect_codes(args: argparse.Namespace) -> list[str]:
    codes = list(args.codes)
    if args.file is not None:
        for line in args.file.read_text().splitlines():
            codes.extend(line.split(","))
    return [c.strip() for c in codes if c.strip()]


def report_to_json(report: ExpiryReport) -> dict:
    return ExpiryReportOut.from_report(report).model_dump(by_alias=True)


async def run(codes: list[str]) -> ExpiryReport:
    if async_session_factory is None or engine is None:
        raise SystemExit("DATABASE_URL is not configured")

    try:
        async with async_session_factory() as session:
            async with session.begin():
                return await expire_batch(pg_repos(session), codes)
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    codes = collect_codes(parse_args(argv))
    if not codes:
        print("No coupon codes given", file=sys.stderr)
        return 2

    report = asyncio.run(run(codes))
    print(json.dumps(report_to_json(report), indent=2))
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
