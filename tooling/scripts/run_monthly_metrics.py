#!/usr/bin/env python3
"""Aggregate monthly funnel metrics outside the in-process scheduler.

Example:
    python tooling/scripts/run_monthly_metrics.py --target-date 2026-09-01

Without ``--target-date`` the previous calendar month (UTC) is aggregated.
Manually entered spend and revenue figures are never modified.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate monthly funnel metrics")
    parser.add_argument(
        "--target-date",
        help="Any YYYY-MM-DD date inside the month to aggregate.",
    )
    return parser.parse_args()


async def _run(target_date: str | None) -> dict[str, object]:
    repo_root = Path(__file__).resolve().parents[2]
    src_path = repo_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))

    from spicymarg_api.jobs.metrics import aggregate_monthly_metrics  # type: ignore import-position

    return await aggregate_monthly_metrics(target_date=target_date)


def main() -> int:
    args = parse_args()
    summary = asyncio.run(_run(args.target_date))
    logger.success("Monthly metrics run completed", **summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
