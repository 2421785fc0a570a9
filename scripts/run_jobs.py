"""Periodic maintenance: sync started shifts to in-progress and auto clock out stale entries.

Meant for cron, e.g. every 15 minutes:

    python scripts/run_jobs.py
    python scripts/run_jobs.py --only auto-clock-out --max-hours 16
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.outreach_ops.outreach_ops.common.logging import PACKAGE_LOGGER, configure_logging
from src.outreach_ops.outreach_ops.container import build_container

logger = logging.getLogger(f"{PACKAGE_LOGGER}.scripts.run_jobs")

JOBS = ("sync-shifts", "auto-clock-out")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--only", choices=JOBS, help="run a single job")
    parser.add_argument("--max-hours", type=float, default=None, help="auto clock-out limit (default from settings)")
    args = parser.parse_args(argv)

    load_dotenv(REPO_ROOT / ".env", override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    container = build_container(db_config=dict(settings.DB_CONFIG), settings=settings)

    if args.only in (None, "sync-shifts"):
        started = container.shift_service.sync_started_shifts()
        logger.info("Shifts moved to in-progress: %s", len(started))
    if args.only in (None, "auto-clock-out"):
        closed = container.time_clock_service.auto_clock_out(max_hours=args.max_hours)
        logger.info("Entries auto clocked out: %s", len(closed))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
