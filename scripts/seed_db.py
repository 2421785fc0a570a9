from __future__ import annotations

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
from src.outreach_ops.outreach_ops.database.bootstrap import apply_seed_sql, ensure_demo_users

logger = logging.getLogger(f"{PACKAGE_LOGGER}.scripts.seed_db")


def main() -> None:
    load_dotenv(REPO_ROOT / ".env", override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    db_config = dict(settings.DB_CONFIG)

    apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
    ensure_demo_users(db_config)
    logger.info("Seeded %s@%s/%s", db_config.get("user"), db_config.get("host"), db_config.get("database"))


if __name__ == "__main__":
    main()
