"""
Release phase: migrate, seed the first tenant admin, and report the
AdminWorkBench rollout the new release will serve.

Usage:
  python scripts/release.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.feature_flags import WorkbenchRollout  # noqa: E402


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release onto sqlite in production. Set DATABASE_URL to Postgres.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def rollout_summary(rollout: WorkbenchRollout | None = None) -> str:
    config = (rollout or WorkbenchRollout()).get_config()
    if not config.enabled_globally:
        return "AdminWorkBench: off (legacy dashboard for everyone)"
    beta = f", {len(config.beta_testers)} beta tester(s) only" if config.beta_testers else ""
    return (
        f"AdminWorkBench: on for {config.rollout_percentage}% of users, "
        f"target={config.target_users}{beta}"
    )


def run_release() -> None:
    db_url = _database_url()

    print("Running Alembic migrations...", flush=True)
    migrate(db_url)

    print("Seeding tenant/admin (idempotent)...", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url)

    print(rollout_summary(), flush=True)


if __name__ == "__main__":
    run_release()
