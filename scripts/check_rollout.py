#!/usr/bin/env python
"""
AdminWorkBench rollout inspector.

Prints the flag configuration read from the environment and the verdict for
each user given on the command line. Useful before widening a canary.

Usage:
    python scripts/check_rollout.py 42 57 101
    python scripts/check_rollout.py --role ADMIN 42
    python scripts/check_rollout.py --database   # every user in DATABASE_URL

Environment:
    ADMIN_WORKBENCH_ENABLED, ADMIN_WORKBENCH_ROLLOUT_PERCENTAGE,
    ADMIN_WORKBENCH_TARGET_USERS, ADMIN_WORKBENCH_BETA_TESTERS
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.feature_flags import WorkbenchRollout, hash_user_id  # noqa: E402


def _database_users(db_url: str) -> list[tuple[str, str | None]]:
    from app.portal.models import User
    from scripts.init_db import _session_scope

    with _session_scope(db_url) as s:
        return [(str(u.id), u.role) for u in s.query(User).order_by(User.id.asc()).all()]


def main():
    parser = argparse.ArgumentParser(description="Show AdminWorkBench rollout verdicts")
    parser.add_argument("user_ids", nargs="*", help="User ids to evaluate")
    parser.add_argument("--role", default=None, help="Role to evaluate the given ids with")
    parser.add_argument("--database", action="store_true", help="Evaluate every user in DATABASE_URL")
    args = parser.parse_args()

    load_dotenv()
    rollout = WorkbenchRollout()
    config = rollout.get_config()

    print("=== AdminWorkBench flag ===")
    for key, value in config.to_dict().items():
        print(f"{key}: {value}")

    subjects = [(uid, args.role) for uid in args.user_ids]
    if args.database:
        db_url = (os.environ.get("DATABASE_URL") or "sqlite:///portal.db").strip()
        subjects.extend(_database_users(db_url))

    if not subjects:
        return

    enabled = 0
    print("\nuser_id\trole\tbucket\tenabled")
    for uid, role in subjects:
        verdict = rollout.evaluate(uid, role)
        enabled += int(verdict.enabled)
        print(f"{uid}\t{role or '-'}\t{hash_user_id(uid)}\t{'yes' if verdict.enabled else 'no'}")
    print(f"\n{enabled}/{len(subjects)} enabled")


if __name__ == "__main__":
    main()
