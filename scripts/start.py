#!/usr/bin/env python3
"""
Boot the portal.

Checks the AdminWorkBench rollout settings, runs the release phase, then
replaces this process with gunicorn.

Usage:
    python scripts/start.py
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.feature_flags import rollout_config_problems  # noqa: E402

DEFAULT_PORT = 8080


def resolve_port(raw: str | None) -> int:
    value = (raw or "").strip() or str(DEFAULT_PORT)
    try:
        port = int(value)
    except ValueError:
        port = 0
    if not 1 <= port <= 65535:
        raise SystemExit(f"ERROR: Invalid PORT {value!r}; expected an integer 1-65535.")
    return port


def preflight() -> None:
    problems = rollout_config_problems()
    for problem in problems:
        print(f"ERROR: {problem}", flush=True)
    if problems:
        raise SystemExit("Refusing to start with a malformed AdminWorkBench rollout.")


def gunicorn_argv(port: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", (os.environ.get("WEB_CONCURRENCY") or "2").strip(),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = resolve_port(os.environ.get("PORT"))
    preflight()

    from scripts.release import run_release

    run_release()

    print(f"=== gunicorn on :{port} ===", flush=True)
    # exec so gunicorn becomes PID 1 and receives signals directly
    os.execvp("gunicorn", gunicorn_argv(port))


if __name__ == "__main__":
    main()
