#!/usr/bin/env python3
"""
Container entry point: release (migrate + seed), then exec gunicorn.

Environment:
  PORT             bind port (default 8080)
  WEB_CONCURRENCY  gunicorn workers (default 2)

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


def _positive_env_int(name: str, default: int, upper: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if not 1 <= value <= upper:
        print(f"ERROR: Invalid {name} value '{raw}'. Must be integer 1-{upper}.", flush=True)
        sys.exit(1)
    return value


def gunicorn_argv(port: int, workers: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "60",
        # app is created once in the master; create_app disposes the engine in each child
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _positive_env_int("PORT", 8080, 65535)
    workers = _positive_env_int("WEB_CONCURRENCY", 2, 64)

    from scripts.release import run_release
    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"Starting gunicorn on 0.0.0.0:{port} with {workers} workers", flush=True)
    os.execvp("gunicorn", gunicorn_argv(port, workers))


if __name__ == "__main__":
    main()
