"""
Release phase: migrate the schema to head, then seed the admin user.

Refuses to run without DATABASE_URL, and refuses sqlite when ENV is
production.

Usage:
  python scripts/release.py [--skip-seed]
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")
    return db_url


def migrate(db_url: str, revision: str = "head") -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, revision)


def run_release(*, seed: bool = True) -> None:
    db_url = _database_url()

    print("=== Questboard release ===", flush=True)
    print(f"Upgrading schema (ENV={os.environ.get('ENV') or '(unset)'})...", flush=True)
    migrate(db_url)
    print("Schema at head.", flush=True)

    if seed:
        from scripts import init_db

        init_db.seed_only(database_url=db_url)
    print("=== Questboard release done ===", flush=True)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run migrations and seed the admin user.")
    parser.add_argument("--skip-seed", action="store_true", help="only run migrations")
    args = parser.parse_args()
    run_release(seed=not args.skip_seed)


if __name__ == "__main__":
    main()
