"""
Create tables (when asked) and seed the site admin.

Usage:
  python scripts/init_db.py            # create_all + seed (local sqlite)
  python scripts/release.py            # alembic upgrade + seed (deploys)
"""
import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.questboard.constants import ROLE_ADMIN  # noqa: E402
from app.questboard.models import User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> None:
    """
    Seed the admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@questboard.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///questboard.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url, create_tables=create_tables) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                display_name="Admin",
                role=ROLE_ADMIN,
                is_active=True,
            )
            s.add(user)
        elif user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None, create_tables=True)


if __name__ == "__main__":
    main()
