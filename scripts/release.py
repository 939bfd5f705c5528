"""
Apply database migrations before a deploy goes live.

Refuses to run without DATABASE_URL, and refuses SQLite when ENV is production.

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


def _database_url() -> str:
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be set to run migrations.")
    return url


def _alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    # ConfigParser interpolation treats % as special (URL-encoded passwords).
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    return cfg


def run_release() -> None:
    from alembic import command
    from dotenv import load_dotenv

    load_dotenv()
    db_url = _database_url()
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("ENV=production requires a Postgres DATABASE_URL, not sqlite.")

    print(f"[release] env={env or 'unset'}; upgrading schema to head", flush=True)
    command.upgrade(_alembic_config(db_url), "head")
    print("[release] schema up to date", flush=True)


if __name__ == "__main__":
    run_release()
