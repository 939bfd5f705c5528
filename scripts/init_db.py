"""
Create the CRM tables directly from the models (local/dev databases).

Production databases are managed by Alembic (`python scripts/release.py`).

Usage:
  python scripts/init_db.py
"""

import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.models import Base
from scripts._db_utils import create_script_engine, resolve_database_url


def create_tables(*, database_url: str | None = None) -> None:
    """Create any missing tables; existing tables and rows are left alone."""
    engine = create_script_engine(resolve_database_url(database_url))
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()
    print(f"Initialized database: {', '.join(sorted(Base.metadata.tables))}")


def main() -> None:
    create_tables(database_url=None)


if __name__ == "__main__":
    main()
