"""
Database initialization script for the identity and HubSpot sync tables.

Creates users and hubspot_sync_logs when they are missing. create_all never
alters an existing table, so --check reports tables or columns that a
deployed database lacks (e.g. users.sync_locked_at on a database created
before the sync lease existed) without changing anything.

Usage:
    python -m scripts.init_db
    python -m scripts.init_db --check
    python -m scripts.init_db --database-url sqlite:///./wealthiq.db

Environment variables:
    DATABASE_URL: PostgreSQL connection string (postgres:// is accepted)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from wealthiq.database.session import _get_database_url, create_database_engine
from wealthiq.db_base import Base
from wealthiq.models import HubSpotSyncLog, User  # noqa: F401 - registers tables

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def find_schema_drift(engine: Engine) -> Dict[str, Optional[List[str]]]:
    """
    Compare the live database with the model metadata.

    Returns:
        table name -> None when the table is missing, or the list of model
        columns the table lacks. Tables that match are left out.
    """
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())

    drift: Dict[str, Optional[List[str]]] = {}
    for table_name, table in sorted(Base.metadata.tables.items()):
        if table_name not in existing_tables:
            drift[table_name] = None
            continue
        live_columns = {column["name"] for column in inspector.get_columns(table_name)}
        missing = [column.name for column in table.columns if column.name not in live_columns]
        if missing:
            drift[table_name] = missing
    return drift


def report_drift(drift: Dict[str, Optional[List[str]]]) -> None:
    for table_name in sorted(Base.metadata.tables):
        if table_name not in drift:
            logger.info(f"  {table_name}: OK")
        elif drift[table_name] is None:
            logger.warning(f"  {table_name}: MISSING")
        else:
            logger.warning(f"  {table_name}: missing columns {', '.join(drift[table_name])}")


def init_database(engine: Engine, check_only: bool = False) -> bool:
    """
    Create missing tables (unless check_only) and report what remains.

    Returns:
        True when every table and column of the models exists afterwards
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection successful")

    if not check_only:
        Base.metadata.create_all(bind=engine)
        logger.info("Created missing tables")

    drift = find_schema_drift(engine)
    report_drift(drift)
    return not drift


def main() -> int:
    parser = argparse.ArgumentParser(description="Initialize identity and HubSpot sync tables")
    parser.add_argument(
        "--database-url",
        help="Database URL (overrides DATABASE_URL env var)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report missing tables and columns",
    )
    args = parser.parse_args()

    try:
        engine = create_database_engine(args.database_url or _get_database_url())
    except ValueError as e:
        logger.error(str(e))
        return 1

    try:
        up_to_date = init_database(engine, check_only=args.check)
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        return 1
    finally:
        engine.dispose()

    if not up_to_date:
        logger.warning("Schema is behind the models; columns must be added manually")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
