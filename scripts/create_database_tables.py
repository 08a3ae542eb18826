"""
Create Database Tables Using SQLAlchemy

This script creates all database tables directly using SQLAlchemy's create_all()
method. This bypasses Alembic migrations and is useful for local development
and throwaway databases.

Usage:
    python scripts/create_database_tables.py [--reset]
"""
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse

import sqlalchemy as sa

from src.leadintake.db.base import Base, import_all_models
from src.leadintake.db.session import get_engine, create_all_tables
from src.leadintake.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)


def main():
    """Create all database tables."""
    parser = argparse.ArgumentParser(description="Create ingestion tables")
    parser.add_argument("--reset", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()

    setup_logging()
    engine = get_engine()
    import_all_models()

    if args.reset:
        logger.warning("dropping_existing_tables", tables=sorted(Base.metadata.tables))
        Base.metadata.drop_all(bind=engine)

    create_all_tables(engine)

    tables = sorted(sa.inspect(engine).get_table_names())
    logger.info("tables_verified", count=len(tables), tables=tables)
    for table in tables:
        print(f"  - {table}")


if __name__ == "__main__":
    main()
