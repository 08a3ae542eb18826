"""
Database Utilities

Helper functions for value conversion and table statistics.
"""
from datetime import datetime, date
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.leadintake.db.models import Property, UploadJob, UploadStaging, Violation
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

DATE_FORMATS = [
    '%Y-%m-%d',
    '%m/%d/%Y',
    '%m/%d/%y',
    '%d/%m/%Y',
    '%Y/%m/%d',
    '%m-%d-%Y',
]


def parse_date_string(date_str: Optional[str]) -> Optional[date]:
    """
    Parse date string in various formats.

    Timestamps (``2024-01-15T10:30:00``, ``2024-01-15 10:30:00``) are cut
    to their date part first.

    Args:
        date_str: Date string (YYYY-MM-DD, MM/DD/YYYY, etc.)

    Returns:
        date object or None
    """
    if not date_str:
        return None

    value = date_str.strip()
    if not value:
        return None
    if len(value) > 10 and value[4] == '-' and value[10] in 'T ':
        value = value[:10]

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    logger.warning("date_parse_failed", date_str=date_str)
    return None


def truncate(value: Optional[str], length: int) -> Optional[str]:
    """Cut a free-text value to a column's length."""
    if value is None:
        return None
    return value[:length]


def get_database_stats(session: Session) -> Dict[str, int]:
    """
    Row counts for the ingestion tables.

    Args:
        session: Database session

    Returns:
        Dict of table name to row count
    """
    stats = {}
    for name, model in (
        ('upload_jobs', UploadJob),
        ('upload_staging', UploadStaging),
        ('properties', Property),
        ('violations', Violation),
    ):
        stats[name] = session.scalar(select(func.count()).select_from(model))

    logger.info("database_stats_retrieved", **stats)
    return stats
