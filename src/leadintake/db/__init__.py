"""
Database Package

Database models, connection management, and data persistence layer.
"""
from src.leadintake.db.base import Base
from src.leadintake.db.session import (
    build_engine,
    build_session_factory,
    get_engine,
    get_session_factory,
    get_db_session,
    health_check,
    close_connections,
    create_all_tables,
    with_retry,
)
from src.leadintake.db.models import (
    Jurisdiction,
    UploadJob,
    UploadStaging,
    Property,
    Violation,
)
from src.leadintake.db.repository import (
    BaseRepository,
    JurisdictionRepository,
    UploadJobRepository,
    UploadStagingRepository,
    PropertyRepository,
    ViolationRepository,
)
from src.leadintake.db import utils as db_utils

__all__ = [
    # Base
    "Base",
    # Session management
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "get_db_session",
    "health_check",
    "close_connections",
    "create_all_tables",
    "with_retry",
    # Models
    "Jurisdiction",
    "UploadJob",
    "UploadStaging",
    "Property",
    "Violation",
    # Repositories
    "BaseRepository",
    "JurisdictionRepository",
    "UploadJobRepository",
    "UploadStagingRepository",
    "PropertyRepository",
    "ViolationRepository",
    # Utilities
    "db_utils",
]
