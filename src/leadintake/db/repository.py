"""
Repository Pattern for Data Access

Provides CRUD operations and domain-specific queries for all models.
"""
from datetime import datetime
from typing import List, Optional, Dict, Any, Iterable, Type, TypeVar

from sqlalchemy import select, update, delete, func, desc
from sqlalchemy.orm import Session

from src.leadintake.db.models import (
    Jurisdiction,
    UploadJob,
    UploadStaging,
    Property,
    Violation,
)
from src.leadintake.jobs.state import JobStatus, RUNNING_STATUSES
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def chunked(items: List[Any], size: int) -> Iterable[List[Any]]:
    """Yield consecutive slices of ``items`` with at most ``size`` entries."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BaseRepository:
    """
    Base repository with common CRUD operations.

    Generic repository that can be extended for specific models.
    """

    def __init__(self, model: Type[T]):
        """
        Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        logger.debug("repository_initialized", model=model.__name__)

    def get_by_id(self, session: Session, id_value: Any) -> Optional[T]:
        """
        Get single record by primary key.

        Args:
            session: Database session
            id_value: Primary key value

        Returns:
            Model instance or None
        """
        result = session.get(self.model, id_value)
        logger.debug(
            "repository_get_by_id",
            model=self.model.__name__,
            id=id_value,
            found=result is not None
        )
        return result

    def delete(self, session: Session, id_value: Any) -> bool:
        """
        Delete record (hard delete).

        Args:
            session: Database session
            id_value: Primary key value

        Returns:
            True if deleted, False if not found
        """
        instance = self.get_by_id(session, id_value)
        if not instance:
            logger.warning("repository_delete_not_found", model=self.model.__name__, id=id_value)
            return False

        session.delete(instance)
        session.flush()
        logger.info("repository_deleted", model=self.model.__name__, id=id_value)
        return True


class JurisdictionRepository(BaseRepository):
    """Repository for Jurisdiction model."""

    def __init__(self):
        super().__init__(Jurisdiction)

    def get_by_name(self, session: Session, name: str, state: str) -> Optional[Jurisdiction]:
        query = select(Jurisdiction).where(
            func.lower(Jurisdiction.name) == name.strip().lower(),
            Jurisdiction.state == state.strip().upper(),
        )
        return session.execute(query).scalar_one_or_none()


class UploadJobRepository(BaseRepository):
    """Repository for UploadJob model with job-tracking queries."""

    def __init__(self):
        super().__init__(UploadJob)

    def create_job(
        self,
        session: Session,
        user_id: str,
        storage_path: str,
        filename: str,
        file_size: int = 0,
        city: Optional[str] = None,
        county: Optional[str] = None,
        state: Optional[str] = None,
        jurisdiction_id: Optional[int] = None,
        parent_job_id: Optional[int] = None,
    ) -> UploadJob:
        """
        Create a QUEUED upload job.

        Args:
            session: Database session
            user_id: Owning user
            storage_path: Blob key of the stored CSV
            filename: Original filename
            file_size: Size in bytes
            city: Declared or detected city
            county: County
            state: State code
            jurisdiction_id: Jurisdiction reference
            parent_job_id: Parent job when created by a split

        Returns:
            UploadJob instance
        """
        job = UploadJob(
            user_id=user_id,
            storage_path=storage_path,
            filename=filename,
            file_size=file_size,
            status=JobStatus.QUEUED.value,
            city=city,
            county=county,
            state=state,
            jurisdiction_id=jurisdiction_id,
            parent_job_id=parent_job_id,
            processed_rows=0,
            properties_created=0,
            violations_created=0,
            warnings=[],
        )
        session.add(job)
        session.flush()

        logger.info(
            "upload_job_created",
            job_id=job.id,
            user_id=user_id,
            storage_path=storage_path,
            parent_job_id=parent_job_id,
        )
        return job

    def get_recent_jobs(
        self,
        session: Session,
        user_id: Optional[str] = None,
        limit: int = 20
    ) -> List[UploadJob]:
        """
        Get most recently created jobs.

        Args:
            session: Database session
            user_id: Filter by owning user (optional)
            limit: Maximum number of jobs

        Returns:
            List of upload jobs, newest first
        """
        query = select(UploadJob).order_by(desc(UploadJob.created_at), desc(UploadJob.id))
        if user_id:
            query = query.where(UploadJob.user_id == user_id)
        return session.execute(query.limit(limit)).scalars().all()

    def get_children(self, session: Session, parent_job_id: int) -> List[UploadJob]:
        query = select(UploadJob).where(UploadJob.parent_job_id == parent_job_id).order_by(UploadJob.id)
        return session.execute(query).scalars().all()

    def find_stuck_jobs(self, session: Session, started_before: datetime) -> List[UploadJob]:
        """
        Jobs in a running phase whose ``started_at`` is older than the cutoff.

        Args:
            session: Database session
            started_before: Cutoff timestamp (UTC)

        Returns:
            List of stuck jobs, oldest first
        """
        query = select(UploadJob).where(
            UploadJob.status.in_([status.value for status in RUNNING_STATUSES]),
            UploadJob.started_at.is_not(None),
            UploadJob.started_at < started_before,
        ).order_by(UploadJob.started_at)
        return session.execute(query).scalars().all()

    def find_orphaned_queued_jobs(self, session: Session, created_before: datetime) -> List[UploadJob]:
        """QUEUED jobs never picked up by a worker and older than the cutoff."""
        query = select(UploadJob).where(
            UploadJob.status == JobStatus.QUEUED.value,
            UploadJob.started_at.is_(None),
            UploadJob.created_at < created_before,
        ).order_by(UploadJob.created_at)
        return session.execute(query).scalars().all()

    def add_warnings(self, session: Session, job: UploadJob, messages: List[str], limit: int) -> int:
        """
        Append warnings to a job, capped at ``limit`` entries.

        Returns:
            Number of messages that did not fit
        """
        current = list(job.warnings or [])
        room = max(limit - len(current), 0)
        job.warnings = current + list(messages[:room])
        session.flush()
        return max(len(messages) - room, 0)


class UploadStagingRepository(BaseRepository):
    """Repository for UploadStaging rows scoped by job."""

    def __init__(self):
        super().__init__(UploadStaging)

    def bulk_insert(self, session: Session, job_id: int, rows: List[Dict[str, Any]]) -> int:
        """
        Insert staging rows for a job.

        Args:
            session: Database session
            job_id: Owning job
            rows: Column dicts (row_num, address, city, ...)

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0
        session.add_all([UploadStaging(job_id=job_id, **row) for row in rows])
        session.flush()
        logger.debug("staging_rows_inserted", job_id=job_id, count=len(rows))
        return len(rows)

    def get_rows(self, session: Session, job_id: int) -> List[UploadStaging]:
        """All staging rows of a job in original file order."""
        query = select(UploadStaging).where(UploadStaging.job_id == job_id).order_by(UploadStaging.row_num)
        return session.execute(query).scalars().all()

    def count_for_job(self, session: Session, job_id: int) -> int:
        return session.scalar(
            select(func.count()).select_from(UploadStaging).where(UploadStaging.job_id == job_id)
        )

    def linked_property_ids(self, session: Session, job_id: int) -> List[int]:
        """Distinct property ids that this job's staging rows resolved to."""
        query = select(UploadStaging.property_id).where(
            UploadStaging.job_id == job_id,
            UploadStaging.property_id.is_not(None),
        ).distinct()
        return sorted(session.execute(query).scalars().all())

    def link_properties(self, session: Session, links: Dict[int, int]):
        """Set ``property_id`` on staging rows, keyed by staging row id."""
        for staging_id, property_id in links.items():
            session.execute(
                update(UploadStaging)
                .where(UploadStaging.id == staging_id)
                .values(property_id=property_id)
            )
        session.flush()

    def delete_for_job(self, session: Session, job_id: int) -> int:
        result = session.execute(delete(UploadStaging).where(UploadStaging.job_id == job_id))
        session.flush()
        logger.info("staging_rows_deleted", job_id=job_id, count=result.rowcount)
        return result.rowcount


class PropertyRepository(BaseRepository):
    """Repository for Property model with specialized queries."""

    def __init__(self):
        super().__init__(Property)

    def find_by_addresses(self, session: Session, addresses: List[str]) -> List[Property]:
        """
        Properties whose lower-cased address is in ``addresses``.

        Ordered by id so the oldest of any legacy duplicates comes first.

        Args:
            session: Database session
            addresses: Lower-cased, trimmed street addresses

        Returns:
            List of properties
        """
        if not addresses:
            return []
        query = select(Property).where(
            func.lower(func.trim(Property.address)).in_(addresses)
        ).order_by(Property.id)
        return session.execute(query).scalars().all()

    def bulk_create(self, session: Session, properties: List[Dict[str, Any]]) -> List[Property]:
        """
        Insert new properties and return them with ids assigned.

        Args:
            session: Database session
            properties: Column dicts

        Returns:
            Created Property instances in input order
        """
        instances = [Property(**data) for data in properties]
        session.add_all(instances)
        session.flush()
        logger.info("properties_bulk_created", count=len(instances))
        return instances

    def _filtered(self, query, city: Optional[str], state: Optional[str]):
        if city:
            query = query.where(Property.city.ilike(city))
        if state:
            query = query.where(Property.state.ilike(state))
        return query

    def count_filtered(self, session: Session, city: Optional[str] = None, state: Optional[str] = None) -> int:
        query = self._filtered(select(func.count()).select_from(Property), city, state)
        return session.scalar(query)

    def get_page(
        self,
        session: Session,
        offset: int,
        limit: int,
        city: Optional[str] = None,
        state: Optional[str] = None,
    ) -> List[Property]:
        """
        One page of properties ordered by id.

        Args:
            session: Database session
            offset: Number of properties to skip
            limit: Page size
            city: Case-insensitive city filter (optional)
            state: Case-insensitive state filter (optional)

        Returns:
            List of properties
        """
        query = self._filtered(select(Property), city, state).order_by(Property.id)
        return session.execute(query.offset(offset).limit(limit)).scalars().all()


class ViolationRepository(BaseRepository):
    """Repository for Violation model."""

    def __init__(self):
        super().__init__(Violation)

    def bulk_create(self, session: Session, violations: List[Dict[str, Any]]) -> int:
        if not violations:
            return 0
        session.add_all([Violation(**data) for data in violations])
        session.flush()
        logger.debug("violations_bulk_created", count=len(violations))
        return len(violations)

    def get_for_property(self, session: Session, property_id: int) -> List[Violation]:
        query = select(Violation).where(Violation.property_id == property_id).order_by(Violation.id)
        return session.execute(query).scalars().all()

    def property_ids_for_job(self, session: Session, job_id: int) -> List[int]:
        """Distinct property ids that received violations from ``job_id``."""
        query = select(Violation.property_id).where(Violation.upload_job_id == job_id).distinct()
        return sorted(session.execute(query).scalars().all())

    def delete_for_job(self, session: Session, job_id: int) -> int:
        result = session.execute(delete(Violation).where(Violation.upload_job_id == job_id))
        session.flush()
        logger.info("violations_deleted_for_job", job_id=job_id, count=result.rowcount)
        return result.rowcount

    def delete_for_properties(self, session: Session, property_ids: List[int]) -> int:
        """Delete every violation attached to the given properties."""
        deleted = 0
        for batch in chunked(list(property_ids), 500):
            result = session.execute(delete(Violation).where(Violation.property_id.in_(batch)))
            deleted += result.rowcount
        session.flush()
        logger.info("violations_deleted_for_properties", properties=len(property_ids), count=deleted)
        return deleted
