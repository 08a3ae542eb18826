"""
SQLAlchemy ORM Models

Upload jobs and their staging rows, plus the durable property and violation
records the ingestion pipeline produces.
"""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, Numeric, Date, DateTime, Boolean, Text,
    ForeignKey, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.leadintake.db.base import Base, TimestampMixin, JSONType
from src.leadintake.jobs.state import JobStatus
from src.leadintake.utils.timeutils import utcnow


_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in JobStatus)


class Jurisdiction(Base, TimestampMixin):
    """Municipality or county whose enforcement exports are uploaded."""
    __tablename__ = "jurisdictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False, comment="Display name")
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[str] = mapped_column(String(2), nullable=False, comment="State abbreviation")

    __table_args__ = (
        UniqueConstraint("name", "state", name="uq_jurisdictions_name_state"),
    )

    def __repr__(self) -> str:
        return f"<Jurisdiction(name={self.name}, state={self.state})>"


class UploadJob(Base, TimestampMixin):
    """
    One ingestion attempt for one uploaded CSV.

    A multi-city upload produces a parent job (marked COMPLETE with zero
    counts once split) plus one child job per locality.
    """
    __tablename__ = "upload_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, comment="Owning user")
    storage_path: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Blob key of the source CSV: {user_id}/{timestamp}-{filename}"
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False, comment="Original filename")
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="Bytes")

    status: Mapped[str] = mapped_column(
        String(32),
        default=JobStatus.QUEUED.value,
        nullable=False,
        comment="Pipeline phase"
    )

    # Declared or detected locality
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    jurisdiction_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("jurisdictions.id", ondelete="SET NULL"),
        nullable=True
    )
    parent_job_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("upload_jobs.id", ondelete="SET NULL"),
        nullable=True,
        comment="Set on jobs spawned by a multi-city split"
    )

    # Counters
    total_rows: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="Data rows in file")
    processed_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="Rows staged")
    properties_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    violations_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    warnings: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="Non-fatal row-level problems"
    )

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    staging_rows: Mapped[list["UploadStaging"]] = relationship(
        "UploadStaging",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="check_upload_job_status_valid"),
        CheckConstraint(
            "total_rows IS NULL OR processed_rows <= total_rows",
            name="check_processed_within_total"
        ),
        Index("idx_upload_jobs_status_started", "status", "started_at"),
        Index("idx_upload_jobs_user_id", "user_id"),
        Index("idx_upload_jobs_parent_job_id", "parent_job_id"),
    )

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status).is_terminal

    def __repr__(self) -> str:
        return f"<UploadJob(id={self.id}, status={self.status}, processed={self.processed_rows}/{self.total_rows})>"


class UploadStaging(Base):
    """Parsed CSV line scoped to one upload job."""
    __tablename__ = "upload_staging"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("upload_jobs.id", ondelete="CASCADE"),
        nullable=False
    )
    row_num: Mapped[int] = mapped_column(Integer, nullable=False, comment="1-based data row number")

    case_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    city: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    state: Mapped[str] = mapped_column(String(2), default="", nullable=False)
    zip: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    violation: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="Open", nullable=False)
    opened_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="Raw text")
    last_updated: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="Raw text")

    property_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="SET NULL"),
        nullable=True,
        comment="Resolved property, set during violation creation"
    )

    job: Mapped["UploadJob"] = relationship("UploadJob", back_populates="staging_rows")

    __table_args__ = (
        UniqueConstraint("job_id", "row_num", name="uq_upload_staging_job_row"),
        Index("idx_upload_staging_property_id", "property_id"),
    )

    def __repr__(self) -> str:
        return f"<UploadStaging(job={self.job_id}, row={self.row_num}, address={self.address})>"


class Property(Base, TimestampMixin):
    """
    Physical address with rolled-up violation statistics.

    Uniqueness of ``address|city|state|zip`` is maintained by the ingestion
    pipeline rather than a constraint, since older imports left duplicates.
    """
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(String(255), nullable=False, comment="Street address as uploaded")
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    zip: Mapped[str] = mapped_column(String(10), default="", nullable=False)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    jurisdiction_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("jurisdictions.id", ondelete="SET NULL"),
        nullable=True
    )

    # Filled in by the geocoding pass
    latitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Numeric(10, 7), nullable=True)

    # Filled in by the scoring pass
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    insight: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Violation aggregates
    total_violations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    open_violations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    violation_types: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
        comment="Sorted distinct violation types"
    )
    repeat_offender: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_enforcement_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    violations: Mapped[list["Violation"]] = relationship(
        "Violation",
        back_populates="parent_property",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("open_violations <= total_violations", name="check_open_within_total"),
        Index("idx_properties_city_state", "city", "state"),
        Index("idx_properties_address", "address"),
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, address={self.address}, city={self.city}, violations={self.total_violations})>"


class Violation(Base):
    """One enforcement event attached to a property."""
    __tablename__ = "violations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False
    )
    upload_job_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("upload_jobs.id", ondelete="SET NULL"),
        nullable=True,
        comment="Job that created this violation"
    )

    case_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    violation_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Internal only")
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="Free text")
    opened_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_updated: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )

    parent_property: Mapped["Property"] = relationship("Property", back_populates="violations")

    __table_args__ = (
        Index("idx_violations_property_id", "property_id"),
        Index("idx_violations_upload_job_id", "upload_job_id"),
    )

    @property
    def days_open(self) -> Optional[int]:
        """Days since the violation was opened, computed at read time."""
        if self.opened_date is None:
            return None
        return max((utcnow().date() - self.opened_date).days, 0)

    def __repr__(self) -> str:
        return f"<Violation(property={self.property_id}, type={self.violation_type}, status={self.status})>"
