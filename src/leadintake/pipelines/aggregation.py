"""
Violation Aggregation Pipeline

Recomputes per-property violation rollups from the full violation set.
Used inline at the end of every upload job and by the standalone backfill.
"""
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from src.leadintake.db.models import Property
from src.leadintake.db.repository import PropertyRepository, ViolationRepository
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SAMPLES = 5

OPEN_STATUSES = {'open', 'pending', 'active', 'in progress', 'new'}
CLOSED_STATUSES = {'closed', 'resolved', 'complete', 'complied', 'dismissed', 'abated'}


@dataclass
class PropertyAggregates:
    total_violations: int = 0
    open_violations: int = 0
    violation_types: List[str] = field(default_factory=list)
    repeat_offender: bool = False
    last_enforcement_date: Optional[date] = None

    @classmethod
    def from_property(cls, prop: Property) -> "PropertyAggregates":
        return cls(
            total_violations=prop.total_violations or 0,
            open_violations=prop.open_violations or 0,
            violation_types=sorted(prop.violation_types or []),
            repeat_offender=bool(prop.repeat_offender),
            last_enforcement_date=prop.last_enforcement_date,
        )

    def apply_to(self, prop: Property):
        prop.total_violations = self.total_violations
        prop.open_violations = self.open_violations
        prop.violation_types = list(self.violation_types)
        prop.repeat_offender = self.repeat_offender
        prop.last_enforcement_date = self.last_enforcement_date

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.last_enforcement_date:
            data['last_enforcement_date'] = self.last_enforcement_date.isoformat()
        return data

    @property
    def is_empty(self) -> bool:
        return self == PropertyAggregates()


def _text(value: Optional[str]) -> str:
    return (value or '').strip()


def compute_aggregates(violations: Iterable) -> PropertyAggregates:
    """
    Compute rollups for one property from its complete violation set.

    - total: every violation
    - open: status equal to "open" after trimming, case-insensitive
    - types: distinct non-empty violation types, sorted
    - repeat offender: more than one distinct non-empty case id
    - last enforcement date: latest opened date, None when no dates

    Args:
        violations: Objects with status, violation_type, case_id, opened_date

    Returns:
        PropertyAggregates
    """
    violations = list(violations)
    types = {_text(v.violation_type) for v in violations if _text(v.violation_type)}
    case_ids = {_text(v.case_id) for v in violations if _text(v.case_id)}
    dates = [v.opened_date for v in violations if isinstance(v.opened_date, date)]

    return PropertyAggregates(
        total_violations=len(violations),
        open_violations=sum(1 for v in violations if _text(v.status).lower() == 'open'),
        violation_types=sorted(types),
        repeat_offender=len(case_ids) > 1,
        last_enforcement_date=max(dates) if dates else None,
    )


def normalize_status(status: Optional[str]) -> str:
    """
    Collapse free-text violation status into Open, Closed or Unknown.

    Only used when exporting; stored statuses keep the jurisdiction's text.
    """
    value = _text(status).lower()
    if value in OPEN_STATUSES:
        return 'Open'
    if value in CLOSED_STATUSES:
        return 'Closed'
    return 'Unknown'


@dataclass
class BackfillRequest:
    batch_size: int = settings.backfill_batch_size
    start_offset: int = 0
    city_filter: Optional[str] = None
    state_filter: Optional[str] = None
    dry_run: bool = False


@dataclass
class BackfillResult:
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    progress: Dict[str, int] = field(default_factory=dict)
    samples: Optional[List[Dict[str, Any]]] = None
    next_offset: Optional[int] = None


class AggregationService:
    """
    Writes violation rollups onto Property records.

    ``refresh`` runs inside a caller's unit of work (the upload pipeline);
    ``backfill`` owns its commits so one property failing does not undo
    the rest of the batch.
    """

    def __init__(
        self,
        property_repository: Optional[PropertyRepository] = None,
        violation_repository: Optional[ViolationRepository] = None,
    ):
        self.properties = property_repository or PropertyRepository()
        self.violations = violation_repository or ViolationRepository()

    def refresh_property(self, session: Session, prop: Property) -> PropertyAggregates:
        aggregates = compute_aggregates(self.violations.get_for_property(session, prop.id))
        aggregates.apply_to(prop)
        return aggregates

    def refresh(self, session: Session, property_ids: Iterable[int]) -> int:
        """
        Recompute rollups for the given properties.

        Args:
            session: Database session
            property_ids: Properties to refresh

        Returns:
            Number of properties refreshed
        """
        refreshed = 0
        for property_id in sorted(set(property_ids)):
            prop = self.properties.get_by_id(session, property_id)
            if prop is None:
                continue
            self.refresh_property(session, prop)
            refreshed += 1

        session.flush()
        logger.info("property_aggregates_refreshed", count=refreshed)
        return refreshed

    def backfill(self, session: Session, request: BackfillRequest) -> BackfillResult:
        """
        Recompute rollups for one page of properties.

        Properties are taken in id order from ``start_offset``; callers resume
        a large table by passing back ``next_offset``. A property with no
        violations and already-empty rollups is skipped. In dry-run mode
        nothing is written and the first few before/after diffs are returned.

        Args:
            session: Database session
            request: BackfillRequest

        Returns:
            BackfillResult
        """
        total = self.properties.count_filtered(session, request.city_filter, request.state_filter)
        page = self.properties.get_page(
            session,
            offset=request.start_offset,
            limit=request.batch_size,
            city=request.city_filter,
            state=request.state_filter,
        )
        property_ids = [prop.id for prop in page]
        addresses = {prop.id: prop.address for prop in page}

        logger.info(
            "backfill_batch_started",
            total=total,
            batch_size=request.batch_size,
            start_offset=request.start_offset,
            dry_run=request.dry_run,
            city_filter=request.city_filter,
            state_filter=request.state_filter,
        )

        result = BackfillResult()
        samples: List[Dict[str, Any]] = []

        for property_id in property_ids:
            try:
                prop = self.properties.get_by_id(session, property_id)
                if prop is None:
                    result.skipped += 1
                    continue
                before = PropertyAggregates.from_property(prop)
                violations = self.violations.get_for_property(session, property_id)
                if not violations and before.is_empty:
                    result.skipped += 1
                    continue

                after = compute_aggregates(violations)
                if len(samples) < MAX_SAMPLES:
                    samples.append({
                        'property_id': property_id,
                        'address': addresses[property_id],
                        'before': before.to_dict(),
                        'after': after.to_dict(),
                    })

                if not request.dry_run:
                    after.apply_to(prop)
                    session.commit()
                result.updated += 1
            except Exception as e:
                session.rollback()
                result.errors += 1
                logger.error(
                    "backfill_property_failed",
                    property_id=property_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if request.dry_run:
            session.rollback()

        result.processed = len(property_ids)
        current = request.start_offset + result.processed
        result.progress = {
            'current': current,
            'total': total,
            'percentage': round(current / total * 100) if total else 100,
        }
        result.samples = samples if request.dry_run else None
        result.next_offset = current if current < total and result.processed else None

        logger.info(
            "backfill_batch_complete",
            processed=result.processed,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors,
            progress=result.progress,
        )
        return result
