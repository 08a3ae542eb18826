"""
Upload Job State Machine

Status values and the transition rules every phase change goes through.

    QUEUED -> PARSING -> PROCESSING -> DEDUPING -> CREATING_VIOLATIONS
           -> FINALIZING -> COMPLETE

FAILED is reachable from any non-terminal state. A job only re-enters
QUEUED through ``reset_job`` (manual reprocess or stuck-job recovery),
which clears staging rows and zeroes every counter first.
"""
from enum import Enum
from typing import Optional

from src.leadintake.exceptions import InvalidTransitionError
from src.leadintake.utils.logger import get_logger
from src.leadintake.utils.timeutils import utcnow

logger = get_logger(__name__)


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    PARSING = "PARSING"
    PROCESSING = "PROCESSING"
    DEDUPING = "DEDUPING"
    CREATING_VIOLATIONS = "CREATING_VIOLATIONS"
    FINALIZING = "FINALIZING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_running(self) -> bool:
        return self in RUNNING_STATUSES


PHASE_ORDER = [
    JobStatus.QUEUED,
    JobStatus.PARSING,
    JobStatus.PROCESSING,
    JobStatus.DEDUPING,
    JobStatus.CREATING_VIOLATIONS,
    JobStatus.FINALIZING,
    JobStatus.COMPLETE,
]

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETE, JobStatus.FAILED})

# Non-terminal, non-QUEUED: a job in one of these has a live (or dead) worker
RUNNING_STATUSES = frozenset(PHASE_ORDER[1:-1])


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """
    Check a status change against the state machine.

    Forward moves are allowed (a phase with nothing to do may be skipped),
    FAILED is allowed from any non-terminal state, everything else is not.
    """
    current = JobStatus(current)
    target = JobStatus(target)

    if current.is_terminal:
        return False
    if target is JobStatus.FAILED:
        return True
    return PHASE_ORDER.index(target) > PHASE_ORDER.index(current)


def transition(job, target: JobStatus, error_message: Optional[str] = None):
    """
    Move ``job`` to ``target``, stamping timestamps the new phase implies.

    Args:
        job: UploadJob instance
        target: Next status
        error_message: Failure description (FAILED only)

    Raises:
        InvalidTransitionError: If the move breaks the state machine
    """
    target = JobStatus(target)
    current = JobStatus(job.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    job.status = target.value
    now = utcnow()
    if target is JobStatus.PARSING:
        job.started_at = now
    elif target is JobStatus.FAILED:
        job.error_message = error_message or "Unknown error"
        job.finished_at = now
    elif target is JobStatus.COMPLETE:
        job.finished_at = now

    logger.info("upload_job_transition", job_id=job.id, from_status=current.value, to_status=target.value)
    return job


def reset_job(job):
    """
    Re-arm a job to QUEUED with zeroed counters.

    Callers must delete the job's staging rows in the same unit of work.
    """
    previous = job.status
    job.status = JobStatus.QUEUED.value
    job.started_at = None
    job.finished_at = None
    job.error_message = None
    job.total_rows = None
    job.processed_rows = 0
    job.properties_created = 0
    job.violations_created = 0
    job.warnings = []

    logger.info("upload_job_reset", job_id=job.id, from_status=previous)
    return job
