"""
Maintenance Router

Operator endpoints: aggregate backfill and on-demand job monitor sweeps.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.leadintake.api.dependencies import get_db, get_dispatcher, get_storage
from src.leadintake.api.schemas import (
    BackfillRequestSchema,
    BackfillResponse,
    MonitorResponse,
)
from src.leadintake.jobs.dispatch import JobDispatcher
from src.leadintake.jobs.monitor import JobMonitor
from src.leadintake.pipelines.aggregation import AggregationService, BackfillRequest
from src.leadintake.storage.blob import BlobStorage

router = APIRouter(prefix="/api/v1/maintenance", tags=["maintenance"])


@router.post("/backfill-aggregates", response_model=BackfillResponse, response_model_exclude_none=True)
def backfill_aggregates(
    request: BackfillRequestSchema,
    db: Session = Depends(get_db),
):
    """
    Recompute violation rollups for one page of properties.

    Call again with ``startOffset`` set to the returned ``nextOffset`` until
    it is absent.
    """
    result = AggregationService().backfill(
        db,
        BackfillRequest(
            batch_size=request.batch_size,
            start_offset=request.start_offset,
            city_filter=request.city_filter,
            state_filter=request.state_filter,
            dry_run=request.dry_run,
        ),
    )
    return BackfillResponse(
        processed=result.processed,
        updated=result.updated,
        skipped=result.skipped,
        errors=result.errors,
        progress=result.progress,
        samples=result.samples,
        next_offset=result.next_offset,
    )


@router.post("/job-monitor", response_model=MonitorResponse)
def run_job_monitor(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Recover stuck and orphaned upload jobs now."""
    result = JobMonitor(db, storage, dispatcher).run()
    return MonitorResponse(**result.to_dict())
