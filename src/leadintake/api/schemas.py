"""
Pydantic Schemas for API Request/Response Models

These schemas define the JSON structure for API endpoints.
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from config.settings import settings


class HealthCheck(BaseModel):
    """Health check response."""
    status: str
    version: str
    database: str
    storage: str
    timestamp: datetime


class UploadJobResponse(BaseModel):
    """Upload job as seen by the progress poller and job listings."""
    id: int
    user_id: str
    filename: str
    status: str
    city: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None
    parent_job_id: Optional[int] = None
    total_rows: Optional[int] = None
    processed_rows: int = 0
    properties_created: int = 0
    violations_created: int = 0
    error_message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    is_stuck: bool = False

    class Config:
        from_attributes = True


class DetectedLocationResponse(BaseModel):
    city: str
    state: str
    count: int

    class Config:
        from_attributes = True


class DetectionResponse(BaseModel):
    """Localities found in an uploaded file."""
    locations: List[DetectedLocationResponse] = Field(default_factory=list)
    total_rows: int = 0
    unique_cities: List[str] = Field(default_factory=list)
    unique_states: List[str] = Field(default_factory=list)
    missing_location_rows: int = 0
    needs_split: bool = False

    class Config:
        from_attributes = True


class ValidateRequest(BaseModel):
    """Pasted CSV text to check before uploading."""
    csv_text: str
    city: Optional[str] = None
    state: Optional[str] = None


class ValidateResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    detection: Optional[DetectionResponse] = None


class UploadCreatedResponse(BaseModel):
    """Result of a file upload."""
    job: UploadJobResponse
    action: str
    detection: DetectionResponse


class SplitResponse(BaseModel):
    """Child jobs created from a multi-city upload."""
    parent_job_id: int = Field(..., alias="parentJobId")
    cities_detected: int = Field(..., alias="citiesDetected")
    jobs_created: int = Field(..., alias="jobsCreated")
    jobs: List[UploadJobResponse] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class DeleteResponse(BaseModel):
    job_id: int
    violations_deleted: int
    staging_rows_deleted: int
    properties_refreshed: int
    blob_removed: bool
    errors: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True


class BackfillRequestSchema(BaseModel):
    """Aggregate backfill parameters (camelCase on the wire)."""
    batch_size: int = Field(settings.backfill_batch_size, ge=1, le=1000, alias="batchSize")
    start_offset: int = Field(0, ge=0, alias="startOffset")
    city_filter: Optional[str] = Field(None, alias="cityFilter")
    state_filter: Optional[str] = Field(None, alias="stateFilter")
    dry_run: bool = Field(False, alias="dryRun")

    class Config:
        populate_by_name = True


class BackfillProgress(BaseModel):
    current: int
    total: int
    percentage: int


class BackfillResponse(BaseModel):
    processed: int
    updated: int
    skipped: int
    errors: int
    progress: BackfillProgress
    samples: Optional[List[Dict[str, Any]]] = None
    next_offset: Optional[int] = Field(None, alias="nextOffset")

    class Config:
        populate_by_name = True


class MonitorResponse(BaseModel):
    """Outcome of an on-demand job monitor sweep."""
    stuck_found: int
    orphaned_found: int
    restarted: List[int] = Field(default_factory=list)
    failed: List[int] = Field(default_factory=list)
    redispatched: List[int] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
