"""
FastAPI REST API for the Lead Intake Service

Provides REST endpoints for:
- CSV upload, validation and multi-city splitting
- Upload job progress and lifecycle (process, reprocess, delete)
- Maintenance (aggregate backfill, job monitor)
- Health checks
"""
