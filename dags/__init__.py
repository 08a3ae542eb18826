"""
Airflow DAGs Package

Contains the DAG definitions for the upload ingestion service.

DAGs:
- upload_job_monitor: Recover stuck and orphaned upload jobs (every 5 minutes)
"""
