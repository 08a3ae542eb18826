"""
Airflow DAG Utilities

Helper functions for DAGs.
"""
from dags.utils.notifications import (
    send_slack_notification,
    format_monitor_report,
)

__all__ = [
    "send_slack_notification",
    "format_monitor_report",
]
