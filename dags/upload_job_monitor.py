"""
Upload Job Monitor DAG

Recovers upload jobs whose worker died: stuck jobs are reset and restarted
(or failed when their CSV is gone), orphaned QUEUED jobs are dispatched
again. Alerts Slack when the sweep changed anything.

Schedule: Every 5 minutes
"""
from datetime import timedelta
from airflow import DAG
from airflow.operators.python import PythonOperator
from airflow.utils.dates import days_ago

from dags.utils.notifications import (
    send_slack_notification,
    format_monitor_report,
)
from src.leadintake.db import get_db_session
from src.leadintake.jobs.dispatch import build_dispatcher
from src.leadintake.jobs.monitor import JobMonitor
from src.leadintake.storage.blob import build_storage
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

# DAG default arguments
default_args = {
    'owner': 'leadintake',
    'depends_on_past': False,
    'email_on_failure': False,
    'email_on_retry': False,
    'retries': 1,
    'retry_delay': timedelta(minutes=1),
    'execution_timeout': timedelta(minutes=30),
}


def run_job_monitor(**context):
    """
    Run one monitor sweep.

    Returns:
        MonitorResult as a dict
    """
    logger.info("job_monitor_task_started")

    storage = build_storage()
    with get_db_session() as session:
        result = JobMonitor(session, storage, build_dispatcher(storage=storage)).run()

    report = result.to_dict()
    context['task_instance'].xcom_push(key='monitor_report', value=report)

    logger.info("job_monitor_task_complete", **report)
    return report


def send_monitor_alert(**context):
    """Notify Slack when the sweep restarted, failed or re-dispatched a job."""
    report = context['task_instance'].xcom_pull(task_ids='run_job_monitor', key='monitor_report') or {}

    message = format_monitor_report(report)
    if message is None:
        logger.info("job_monitor_nothing_to_report")
        return False

    return send_slack_notification(message)


with DAG(
    'upload_job_monitor',
    default_args=default_args,
    description='Recover stuck and orphaned CSV upload jobs',
    schedule_interval='*/5 * * * *',
    start_date=days_ago(1),
    catchup=False,
    max_active_runs=1,
    tags=['uploads', 'monitoring'],
) as dag:

    run_monitor_task = PythonOperator(
        task_id='run_job_monitor',
        python_callable=run_job_monitor,
        provide_context=True,
    )

    alert_task = PythonOperator(
        task_id='send_monitor_alert',
        python_callable=send_monitor_alert,
        provide_context=True,
    )

    run_monitor_task >> alert_task
