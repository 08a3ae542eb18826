"""
Tests for the Upload Job Monitor DAG

Checks the DAG structure and the alert task. Skipped when Airflow is not
installed.
"""
import pytest
from unittest.mock import patch, MagicMock

pytest.importorskip("airflow")

from dags import upload_job_monitor


class TestDAGStructure:
    """Tests for DAG configuration."""

    def test_dag_exists(self):
        assert upload_job_monitor.dag.dag_id == 'upload_job_monitor'

    def test_schedule(self):
        assert upload_job_monitor.dag.schedule_interval == '*/5 * * * *'
        assert upload_job_monitor.dag.catchup is False
        assert upload_job_monitor.dag.max_active_runs == 1

    def test_task_order(self):
        dag = upload_job_monitor.dag
        assert set(dag.task_ids) == {'run_job_monitor', 'send_monitor_alert'}

        monitor_task = dag.get_task('run_job_monitor')
        assert monitor_task.downstream_task_ids == {'send_monitor_alert'}


class TestMonitorAlertTask:
    """Tests for the alert callable."""

    @patch('dags.upload_job_monitor.send_slack_notification')
    def test_quiet_sweep_sends_nothing(self, mock_send):
        task_instance = MagicMock()
        task_instance.xcom_pull.return_value = {'restarted': [], 'failed': [], 'redispatched': [], 'errors': []}

        result = upload_job_monitor.send_monitor_alert(task_instance=task_instance)

        assert result is False
        mock_send.assert_not_called()

    @patch('dags.upload_job_monitor.send_slack_notification')
    def test_sweep_with_actions_alerts(self, mock_send):
        mock_send.return_value = True
        task_instance = MagicMock()
        task_instance.xcom_pull.return_value = {'stuck_found': 1, 'restarted': [5]}

        result = upload_job_monitor.send_monitor_alert(task_instance=task_instance)

        assert result is True
        assert "Restarted: 5" in mock_send.call_args[0][0]
        task_instance.xcom_pull.assert_called_once_with(task_ids='run_job_monitor', key='monitor_report')
