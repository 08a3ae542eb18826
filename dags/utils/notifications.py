"""
Notification Utilities

Utilities for sending job monitor alerts to Slack.
"""
from typing import Dict, Any, Optional
import requests

from config.settings import settings
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)


def send_slack_notification(message: str, webhook_url: Optional[str] = None) -> bool:
    """
    Send notification to Slack via webhook.

    Args:
        message: Message to send
        webhook_url: Slack webhook URL (defaults to settings.alert_slack_webhook)

    Returns:
        True if successful, False otherwise
    """
    if not settings.alert_enable_slack:
        logger.info("slack_notifications_disabled")
        return False

    webhook_url = webhook_url or settings.alert_slack_webhook
    if not webhook_url:
        logger.warning("slack_webhook_url_not_configured")
        return False

    try:
        response = requests.post(webhook_url, json={"text": message}, timeout=10)
    except requests.RequestException as e:
        logger.error("slack_notification_error", error=str(e))
        return False

    if response.status_code == 200:
        logger.info("slack_notification_sent")
        return True

    logger.error("slack_notification_failed",
                 status_code=response.status_code,
                 response=response.text)
    return False


def format_monitor_report(report: Dict[str, Any]) -> Optional[str]:
    """
    Format a job monitor sweep into a notification message.

    Args:
        report: ``MonitorResult.to_dict()`` output

    Returns:
        Message string, or None when the sweep found nothing to report
    """
    restarted = report.get('restarted', [])
    failed = report.get('failed', [])
    redispatched = report.get('redispatched', [])
    errors = report.get('errors', [])
    if not (restarted or failed or redispatched or errors):
        return None

    message_lines = [
        "*Upload Job Monitor*",
        "",
        f"Stuck jobs found: {report.get('stuck_found', 0)}",
        f"Orphaned jobs found: {report.get('orphaned_found', 0)}",
    ]
    if restarted:
        message_lines.append(f"Restarted: {', '.join(str(job_id) for job_id in restarted)}")
    if redispatched:
        message_lines.append(f"Re-dispatched: {', '.join(str(job_id) for job_id in redispatched)}")
    if failed:
        message_lines.append(f"Failed (source CSV missing): {', '.join(str(job_id) for job_id in failed)}")

    if errors:
        message_lines.append("")
        message_lines.append("*Errors:*")
        for error in errors:
            message_lines.append(f"- {error}")

    return "\n".join(message_lines)
