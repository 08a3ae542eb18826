"""
Run Job Monitor Script

One monitor sweep from the command line, for hosts without Airflow
(e.g. a cron entry every five minutes).

Usage:
    python scripts/run_job_monitor.py [--stuck-threshold 180] [--orphan-threshold 3600]
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import argparse
import json

from config.settings import settings
from src.leadintake.db import get_db_session
from src.leadintake.jobs.dispatch import build_dispatcher
from src.leadintake.jobs.monitor import JobMonitor
from src.leadintake.storage.blob import build_storage
from src.leadintake.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Recover stuck and orphaned upload jobs")
    parser.add_argument("--stuck-threshold", type=int, default=settings.stuck_job_threshold_seconds,
                        help="Seconds a running job may go without finishing")
    parser.add_argument("--orphan-threshold", type=int, default=settings.orphaned_job_threshold_seconds,
                        help="Seconds a QUEUED job may wait to be picked up")
    args = parser.parse_args()

    setup_logging()
    storage = build_storage()
    with get_db_session() as session:
        monitor = JobMonitor(
            session,
            storage,
            build_dispatcher(storage=storage),
            stuck_threshold_seconds=args.stuck_threshold,
            orphaned_threshold_seconds=args.orphan_threshold,
        )
        result = monitor.run()

    print(json.dumps(result.to_dict(), indent=2))
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
