import time
import sys
import os
import logging

import schedule

# Add project root to the Python path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_root)

from order_management.orchestrator import build_orchestrator
from order_management.workflow import start_run

logger = logging.getLogger(__name__)


def run_job(orchestrator):
    """
    Runs one order sync cycle.

    Errors are logged and the scheduler keeps going; the orchestrator has
    already sent a notification for them. Cycles run one after another in this
    process, so two cycles never touch the ledger at the same time.
    """
    logger.info(f"{'=' * 20} RUNNING SYNC CYCLE AT {time.ctime()} {'=' * 20}")
    try:
        orchestrator.run_cycle()
    except Exception as e:
        logger.error(f"Sync cycle failed: {e}")
    logger.info(f"{'=' * 20} SYNC CYCLE COMPLETE {'=' * 20}")


def main():
    """
    Master scheduler: runs a cycle immediately, then every `SCHEDULE_MINUTES`.
    """
    config = start_run('scheduler')
    logger.info("=============================================")
    logger.info("===        STARTING ORDER SCHEDULER       ===")
    logger.info("=============================================")

    orchestrator = build_orchestrator(config)
    interval = config.run.schedule_minutes

    run_job(orchestrator)
    schedule.every(interval).minutes.do(run_job, orchestrator)
    logger.info(f"Scheduler started. Will run every {interval} minutes.")
    while True:
        schedule.run_pending()
        time.sleep(1)


if __name__ == '__main__':
    main()
