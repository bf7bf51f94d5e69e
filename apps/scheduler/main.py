"""Standalone push scheduler process.

Runs the daily push passes without the HTTP API, for deployments that keep
SCHEDULER_ENABLED=false on the API processes.

Usage:
    python -m apps.scheduler.main          # fire at PUSH_SCHEDULE until SIGINT/SIGTERM
    python -m apps.scheduler.main --once   # run one pass now and exit

Exit codes for --once:
    0: pass completed, was a no-op, or was skipped
    1: pass failed (user directory unavailable)
"""

import argparse
import signal
import sys
import threading

from precious.config import get_settings
from precious.db.session import get_session_factory
from precious.logging import configure_logging, get_logger
from precious.services.dispatch import DispatchJob, DispatchStatus
from precious.services.messages import default_message_bank
from precious.services.push import build_push_gateway
from precious.services.scheduler import PushScheduler

logger = get_logger(__name__)


def build_dispatch_job() -> DispatchJob:
    settings = get_settings()
    return DispatchJob(
        session_factory=get_session_factory(),
        message_bank=default_message_bank(),
        push_gateway=build_push_gateway(settings),
        push_title=settings.push_title,
    )


def run_once(job: DispatchJob) -> int:
    result = job.run_pass(trigger="manual")
    return 1 if result.status == DispatchStatus.failed else 0


def run_forever(job: DispatchJob) -> int:
    settings = get_settings()
    stop_requested = threading.Event()

    def request_stop(signum, _frame):
        logger.info("scheduler_process_signal", signal=signal.Signals(signum).name)
        stop_requested.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    scheduler = PushScheduler(job, settings.push_schedule_times)
    scheduler.start()
    try:
        stop_requested.wait()
    finally:
        scheduler.stop()
        if not job.wait_for_idle():
            logger.warning("dispatch_pass_still_running_at_shutdown")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="precious.you push scheduler")
    parser.add_argument("--once", action="store_true", help="run a single pass and exit")
    args = parser.parse_args(argv)

    configure_logging()
    job = build_dispatch_job()
    try:
        return run_once(job) if args.once else run_forever(job)
    finally:
        job.push_gateway.close()


if __name__ == "__main__":
    sys.exit(main())
