"""
Export Scheduler - Cron and On-Demand Execution

Runs the export job once, or on a cron schedule using APScheduler.

Features:
- RUN_ONCE mode (default) for a single export and exit code
- Cron-based scheduling (EXPORT_SCHEDULE_CRON) when RUN_ONCE=false
- Redis completion event after each successful export (if REDIS_URL is set)
- Graceful shutdown on SIGINT/SIGTERM

Usage:
    # Run once and exit
    python -m scroll_export.extractor

    # Scheduled mode
    RUN_ONCE=false EXPORT_SCHEDULE_CRON="0 3 * * *" python -m scroll_export.extractor
"""

import asyncio
import logging
import signal
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from scroll_export.extractor.job import run_export
from scroll_export.extractor.publisher import publish_export_event
from scroll_export.utils.config import settings
from scroll_export.utils.logging import setup_logging

logger = logging.getLogger(__name__)


class ExportScheduler:
    """
    Scheduler for one-shot or periodic export runs.

    A failed run is logged; in RUN_ONCE mode it is re-raised so the process
    exits non-zero, in scheduled mode the next trigger still fires.
    """

    def __init__(self, run_once: bool = True, cron: str | None = None) -> None:
        """
        Initialize scheduler.

        Args:
            run_once: If True, run one export and exit
            cron: Crontab expression for scheduled mode

        Raises:
            ValueError: If scheduled mode is requested without a cron expression
        """
        self.run_once = run_once
        self.cron = cron if cron is not None else settings.EXPORT_SCHEDULE_CRON
        if not run_once and not self.cron:
            raise ValueError("EXPORT_SCHEDULE_CRON is required when RUN_ONCE is false")

        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()
        self.runs = 0

        logger.info(
            "ExportScheduler initialized",
            extra={"run_once": run_once, "cron_schedule": self.cron},
        )

    async def execute_export(self) -> None:
        """Run one export and publish its completion event."""
        self.runs += 1
        logger.info("Starting export execution", extra={"run": self.runs})

        try:
            output_file, result_set = await run_export()

            if settings.REDIS_URL:
                await publish_export_event(output_file, records=len(result_set))

            logger.info(
                "Export execution completed successfully",
                extra={"output_file": output_file, "records": len(result_set)},
            )

        except Exception as e:
            logger.error(
                "Export execution failed",
                extra={"error": str(e), "run": self.runs},
                exc_info=True,
            )
            if self.run_once:
                raise

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start(self) -> None:
        """
        Execute once, or schedule until a shutdown signal arrives.
        """
        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            await self.execute_export()
            return

        self.setup_signal_handlers()
        logger.info("Running in scheduled mode")

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.execute_export,
            trigger=CronTrigger.from_crontab(self.cron),
            id="export_job",
            name="Periodic Scroll Export",
            max_instances=1,
            replace_existing=True,
        )
        self.scheduler.start()

        job = self.scheduler.get_job("export_job")
        next_run = getattr(job, "next_run_time", None)
        logger.info(
            "Scheduled export job",
            extra={"schedule": self.cron, "next_run": str(next_run) if next_run is not None else None},
        )

        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


async def main() -> None:
    """Main entry point for the exporter."""
    try:
        setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
        scheduler = ExportScheduler(run_once=settings.RUN_ONCE)
        await scheduler.start()
    except Exception as e:
        logger.error("Exporter failed", extra={"error": str(e)})
        sys.exit(1)


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
