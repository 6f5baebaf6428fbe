"""Standalone scheduler process running periodic matching passes."""
from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from filelock import FileLock

from plan_sync.config import get_settings
from plan_sync.database import run_migrations
from plan_sync.dependencies import get_orchestrator
from plan_sync.logging_config import configure_logging
from plan_sync.models.schemas import MatchingRunResult


logger = logging.getLogger("scheduler")


def acquire_lock(lock_path: Path) -> FileLock:
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    lock.acquire(timeout=0)
    return lock


async def run_matching_job() -> MatchingRunResult | None:
    start = datetime.now(timezone.utc)
    logger.info("Matching job started")

    try:
        result = await get_orchestrator().match_new_sessions()
    except Exception:
        logger.exception("Matching job failed")
        return None

    elapsed = (datetime.now(timezone.utc) - start).total_seconds()
    if result.success:
        logger.info(
            "Matching job finished in %.2fs | plan=%s | matched=%d | suggested=%d | %s",
            elapsed,
            result.plan_id,
            result.matched,
            result.suggested,
            result.message,
        )
    else:
        logger.error("Matching job finished in %.2fs with error: %s", elapsed, result.error)
    return result


async def main(run_now: bool) -> None:
    configure_logging()
    settings = get_settings()
    run_migrations()

    scheduler_log = settings.log_dir / "scheduler.log"
    if not any(isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", "") == str(scheduler_log) for h in logger.handlers):
        handler = logging.FileHandler(scheduler_log, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    lock_path = settings.scheduler_lock_file
    lock = acquire_lock(lock_path)
    logger.info("Acquired scheduler lock at %s", lock_path)
    try:
        if run_now:
            await run_matching_job()
            return

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_matching_job,
            "interval",
            minutes=settings.scheduler_interval_minutes,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()

        logger.info(
            "Scheduler running (every %d min). Press Ctrl+C to exit.",
            settings.scheduler_interval_minutes,
        )
        await asyncio.Event().wait()
    finally:
        lock.release()
        logger.info("Released scheduler lock at %s", lock_path)
        if lock_path.exists():
            lock_path.unlink()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run scheduler process")
    parser.add_argument("--run-now", action="store_true", help="Execute one matching pass and exit")
    args = parser.parse_args()

    try:
        asyncio.run(main(run_now=args.run_now))
    except TimeoutError:
        logger.warning("Scheduler already running; exiting.")
