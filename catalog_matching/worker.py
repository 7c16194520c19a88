"""arq worker configuration for processing tasks.

This module configures the arq worker with:
    - import_invoice_lines_task: Match and consolidate the lines of one invoice
"""
from arq.connections import RedisSettings
from typing import Dict, Any
import structlog
from catalog_matching.config import settings, configure_logging
from catalog_matching.db.base import dispose_engine, get_session_maker
from catalog_matching.services.importing import InvoiceLineProcessor
from catalog_matching.tasks.import_tasks import import_invoice_lines_task

# Configure logging
configure_logging(settings.log_level)
logger = structlog.get_logger(__name__)


async def on_startup(ctx: Dict[str, Any]) -> None:
    """Share one line processor (and its session factory) across jobs."""
    ctx["processor"] = InvoiceLineProcessor(get_session_maker())
    logger.info(
        "worker_started",
        queue_name=settings.queue_name,
        environment=settings.environment,
    )


async def on_shutdown(ctx: Dict[str, Any]) -> None:
    """Close pooled database connections."""
    await dispose_engine()
    logger.info("worker_stopped", queue_name=settings.queue_name)


class WorkerSettings:
    """arq worker configuration settings.

    This class is imported by arq CLI: `arq catalog_matching.worker.WorkerSettings`

    Registered Tasks:
        - import_invoice_lines_task: Import the lines of one invoice
    """

    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.queue_name
    max_jobs = settings.max_workers
    job_timeout = settings.job_timeout
    keep_result = 3600  # Keep results for 1 hour
    max_tries = 3  # Maximum retry attempts

    functions = [
        import_invoice_lines_task,
    ]

    on_startup = on_startup
    on_shutdown = on_shutdown
