"""Queue tasks for the invoice import pipeline.

    - import_invoice_lines_task: Match and consolidate the lines of one invoice

Invoices are independent jobs; the lines of one invoice are processed
sequentially inside the job.
"""
import time
from typing import Any, Dict, Optional

import pydantic
import structlog

from catalog_matching.models.line_item import InvoiceImport
from catalog_matching.models.matching import ImportAction, ImportSummary
from catalog_matching.models.tenant_config import TenantMatchingConfig
from catalog_matching.services.importing import InvoiceLineProcessor

logger = structlog.get_logger(__name__)


# ============================================================================
# Observability Metrics Logging
# ============================================================================
# Metrics are structured log events scraped by the log aggregation stack

def emit_metric(metric_name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
    """Emit a metric event for observability.

    Args:
        metric_name: Name of the metric (e.g., "invoice_lines_processed_total")
        value: Numeric value of the metric
        labels: Optional labels/tags for the metric
    """
    labels = labels or {}
    logger.info(
        "metric",
        metric_name=metric_name,
        metric_value=value,
        **labels,
    )


def emit_lines_processed_total(count: int, action: str, tenant_id: str) -> None:
    """Emit metric for invoice lines processed, per import action."""
    emit_metric(
        "invoice_lines_processed_total",
        count,
        {"action": action, "tenant_id": tenant_id},
    )


def emit_import_duration_seconds(duration: float, tenant_id: str) -> None:
    """Emit metric for invoice import duration."""
    emit_metric(
        "invoice_import_duration_seconds",
        duration,
        {"tenant_id": tenant_id},
    )


def emit_summary_metrics(summary: ImportSummary, duration: float) -> None:
    tenant_id = str(summary.tenant_id)
    for action in ImportAction:
        count = summary.count(action)
        if count:
            emit_lines_processed_total(count, action.value, tenant_id)
    emit_import_duration_seconds(duration, tenant_id)


async def import_invoice_lines_task(
    ctx: Dict[str, Any],
    task_id: str,
    invoice: Dict[str, Any],
    tenant_config: Optional[Dict[str, Any]] = None,
    **kwargs
) -> Dict[str, Any]:
    """Import the lines of one invoice into the tenant catalog.

    Args:
        ctx: Worker context (may carry a shared "processor")
        task_id: Unique task identifier for logging
        invoice: InvoiceImport payload (tenant, invoice reference,
            supplier, lines)
        tenant_config: Raw tenant matching configuration, camelCase or
            snake_case; None selects legacy mode

    Returns:
        Dictionary with task status and per-action line counts
    """
    start_time = time.time()
    log = logger.bind(task_id=task_id)

    try:
        payload = InvoiceImport.model_validate(invoice)
        config = TenantMatchingConfig.from_mapping(tenant_config)
    except pydantic.ValidationError as e:
        # A malformed payload fails the same way on every retry
        log.error("import_payload_invalid", error=str(e), error_count=e.error_count())
        return {"task_id": task_id, "status": "error", "error": str(e)}

    log = log.bind(tenant_id=str(payload.tenant_id), invoice_id=payload.invoice.invoice_id)
    log.info("import_invoice_lines_task_started", lines=len(payload.lines))

    processor: InvoiceLineProcessor = ctx.get("processor") or InvoiceLineProcessor()
    summary = await processor.import_invoice_lines(payload, config)

    duration = time.time() - start_time
    emit_summary_metrics(summary, duration)

    result = {
        "task_id": task_id,
        "status": "success",
        "duration_seconds": round(duration, 3),
        **summary.to_dict(),
    }
    log.info("import_invoice_lines_task_completed", **result)
    return result
