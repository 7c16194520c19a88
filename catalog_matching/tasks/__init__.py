"""Queue tasks."""
from catalog_matching.tasks.import_tasks import import_invoice_lines_task

__all__ = [
    "import_invoice_lines_task",
]
