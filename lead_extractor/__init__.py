"""
VLM-based lead extractor for social profile screenshots.

This package queues uploaded screenshots, extracts the account handle and
contact emails with a Vision Language Model, and exports the results as
an Excel workbook.
"""

__version__ = "0.1.0"

# Expose key classes at package level for convenience
from .work_queue import InvalidTransitionError, ItemStatus, QueueStore, WorkItem
from .pipeline import (
    BatchRunner,
    RunResult,
    RunnerBusyError,
    process_images,
    process_images_sync,
)
from .export import ExportRow, export_to_csv, export_to_excel, project_rows
from .extractors import ProfileExtractor
from .models import Confidence, ExtractionRecord

__all__ = [
    # Queue
    "QueueStore",
    "WorkItem",
    "ItemStatus",
    "InvalidTransitionError",
    # Pipeline
    "BatchRunner",
    "RunResult",
    "RunnerBusyError",
    "process_images",
    "process_images_sync",
    # Export
    "ExportRow",
    "project_rows",
    "export_to_excel",
    "export_to_csv",
    # Extraction
    "ProfileExtractor",
    "ExtractionRecord",
    "Confidence",
]
