"""Batch processing modules.

- orchestrator: Batch controller over a worker pool
- processor: Per-file normalization
- file_tracker: SQLite-based file tracking
"""

from arraydata.pipeline.orchestrator import BatchOrchestrator
from arraydata.pipeline.processor import DatafileProcessor
from arraydata.pipeline.file_tracker import FileProcessingTracker

__all__ = [
    "BatchOrchestrator",
    "DatafileProcessor",
    "FileProcessingTracker",
]
