"""Batch orchestration over a bounded worker pool.

Discovers input files, hands each to a DatafileProcessor on a thread pool,
records progress in the file tracker and writes the summary table.
"""

import fnmatch
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable, List, Optional, TYPE_CHECKING

import pandas as pd

from arraydata.contracts import ContractViolation
from arraydata.pipeline.file_tracker import FileProcessingTracker
from arraydata.pipeline.processor import DatafileProcessor

if TYPE_CHECKING:
    from arraydata.schemas import InternalConfig

__all__ = ['BatchOrchestrator']

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Normalizes a batch of data files in parallel.

    Files are independent units of work: each worker task builds its own
    parser state, so the pool needs no coordination beyond the shared
    file tracker, which locks internally.

    **Outputs** (all in ``config.pipeline.output_dir``):

    - one canonical table per input file (see DatafileProcessor)
    - ``arraydata_<run_id>.log``: console and file logging
    - ``config.pipeline.tracker_filename``: SQLite progress database
    - ``config.pipeline.summary_filename``: tab-delimited summary with one
      row per file

    **Resumability:**

    Files already marked completed in the tracker are skipped, so a batch
    that was interrupted can simply be run again.

    Example usage::

        config = init_runtime_config(args)
        orchestrator = BatchOrchestrator(config)
        summary = orchestrator.run()
        print(summary[["file", "format_type", "rows"]])
    """

    def __init__(self, config: "InternalConfig"):
        """
        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration; ``pipeline.output_dir``
            is required.
        """
        if not config.pipeline.output_dir:
            raise ValueError("BatchOrchestrator needs config.pipeline.output_dir")
        self.config = config
        self.output_dir = Path(config.pipeline.output_dir)
        self.tracker: Optional[FileProcessingTracker] = None
        self.processor: Optional[DatafileProcessor] = None
        self._start_time = None

    def _setup_logging(self):
        """Configure root logging with file and console handlers.

        Log level comes from ``config.logging.level``.
        """
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.output_dir / f"arraydata_{self.config.run_id or 'run'}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def discover_files(self, paths: Optional[Iterable] = None) -> List[Path]:
        """Input files for the batch.

        Parameters
        ----------
        paths : iterable of str or Path, optional
            Files and directories. Directories are searched (not
            recursively) with ``config.pipeline.file_patterns``, matched
            case-insensitively. Defaults to ``config.pipeline.input_dir``.

        Returns
        -------
        list of Path
            Unique files in sorted order.
        """
        if paths is None:
            input_dir = self.config.pipeline.input_dir
            if not input_dir:
                raise ValueError("No input files given and no input_dir configured")
            paths = [input_dir]

        patterns = [p.lower() for p in self.config.pipeline.file_patterns]
        found = set()
        for item in paths:
            item = Path(item)
            if item.is_dir():
                for candidate in item.iterdir():
                    if candidate.is_file() and any(
                        fnmatch.fnmatch(candidate.name.lower(), p) for p in patterns
                    ):
                        found.add(candidate)
            elif item.is_file():
                found.add(item)
            else:
                logger.warning("Input not found: %s", item)
        return sorted(found)

    def run(self, paths: Optional[Iterable] = None) -> pd.DataFrame:
        """Normalize every input file and write the summary table.

        Returns
        -------
        pandas.DataFrame
            One row per file, in input order.

        Raises
        ------
        ContractViolation
            A processing stage broke its guarantees. Pending files are
            cancelled; the tracker keeps what was already finished.
        """
        self._setup_logging()
        self._start_time = time.time()

        logger.info("=" * 60)
        logger.info("Starting data file normalization (run %s)", self.config.run_id)
        logger.info("=" * 60)

        files = self.discover_files(paths)
        logger.info("Found %d input file(s)", len(files))

        self.tracker = FileProcessingTracker(self.output_dir / self.config.pipeline.tracker_filename)
        self.processor = DatafileProcessor(self.config, file_tracker=self.tracker)
        for path in files:
            self.tracker.register_file(path.name, path, self.config.pipeline.data_type)

        records = {}
        try:
            workers = self.config.pipeline.workers
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="arraydata") as pool:
                futures = {pool.submit(self.processor.process_file, path): path for path in files}
                try:
                    for future in as_completed(futures):
                        path = futures[future]
                        records[path] = future.result()
                except ContractViolation:
                    logger.critical("Stopping batch: cancelling pending files")
                    for future in futures:
                        future.cancel()
                    raise

            summary = pd.DataFrame([records[path] for path in files if path in records])
            self.write_summary(summary)
            return summary
        finally:
            self.stop()

    def write_summary(self, summary: pd.DataFrame) -> Path:
        summary_path = self.output_dir / self.config.pipeline.summary_filename
        summary.to_csv(summary_path, sep="\t", index=False)
        logger.info("Summary written: %s (%d files)", summary_path, len(summary))
        return summary_path

    def stop(self):
        """Log final statistics and close the tracker. Safe to call twice."""
        elapsed = time.time() - self._start_time if self._start_time else 0
        logger.info("=" * 60)
        logger.info("Batch finished. Runtime: %.1f seconds", elapsed)

        if self.tracker:
            stats = self.tracker.get_statistics()
            logger.info("Statistics: total=%d, completed=%d, failed=%d, rows=%d",
                        stats.get('total', 0), stats.get('completed', 0),
                        stats.get('failed', 0), stats.get('total_rows', 0))
            self.tracker.close()
            self.tracker = None

        logger.info("=" * 60)
