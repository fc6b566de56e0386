"""Per-file normalization.

Turns one input file (vendor text export or Affymetrix binary) into a
canonical tab-delimited table in the output directory plus a flat metrics
record for the batch summary.
"""

import io
import logging
import tempfile
from pathlib import Path
from typing import Dict, Optional, TYPE_CHECKING

from arraydata.affymetrix.cdf import CDFParser
from arraydata.affymetrix.chp import CHPParser
from arraydata.affymetrix.calvin import CalvinCHP
from arraydata.affymetrix.exp import EXPParser
from arraydata.affymetrix.factory import AFFYMETRIX_SUFFIXES, make_parser
from arraydata.contracts import ContractViolation, FailurePolicy
from arraydata.datafile.raw import RawDataFile
from arraydata.datafile.statistics import file_md5
from arraydata.datafile.types import DataType, FormatType
from arraydata.errors import DatafileError

if TYPE_CHECKING:
    from arraydata.schemas import InternalConfig
    from arraydata.pipeline.file_tracker import FileProcessingTracker

__all__ = ['DatafileProcessor']

logger = logging.getLogger(__name__)


class DatafileProcessor:
    """Normalizes data files one at a time.

    One processor is shared by all worker threads of a batch. It holds no
    per-file state: every call builds its own RawDataFile or Affymetrix
    parser and releases it before returning.

    **Processing:**

    - Text files: header resolution, vendor coordinate rewrite, canonical
      table (index columns first, sorted rows) and the statistics pass.
    - Affymetrix CEL/CHP files: the binary body is exported to a temporary
      text stream, which then takes the text path with format
      ``Affymetrix``. CHP files need the library file of their chip type,
      looked up as ``<chip type>.CDF`` next to the CHP file.
    - Affymetrix EXP files: settings are read and written back in EXP
      layout.
    - CDF library files are read for their unit count only.

    **Output Files:**

    ``<output_dir>/<file name><suffix>`` per input, where ``suffix`` comes
    from ``config.output.suffix``.

    Example usage::

        processor = DatafileProcessor(config, file_tracker=tracker)
        record = processor.process_file("/data/raw/sample01.gpr")
        print(record["format_type"], record["rows"])
    """

    def __init__(self, config: "InternalConfig",
                 file_tracker: Optional["FileProcessingTracker"] = None):
        """
        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        file_tracker : FileProcessingTracker, optional
            Used to skip completed files and to record outcomes.
        """
        self.config = config
        self.file_tracker = file_tracker
        output_dir = config.pipeline.output_dir
        self.output_dir = Path(output_dir) if output_dir else None

    def output_path(self, path: Path) -> Optional[Path]:
        if self.output_dir is None:
            return None
        return self.output_dir / f"{path.name}{self.config.output.suffix}"

    def _base_record(self, path: Path) -> Dict:
        return {
            "file": path.name,
            "status": "pending",
            "format_type": None,
            "data_type": self.config.pipeline.data_type,
            "qt_type": None,
            "line_format": None,
            "md5": None,
            "rows": 0,
            "percent_null": "N/A",
            "duplicate_features": 0,
            "duplicate_headings": 0,
            "fail_columns": "",
            "warnings": 0,
            "errors": "",
            "output": None,
        }

    def process_file(self, filepath) -> Dict:
        """Normalize one file.

        Data problems (DatafileError, unreadable files, a missing CDF) mark
        the file failed and are reported in the returned record.

        Returns
        -------
        dict
            Flat metrics record; ``status`` is ``completed``, ``failed``
            or ``skipped``.

        Raises
        ------
        ContractViolation
            A processing stage broke its own guarantees. Not raised when
            ``pipeline.contract_policy`` is ``skip_file``; the file is then
            marked failed like a data problem.
        """
        path = Path(filepath)
        file_id = path.name
        record = self._base_record(path)

        tracker = self.file_tracker
        if tracker and not tracker.should_process(file_id):
            logger.info("Skipping already normalized: %s", file_id)
            record["status"] = "skipped"
            return record

        logger.info("Processing: %s", file_id)
        output_path = self.output_path(path)
        if output_path is not None:
            output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            if path.suffix.lower() in AFFYMETRIX_SUFFIXES:
                self._process_affymetrix(path, output_path, record)
            else:
                self._process_text(path, output_path, record)

        except ContractViolation as e:
            logger.critical("Pipeline contract violated while processing %s: %s", file_id, e)
            if tracker:
                tracker.mark_failed(file_id, f"Contract violation: {e}")
            if self.config.pipeline.contract_policy != FailurePolicy.SKIP_FILE:
                raise
            record["status"] = "failed"
            record["errors"] = f"Contract violation: {e}"
            return record

        except (DatafileError, OSError, ValueError) as e:
            logger.error("Failed to normalize %s: %s", file_id, e)
            record["status"] = "failed"
            record["errors"] = str(e)
            if tracker:
                tracker.mark_failed(file_id, str(e))
            return record

        record["status"] = "completed"
        if output_path is not None and output_path.exists():
            record["output"] = str(output_path)
        if tracker:
            tracker.mark_complete(file_id, record["output"], record)
        logger.info("Normalized %s: %s, %d rows", file_id, record["format_type"], record["rows"])
        return record

    def _record_datafile(self, datafile: RawDataFile, result, record: Dict):
        record.update({
            "format_type": result.format_type,
            "data_type": datafile.data_type,
            "qt_type": result.qt_type,
            "rows": datafile.row_count,
            "percent_null": datafile.percent_null(),
            "duplicate_features": len(datafile.duplicate_features(result.feature_coords)),
            "duplicate_headings": len(datafile.duplicate_headings()),
            "fail_columns": ", ".join(datafile.fail_columns),
            "warnings": len(datafile.warnings),
            "errors": result.error_text.strip(),
        })

    def _process_text(self, path: Path, output_path: Optional[Path], record: Dict):
        with RawDataFile(path, self.config) as datafile:
            record["md5"] = datafile.md5_digest
            record["line_format"] = datafile.line_format
            result = datafile.parse(output_path=output_path)
            self._record_datafile(datafile, result, record)

            if datafile.data_type == DataType.EXP.value and output_path is not None:
                with open(output_path, "w", encoding=datafile.encoding, newline="") as fh:
                    for section, values in datafile.exp_data.items():
                        fh.write(f"[{section}]\n")
                        for key, value in values.items():
                            fh.write(f"{key}\t{value}\n")

    def find_cdf(self, path: Path, chip_type: Optional[str]) -> Optional[Path]:
        """Library file ``<chip_type>.CDF`` (any case) beside ``path``."""
        if not chip_type:
            return None
        for candidate in sorted(path.parent.iterdir()):
            if candidate.suffix.lower() == ".cdf" and candidate.stem == chip_type:
                return candidate
        return None

    def _process_affymetrix(self, path: Path, output_path: Optional[Path], record: Dict):
        with open(path, "rb") as fh:
            record["md5"] = file_md5(fh, self.config.parser.md5_chunk_size)
        record["format_type"] = FormatType.AFFYMETRIX.value

        with make_parser(path) as parser:
            parser.parse()

            if isinstance(parser, CDFParser):
                record["data_type"] = "library"
                record["rows"] = len(parser.data)
                return

            if isinstance(parser, EXPParser):
                record["data_type"] = DataType.EXP.value
                if output_path is not None:
                    with open(output_path, "w", encoding=self.config.parser.encoding, newline="") as fh:
                        parser.export(fh)
                return

            export_args = ()
            cdf = None
            if isinstance(parser, CHPParser):
                cdf_path = self.find_cdf(path, parser.chip_type)
                if cdf_path is None:
                    raise DatafileError(
                        f"No CDF file found for chip type {parser.chip_type} of {path.name}"
                    )
                cdf = make_parser(cdf_path)
                export_args = (cdf,)

            try:
                with tempfile.TemporaryFile(mode="w+b") as spool:
                    text = io.TextIOWrapper(spool, encoding=self.config.parser.encoding, newline="")
                    parser.export(text, *export_args)
                    text.flush()
                    text.detach()

                    data_type = DataType.RAW.value
                    if isinstance(parser, (CHPParser, CalvinCHP)):
                        data_type = DataType.NORMALIZED.value
                    with RawDataFile(path, self.config, data_type=data_type, stream=spool,
                                     format_type=FormatType.AFFYMETRIX.value,
                                     headings=parser.headings) as datafile:
                        record["line_format"] = datafile.line_format
                        result = datafile.parse(output_path=output_path)
                        self._record_datafile(datafile, result, record)
            finally:
                if cdf is not None:
                    cdf.close()
