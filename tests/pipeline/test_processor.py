import pytest
from pathlib import Path

from arraydata.contracts import ContractViolation
from arraydata.pipeline.processor import DatafileProcessor

from helpers.affy_builders import celv3_file, exp_file, xda_cdf_file, xda_chp_file

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]

NAMES = ["1007_s_at", "1053_at", "117_at"]


@pytest.fixture
def processor(pipeline_config, tracker):
    return DatafileProcessor(pipeline_config, file_tracker=tracker)


def register(tracker, path):
    tracker.register_file(path.name, path, "raw")


def test_output_path(pipeline_config, output_dir):
    processor = DatafileProcessor(pipeline_config)
    assert processor.output_path(Path("/data/a.gpr")) == output_dir / "a.gpr.normalized.txt"


def test_text_file_completed(processor, tracker, genepix_file, output_dir):
    register(tracker, genepix_file)

    record = processor.process_file(genepix_file)

    assert record["status"] == "completed"
    assert record["format_type"] == "Generic"
    assert record["qt_type"] == "GenePix"
    assert record["line_format"] == "Unix"
    assert record["rows"] == 4
    assert record["percent_null"] == "25.00000"
    assert record["errors"] == ""
    assert len(record["md5"]) == 32

    output = Path(record["output"])
    assert output == output_dir / "slide.gpr.normalized.txt"
    assert output.read_text().splitlines()[0].startswith("MetaColumn\tMetaRow\tColumn\tRow\t")

    status = tracker.get_file_status("slide.gpr")
    assert status["status"] == "completed"
    assert status["row_count"] == 4


def test_completed_file_is_skipped(processor, tracker, genepix_file):
    register(tracker, genepix_file)
    tracker.mark_complete("slide.gpr", None, {"rows": 4})

    record = processor.process_file(genepix_file)

    assert record["status"] == "skipped"
    assert record["rows"] == 0


def test_undecodable_file_fails(processor, tracker, input_dir):
    path = input_dir / "mixed.txt"
    path.write_bytes(b"ID_REF\tVALUE\r\na\t1\nb\t2\n")
    register(tracker, path)

    record = processor.process_file(path)

    assert record["status"] == "failed"
    assert "Cannot parse linebreaks" in record["errors"]
    assert tracker.get_file_status("mixed.txt")["status"] == "failed"


def test_missing_file_fails(processor, input_dir):
    record = processor.process_file(input_dir / "absent.txt")

    assert record["status"] == "failed"
    assert record["errors"]


def test_unrecognized_headings_reported(processor, input_dir):
    path = input_dir / "notes.txt"
    path.write_text("hello\tworld\n1\t2\n")

    record = processor.process_file(path)

    assert record["status"] == "completed"
    assert record["format_type"] == "Unknown"
    assert "Unable to detect supported data file column headings" in record["errors"]


def test_contract_violation_propagates(processor, tracker, genepix_file, monkeypatch):
    register(tracker, genepix_file)

    def broken(self, *args, **kwargs):
        raise ContractViolation("Header contract: index out of range")

    monkeypatch.setattr("arraydata.pipeline.processor.RawDataFile.parse", broken)

    with pytest.raises(ContractViolation):
        processor.process_file(genepix_file)
    assert "Contract violation" in tracker.get_file_status("slide.gpr")["error_message"]


def test_contract_violation_fails_file_under_skip_policy(skip_file_config, tracker, genepix_file, monkeypatch):
    register(tracker, genepix_file)

    def broken(self, *args, **kwargs):
        raise ContractViolation("Header contract: index out of range")

    monkeypatch.setattr("arraydata.pipeline.processor.RawDataFile.parse", broken)
    processor = DatafileProcessor(skip_file_config, file_tracker=tracker)

    record = processor.process_file(genepix_file)

    assert record["status"] == "failed"
    assert record["errors"] == "Contract violation: Header contract: index out of range"
    assert tracker.get_file_status("slide.gpr")["status"] == "failed"


class TestAffymetrix:

    def test_cel_file(self, processor, input_dir):
        path = input_dir / "chip.CEL"
        path.write_bytes(celv3_file([(0, 0, 100.0, 10.0, 16), (1, 0, 200.0, 20.5, 16)], 2, 1))

        record = processor.process_file(path)

        assert record["status"] == "completed"
        assert record["format_type"] == "Affymetrix"
        assert record["data_type"] == "raw"
        assert record["rows"] == 2
        header = Path(record["output"]).read_text().splitlines()[0]
        assert header.split("\t")[:3] == ["CELIntensity", "CELIntensityStdev", "CELMask"]

    def test_chp_file_with_cdf(self, processor, input_dir):
        (input_dir / "HG-U133A.CDF").write_bytes(xda_cdf_file(NAMES))
        path = input_dir / "chip.CHP"
        path.write_bytes(xda_chp_file([
            (0, 0.25, 250.5, 11, 10),
            (2, 0.5, 12.0, 11, 11),
            (1, 0.125, 3.25, 5, 5),
        ]))

        record = processor.process_file(path)

        assert record["status"] == "completed"
        assert record["data_type"] == "normalized"
        assert record["rows"] == 3
        lines = Path(record["output"]).read_text().splitlines()
        assert lines[0].split("\t")[-1] == "ProbeSetName"
        assert any(line.endswith("\t1007_s_at") for line in lines[1:])

    def test_chp_file_without_cdf(self, processor, input_dir):
        path = input_dir / "chip.CHP"
        path.write_bytes(xda_chp_file([(0, 0.25, 250.5, 11, 10)]))

        record = processor.process_file(path)

        assert record["status"] == "failed"
        assert "No CDF file found for chip type HG-U133A" in record["errors"]

    def test_find_cdf_by_chip_type(self, processor, input_dir):
        cdf = input_dir / "HG-U133A.cdf"
        cdf.write_bytes(b"")

        assert processor.find_cdf(input_dir / "chip.CHP", "HG-U133A") == cdf
        assert processor.find_cdf(input_dir / "chip.CHP", "Mouse430_2") is None
        assert processor.find_cdf(input_dir / "chip.CHP", None) is None

    def test_exp_file(self, processor, input_dir):
        path = input_dir / "sample.EXP"
        path.write_bytes(exp_file())

        record = processor.process_file(path)

        assert record["status"] == "completed"
        assert record["data_type"] == "EXP"
        assert "Chip Lot\t4001234" in Path(record["output"]).read_text()

    def test_cdf_file_counts_units(self, processor, input_dir):
        path = input_dir / "HG-U133A.CDF"
        path.write_bytes(xda_cdf_file(NAMES))

        record = processor.process_file(path)

        assert record["status"] == "completed"
        assert record["data_type"] == "library"
        assert record["rows"] == 3
        assert record["output"] is None

    def test_unknown_magic_fails(self, processor, input_dir):
        path = input_dir / "broken.CEL"
        path.write_bytes(b"\x00" * 16)

        record = processor.process_file(path)

        assert record["status"] == "failed"
        assert "Unrecognized CEL file type: 0" in record["errors"]
