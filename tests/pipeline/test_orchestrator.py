import pandas as pd
import pytest

from arraydata.contracts import ContractViolation
from arraydata.pipeline.orchestrator import BatchOrchestrator
from arraydata.schemas import CLIConfig, resolve_config

pytestmark = [
    pytest.mark.unit,
    pytest.mark.pipeline,
    pytest.mark.usefixtures("restore_root_logging"),
]


@pytest.fixture
def mixed_file(input_dir):
    path = input_dir / "mixed.txt"
    path.write_bytes(b"ID_REF\tVALUE\r\na\t1\nb\t2\n")
    return path


def test_requires_output_dir(input_dir):
    config = resolve_config(None, None, CLIConfig(input_dir=str(input_dir)))

    with pytest.raises(ValueError, match="output_dir"):
        BatchOrchestrator(config)


def test_discover_files_by_pattern(pipeline_config, input_dir):
    for name in ("b.gpr", "a.TXT", "chip.CEL", "notes.md"):
        (input_dir / name).write_text("x")
    (input_dir / "nested.txt").mkdir()

    files = BatchOrchestrator(pipeline_config).discover_files()

    assert [f.name for f in files] == ["a.TXT", "b.gpr", "chip.CEL"]


def test_discover_explicit_paths(pipeline_config, genepix_file, temp_dir):
    orch = BatchOrchestrator(pipeline_config)

    files = orch.discover_files([genepix_file, genepix_file, temp_dir / "missing.txt"])

    assert files == [genepix_file]


def test_discover_without_input(output_dir):
    config = resolve_config(None, None, CLIConfig(output_dir=str(output_dir)))

    with pytest.raises(ValueError, match="No input files"):
        BatchOrchestrator(config).discover_files()


def test_run_writes_summary(pipeline_config, genepix_file, mixed_file, output_dir):
    orch = BatchOrchestrator(pipeline_config)

    summary = orch.run()

    assert list(summary["file"]) == ["mixed.txt", "slide.gpr"]
    assert list(summary["status"]) == ["failed", "completed"]

    table = pd.read_csv(output_dir / pipeline_config.pipeline.summary_filename, sep="\t")
    assert list(table["file"]) == ["mixed.txt", "slide.gpr"]
    assert table.loc[1, "rows"] == 4

    assert (output_dir / "slide.gpr.normalized.txt").exists()
    assert (output_dir / pipeline_config.pipeline.tracker_filename).exists()
    assert list(output_dir.glob("arraydata_*.log"))
    assert orch.tracker is None


def test_rerun_skips_completed(pipeline_config, genepix_file, mixed_file):
    BatchOrchestrator(pipeline_config).run()

    summary = BatchOrchestrator(pipeline_config).run()

    assert list(summary["status"]) == ["failed", "skipped"]


def test_contract_violation_stops_batch(pipeline_config, genepix_file, monkeypatch):
    def broken(self, *args, **kwargs):
        raise ContractViolation("Transform contract: canonical headings missing")

    monkeypatch.setattr("arraydata.pipeline.processor.RawDataFile.parse", broken)
    orch = BatchOrchestrator(pipeline_config)

    with pytest.raises(ContractViolation):
        orch.run()
    assert orch.tracker is None


def test_skip_file_policy_keeps_batch_going(skip_file_config, genepix_file, mixed_file, monkeypatch):
    def broken(self, *args, **kwargs):
        raise ContractViolation("Transform contract: canonical headings missing")

    monkeypatch.setattr("arraydata.pipeline.processor.RawDataFile.parse", broken)

    summary = BatchOrchestrator(skip_file_config).run()

    assert list(summary["file"]) == ["mixed.txt", "slide.gpr"]
    assert list(summary["status"]) == ["failed", "failed"]
    assert "Contract violation" in summary.loc[1, "errors"]


def test_stop_is_idempotent(pipeline_config):
    orch = BatchOrchestrator(pipeline_config)
    orch.stop()
    orch.stop()
