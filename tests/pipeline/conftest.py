import pytest

from arraydata.pipeline.file_tracker import FileProcessingTracker
from arraydata.schemas import CLIConfig, InternalConfig, ParamConfig, UserConfig, resolve_config


GENEPIX_LINES = [
    "ATF\t1.0",
    "2\t10",
    '"Block"\t"Column"\t"Row"\t"Name"\t"ID"\t"X"\t"Y"\t"F635 Median"\t"B635 Median"\t"Flags"',
    "1\t1\t1\tg1\tid1\t10\t10\t500\t50\t0",
    "1\t2\t1\tg2\tid2\t100\t10\t600\t60\t0",
    "2\t1\t1\tg3\tid3\t160\t10\t700\t70\t0",
    "2\t2\t1\tg4\tid4\t250\t10\t800\t80\t-50",
]


@pytest.fixture
def tracker(temp_dir):
    db = FileProcessingTracker(temp_dir / "tracker.db")
    yield db
    db.close()


@pytest.fixture
def input_dir(temp_dir):
    path = temp_dir / "input"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(temp_dir):
    return temp_dir / "output"


@pytest.fixture
def pipeline_config(input_dir, output_dir) -> InternalConfig:
    """InternalConfig for pipeline tests, reading input_dir and writing output_dir."""
    cli = CLIConfig(input_dir=str(input_dir), output_dir=str(output_dir), workers=2)
    return resolve_config(ParamConfig(), None, cli)


@pytest.fixture
def skip_file_config(input_dir, output_dir) -> InternalConfig:
    """Like pipeline_config, but contract violations only fail the file."""
    cli = CLIConfig(input_dir=str(input_dir), output_dir=str(output_dir), workers=2)
    return resolve_config(ParamConfig(), UserConfig(CONTRACT_POLICY="skip_file"), cli)


@pytest.fixture
def genepix_file(input_dir):
    path = input_dir / "slide.gpr"
    path.write_text("".join(line + "\n" for line in GENEPIX_LINES), encoding="latin-1")
    return path
