"""Root-level pytest fixtures for the arraydata test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture. Tests build configs through these fixtures rather than raw
dicts.
"""

import logging
import pytest
from pathlib import Path
import tempfile
import shutil

from arraydata.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Examples
    --------
    >>> def test_parse(internal_config, write_datafile):
    ...     path = write_datafile("a.txt", ["MetaColumn\\tMetaRow\\tColumn\\tRow"])
    ...     RawDataFile(path, internal_config)
    """
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_short_scan(make_config):
    ...     config = make_config(MAX_HEADER_LINES=5)
    ...     assert config.parser.max_header_lines == 5
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def write_datafile(temp_dir):
    """Factory writing tab-delimited lines to a file in temp_dir.

    Returns a callable ``(name, lines, linebreak="\\n") -> Path``. Every
    line, the last included, is followed by ``linebreak``.
    """
    def _write(name, lines, linebreak="\n"):
        path = temp_dir / name
        path.write_bytes("".join(line + linebreak for line in lines).encode("latin-1"))
        return path

    return _write


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def restore_root_logging():
    """Batch runs install their own root handlers; put the originals back."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
