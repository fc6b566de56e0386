import pytest


@pytest.fixture
def write_binary(temp_dir):
    """Factory writing raw bytes to ``temp_dir / name``."""
    def _write(name, data):
        path = temp_dir / name
        path.write_bytes(data)
        return path

    return _write
