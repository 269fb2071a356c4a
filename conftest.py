import pytest

from storyloom import storage


@pytest.fixture(autouse=True)
def clean_test_data(tmp_path):
    """Re-init storage in a fresh data directory before every test."""
    storage.init_storage(tmp_path / "data")
    yield
