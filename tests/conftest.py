import os
import pytest

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def stack_path():
    """Path to the app/db/admin example descriptor."""
    return os.path.join(FIXTURES, "stack.yml")


@pytest.fixture
def stack_text(stack_path):
    with open(stack_path, "r", encoding="utf-8") as f:
        return f.read()


@pytest.fixture
def write_descriptor(tmp_path):
    """Writes descriptor text into a fresh project directory and returns its path."""
    def _write(content, name="docker-compose.yml"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write
