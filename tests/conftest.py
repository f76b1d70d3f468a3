"""Shared fixtures for gittodo.py tests."""
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add parent directory to path so we can import gittodo
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    """Reset class-level config and log state between tests."""
    import gittodo
    monkeypatch.setattr(gittodo.ConfigManager, '_config', {})
    monkeypatch.setattr(gittodo.ConfigManager, '_file_path', gittodo.CONFIG_FILE)
    monkeypatch.setattr(gittodo.Logger, '_log_file', None)


@pytest.fixture
def make_repo(tmp_path):
    """Create a directory containing a .git directory."""
    def _create(relative: str = "repo") -> Path:
        repo = tmp_path / relative
        (repo / ".git").mkdir(parents=True)
        return repo
    return _create


@pytest.fixture
def write_todos():
    """Write a TODO.md into a directory from a list of lines."""
    def _write(repo: Path, lines: list[str], name: str = "TODO.md") -> Path:
        todo_path = repo / name
        todo_path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return todo_path
    return _write


@pytest.fixture
def sample_lines():
    """Header, two incomplete items and one complete item."""
    return [
        "# Project Todos",
        "",
        "- [ ] Write parser",
        "- [x] Set up repo",
        "- [ ] Write renderer",
    ]


@pytest.fixture
def mock_isatty():
    """Control terminal detection for color tests."""
    with patch('sys.stdout.isatty') as mock:
        yield mock
