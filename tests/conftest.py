"""Shared fixtures."""

import tempfile
from pathlib import Path

import pytest

from classroom_repos.git import GitRepository


@pytest.fixture
def workspace():
    """Temporary directory holding templates, work area and remote base."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "remote").mkdir()
        yield root


@pytest.fixture
def make_template(workspace):
    """Factory creating a template repository with one commit on main."""

    def _make(name: str, files: dict[str, str] = None) -> Path:
        path = workspace / "templates-src" / name
        repo = GitRepository.init(path, initial_branch="main")
        for filename, content in (files or {"README.md": f"# {name}\n"}).items():
            (path / filename).write_text(content)
        repo.add_all()
        repo.commit(f"Initial {name}", author_name="Teacher", author_email="teacher@example.com")
        return path

    return _make
