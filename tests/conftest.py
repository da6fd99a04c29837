"""
Shared pytest fixtures for LFS Scanner tests.

Builds real temporary git repositories for integration tests; unit tests use
the in-memory pipes from tests.helpers instead of spawning git.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Callable

import pytest

from lfs_scanner.utils.exception_logger import ExceptionLogger


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True
    )
    return result.stdout


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """An empty git repository with a configured identity."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "user.email", "test@test.com")
    _git(repo, "config", "commit.gpgsign", "false")
    return repo


@pytest.fixture
def git() -> Callable[..., str]:
    """Run a git command in a repository and return its stdout."""
    return _git


@pytest.fixture(autouse=True)
def reset_exception_logger():
    """Keep the ExceptionLogger singleton from leaking between tests."""
    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None
