"""Git fixtures for checkout tests."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

_GIT = shutil.which("git") or "git"


def run_git(*args: str, cwd: Path, capture: bool = False) -> subprocess.CompletedProcess:
    return subprocess.run(  # noqa: S603
        [_GIT, "-c", "user.name=Devnet Tests", "-c", "user.email=devnet@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=capture,
        text=capture,
    )


def commit_file(path: Path, filename: str, content: str) -> None:
    (path / filename).write_text(content)
    run_git("add", filename, cwd=path)
    run_git("commit", "-m", f"update {filename}", cwd=path)


@pytest.fixture()
def git_commit():
    return commit_file


@pytest.fixture()
def git_run():
    return run_git


@pytest.fixture()
def upstream_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "upstream"
    repo.mkdir()
    run_git("init", "--initial-branch", "main", cwd=repo)
    commit_file(repo, "docker-compose-devnet.yaml", "services: {}\n")
    return repo
