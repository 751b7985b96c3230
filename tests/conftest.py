from __future__ import annotations

from pathlib import Path
import subprocess

import pytest


class GitRepo:
    def __init__(self, path: Path):
        self.path = path

    def git(self, *args: str) -> str:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(self.path),
            capture_output=True,
            text=True,
            check=True,
        )
        return proc.stdout

    def write(self, rel: str, content: str) -> Path:
        p = self.path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
        return p

    def commit(self, message: str) -> None:
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)

    def checkout(self, branch: str, create: bool = False) -> None:
        if create:
            self.git("checkout", "-q", "-b", branch)
        else:
            self.git("checkout", "-q", branch)

    def abs(self, rel: str) -> str:
        return str(self.path.resolve() / rel)


@pytest.fixture
def isolated_git(tmp_path: Path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Author")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "author@example.com")
    for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "FINDRULE_GIT_BRANCH", "FINDRULE_GIT_UNCOMMITTED"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def make_repo(isolated_git: Path):
    def _make(name: str = "repo") -> GitRepo:
        path = isolated_git / name
        path.mkdir(parents=True)
        repo = GitRepo(path)
        repo.git("init", "-q")
        repo.git("symbolic-ref", "HEAD", "refs/heads/main")
        repo.git("config", "commit.gpgsign", "false")
        return repo

    return _make
