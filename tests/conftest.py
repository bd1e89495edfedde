"""
Shared test fixtures and configuration.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from dotboot.adapters.base import AdapterContext
from dotboot.adapters.mock import MockCommandRunner
from dotboot.adapters.registry import default_registry
from dotboot.core.engine.reconciler import Reconciler
from dotboot.core.models.context import ExecutionContext, TargetIdentity
from dotboot.core.models.retry import RetryPolicy
from dotboot.core.services.ownership import OwnershipFixer

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """The CLI reconfigures the root logger; undo that after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """An empty target home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """An empty dotfiles checkout."""
    path = tmp_path / "dotfiles"
    path.mkdir()
    return path


@pytest.fixture
def target(home: Path) -> TargetIdentity:
    return TargetIdentity(
        user="tester",
        home=home,
        uid=os.getuid(),
        gid=os.getgid(),
        group="tester",
    )


@pytest.fixture
def context() -> ExecutionContext:
    """Context whose invoking user is the target, so nothing switches user."""
    return ExecutionContext(invoking_user="tester")


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=2.0)


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the retrier (nothing actually sleeps)."""
    return []


@pytest.fixture
def runner(context: ExecutionContext, target: TargetIdentity) -> MockCommandRunner:
    return MockCommandRunner(context, target)


@pytest.fixture
def adapter_ctx(runner, target, policy, context, source_dir, sleeps) -> AdapterContext:
    return AdapterContext(
        runner=runner,
        target=target,
        policy=policy,
        fixer=OwnershipFixer(context),
        source_dir=source_dir,
        sleep=sleeps.append,
    )


@pytest.fixture
def reconciler(runner, context, policy, source_dir, sleeps, monkeypatch) -> Reconciler:
    """Reconciler with the real adapters and the mock command runner.

    git and curl are answered by the mock runner, so every tool is
    reported as installed.
    """
    monkeypatch.setattr(shutil, "which", lambda tool: f"/usr/bin/{tool}")
    return Reconciler(
        registry=default_registry(),
        runner=runner,
        fixer=OwnershipFixer(context),
        policy=policy,
        source_dir=source_dir,
        sleep=sleeps.append,
    )


# ── Git helpers ──────────────────────────────────────────────────


@pytest.fixture
def git_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's configuration."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")


def git(*args: str, cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def commit_file(work: Path, name: str, content: str, message: str) -> None:
    (work / name).write_text(content)
    git("add", name, cwd=work)
    git("commit", "-q", "-m", message, cwd=work)


def make_remote(root: Path, name: str = "plugin") -> tuple[Path, Path]:
    """Create a bare repository whose default branch is ``main``.

    Returns:
        (bare repository, working copy used to push to it)
    """
    work = root / f"{name}-work"
    work.mkdir(parents=True)
    git("init", "-q", cwd=work)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=work)
    commit_file(work, "README.md", f"# {name}\n", "initial")

    bare = root / f"{name}.git"
    git("clone", "-q", "--bare", str(work), str(bare), cwd=root)
    git("remote", "add", "origin", str(bare), cwd=work)
    return bare, work
