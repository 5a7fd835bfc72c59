"""Pytest configuration and fixtures for gitbridge tests."""

import shutil
import subprocess
import sys
import tempfile
import threading
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from PySide6.QtCore import Qt

from git_service import GitService
from models import StreamEvent, StreamEventKind
from streaming import GitEventBus, GitStreamRunner

posix_only = pytest.mark.skipif(sys.platform.startswith("win"), reason="uses /bin/sh fake executables")


def _git(args: list[str], cwd: Path):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp()).resolve()
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def temp_git_repo(temp_dir: Path) -> Path:
    """Create a temporary git repository with one commit on ``main``."""
    repo = temp_dir / "repo"
    repo.mkdir()
    _git(["init"], repo)
    _git(["symbolic-ref", "HEAD", "refs/heads/main"], repo)
    _git(["config", "user.name", "Test User"], repo)
    _git(["config", "user.email", "test@example.com"], repo)
    _git(["config", "commit.gpgsign", "false"], repo)

    (repo / "README.md").write_text("# Test Repository\n")
    _git(["add", "README.md"], repo)
    _git(["commit", "-m", "Initial commit"], repo)
    return repo


@pytest.fixture
def service() -> GitService:
    return GitService()


@pytest.fixture
def fake_git(temp_dir: Path) -> Callable[[str], Path]:
    """Write an executable shell script that stands in for git."""
    bin_dir = temp_dir / "bin"
    bin_dir.mkdir(exist_ok=True)

    def make(body: str, name: str = "fake-git") -> Path:
        script = bin_dir / name
        script.write_text("#!/bin/sh\n" + body + "\n")
        script.chmod(0o755)
        return script

    return make


class EventCollector:
    """Thread-safe sink for stream events."""

    def __init__(self):
        self.events: list[StreamEvent] = []
        self._lock = threading.Lock()
        self._terminal: dict[str, threading.Event] = {}

    def _terminal_flag(self, command_id: str) -> threading.Event:
        with self._lock:
            return self._terminal.setdefault(command_id, threading.Event())

    def __call__(self, event: StreamEvent):
        with self._lock:
            self.events.append(event)
        if event.is_terminal:
            self._terminal_flag(event.command_id).set()

    def wait_for(self, command_id: str, timeout: float = 15.0) -> bool:
        return self._terminal_flag(command_id).wait(timeout)

    def for_id(self, command_id: str) -> list[StreamEvent]:
        with self._lock:
            return [e for e in self.events if e.command_id == command_id]

    def data(self, command_id: str, kind: StreamEventKind) -> list[str]:
        return [e.data for e in self.for_id(command_id) if e.kind == kind]


@pytest.fixture
def bus() -> GitEventBus:
    return GitEventBus()


@pytest.fixture
def collector(bus: GitEventBus) -> Generator[EventCollector, None, None]:
    sink = EventCollector()
    subscription = bus.subscribe(sink, connection_type=Qt.ConnectionType.DirectConnection)
    yield sink
    subscription.close()


@pytest.fixture
def runner(service: GitService, bus: GitEventBus) -> GitStreamRunner:
    return GitStreamRunner(service, bus)
