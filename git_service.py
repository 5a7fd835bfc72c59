"""Resolution of the git executable shared by every invocation."""

import os
import sys
import threading
from contextlib import contextmanager
from pathlib import Path

from config import get_git_path
from git_utils import canonicalize_path, which
from logging_config import get_logger
from models import (
    CommandConfig,
    GitExecutable,
    GitPathInfo,
    InvalidPathError,
    MissingExecutableError,
)

logger = get_logger(__name__)


class ReadWriteLock:
    """Many concurrent readers or a single writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class GitService:
    """Holds the detected and user-configured git executable.

    Resolution order is configured override, then the executable found on
    PATH at detection time, then a platform fallback (a PowerShell wrapper on
    Windows, bare ``git`` elsewhere). The fallback can be disabled, in which
    case resolution fails with :class:`MissingExecutableError`.
    """

    def __init__(self, allow_fallback: bool = True):
        self._lock = ReadWriteLock()
        self._detected: Path | None = self._detect_system_git()
        self._configured: Path | None = None
        self._allow_fallback = allow_fallback
        logger.debug(f"Detected git executable: {self._detected}")

    def refresh_detection(self):
        """Repeat the PATH lookup for git."""
        detected = self._detect_system_git()
        with self._lock.write_locked():
            self._detected = detected
        logger.info(f"Git detection refreshed: {detected}")

    def set_override(self, path: str | None) -> GitPathInfo:
        """Set or, when ``path`` is None, clear the executable override."""
        with self._lock.write_locked():
            if path is None:
                self._configured = None
            else:
                if not path.strip():
                    raise InvalidPathError("git executable path cannot be empty")
                candidate = Path(path)
                if not candidate.exists():
                    raise InvalidPathError("configured git executable path does not exist")
                self._configured = candidate
            info = self._info_unlocked()
        logger.info(f"Git executable override set to {self._configured}")
        return info

    def apply_config(self, cfg: dict):
        """Apply persisted settings; a stale override path is dropped with a warning."""
        with self._lock.write_locked():
            self._allow_fallback = bool(cfg.get("allow_path_fallback", True))
        configured = get_git_path(cfg)
        try:
            self.set_override(configured)
        except InvalidPathError as e:
            logger.warning(f"Ignoring configured git path {configured!r}: {e}")
            self.set_override(None)

    def info(self) -> GitPathInfo:
        with self._lock.read_locked():
            return self._info_unlocked()

    def current_executable(self) -> GitExecutable:
        with self._lock.read_locked():
            return self._resolve_executable()

    def prepare(self, repository_path: str | None) -> CommandConfig:
        """Build the per-invocation config for a repository (or the current directory)."""
        executable = self.current_executable()
        if repository_path is not None:
            working_dir = canonicalize_path(repository_path)
        else:
            try:
                working_dir = Path(os.getcwd())
            except OSError as e:
                raise InvalidPathError(str(e)) from e
        return CommandConfig(executable=executable, working_dir=working_dir)

    def _info_unlocked(self) -> GitPathInfo:
        try:
            executable = self._resolve_executable()
            effective, uses_wrapper = executable.program_display(), bool(executable.prefix_args)
        except MissingExecutableError:
            effective, uses_wrapper = None, False

        return GitPathInfo(
            detected_path=str(self._detected) if self._detected else None,
            configured_path=str(self._configured) if self._configured else None,
            effective_path=effective,
            uses_wrapper=uses_wrapper,
        )

    def _resolve_executable(self) -> GitExecutable:
        if self._configured is not None:
            return GitExecutable(program=str(self._configured), description="user override")
        if self._detected is not None:
            return GitExecutable(program=str(self._detected), description="detected git")
        if not self._allow_fallback:
            raise MissingExecutableError()
        if sys.platform.startswith("win"):
            return GitExecutable(
                program="powershell.exe",
                prefix_args=["-NoProfile", "-Command", "git"],
                description="powershell wrapper",
            )
        return GitExecutable(program="git", description="git on PATH")

    @staticmethod
    def _detect_system_git() -> Path | None:
        found = which("git")
        return Path(found) if found else None
