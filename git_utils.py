"""Git process helpers: argument sanitation, repository lookup and capture-mode runs."""

import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import List, Sequence

from credentials import GitAuth, PreparedAuth, merge_auth_env, prepare_auth, DEFAULT_ASKPASS_PREFIX
from logging_config import get_logger
from metrics import record_git_command
from models import (
    CommandOutcome,
    GitError,
    GitExecutable,
    GitRepositoryInfo,
    InvalidArgumentError,
    InvalidPathError,
    RunResult,
    SpawnError,
)

logger = get_logger(__name__)


def which(cmd: str) -> str | None:
    """Find command in PATH."""
    return shutil.which(cmd)


def sanitize_arg(value: str, field: str = "argument") -> str:
    """Reject empty arguments and arguments carrying a null byte."""
    if not value:
        raise InvalidArgumentError(f"{field} cannot be empty")
    if "\0" in value:
        raise InvalidArgumentError(f"{field} may not contain null bytes")
    return value


def canonicalize_path(path: str) -> Path:
    """Resolve a repository path to an existing directory (a file maps to its parent)."""
    if not path or not path.strip():
        raise InvalidPathError("path cannot be empty")
    candidate = Path(path)
    directory = candidate if candidate.is_dir() else candidate.parent
    try:
        return directory.resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise InvalidPathError("path does not exist") from e


def detect_repository(path: Path) -> GitRepositoryInfo:
    """Walk upward from ``path`` looking for a ``.git`` directory or gitdir file."""
    start = path if path.is_dir() else path.parent
    for current in (start, *start.parents):
        git_dir = current / ".git"
        if git_dir.is_dir():
            return GitRepositoryInfo(
                is_repository=True,
                worktree_root=str(current),
                git_dir=str(git_dir),
            )
        if git_dir.is_file():
            target = _read_gitdir_file(git_dir)
            if target is not None:
                resolved = target if target.is_absolute() else current / target
                return GitRepositoryInfo(
                    is_repository=True,
                    worktree_root=str(current),
                    git_dir=str(resolved),
                )
    return GitRepositoryInfo(is_repository=False)


def _read_gitdir_file(git_file: Path) -> Path | None:
    try:
        contents = git_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read gitdir file {git_file}: {e}")
        return None
    for line in contents.splitlines():
        if line.startswith("gitdir:"):
            return Path(line[len("gitdir:"):].strip())
    return None


def build_command(executable: GitExecutable, args: Sequence[str]) -> List[str]:
    """Full argv for the child: program, wrapper prefix, then git arguments."""
    return [executable.program, *executable.prefix_args, *args]


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _exit_code(returncode: int) -> int | None:
    # Negative codes mean the child was killed by a signal and has no exit status.
    return returncode if returncode >= 0 else None


def run_git_capture(
    service,
    repository_path: str | None,
    args: Sequence[str],
    auth: GitAuth | None = None,
    askpass_prefix: str = DEFAULT_ASKPASS_PREFIX,
) -> CommandOutcome:
    """Run git to completion and capture trimmed output.

    A non-zero exit is returned as ``success=False``; only failing to start
    the process raises (:class:`SpawnError`). Credential helpers are removed
    after the child has exited, whatever the outcome.
    """
    clean_args = [sanitize_arg(arg) for arg in args]
    config = service.prepare(repository_path)
    prepared = prepare_auth(auth, askpass_prefix) if auth is not None else PreparedAuth()
    command = build_command(config.executable, clean_args)
    display = " ".join(clean_args)

    start_time = time.time()
    try:
        cp = subprocess.run(
            command,
            cwd=str(config.working_dir),
            env=merge_auth_env(dict(os.environ), prepared.env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"git:err {display} @ {config.working_dir} -> {e}")
        raise SpawnError(str(e)) from e
    finally:
        prepared.release()

    duration_ms = (time.time() - start_time) * 1000
    success = cp.returncode == 0
    record_git_command(clean_args, success, duration_ms)
    if success:
        logger.info(f"git:ok {display}")
    else:
        logger.error(f"git:exit code={cp.returncode} {display}")

    return CommandOutcome(
        exit_code=_exit_code(cp.returncode),
        success=success,
        stdout=_decode(cp.stdout).strip(),
        stderr=_decode(cp.stderr).strip(),
    )


def run_git(service, cwd: str | None, args: Sequence[str]) -> RunResult:
    """Arbitrary passthrough: run git in ``cwd`` and return untrimmed output."""
    joined = " ".join(args)
    try:
        clean_args = [sanitize_arg(arg) for arg in args]
        config = service.prepare(cwd)
    except GitError as e:
        logger.error(f"git:err run {joined} @ {cwd} -> {e}")
        raise

    start_time = time.time()
    try:
        cp = subprocess.run(
            build_command(config.executable, clean_args),
            cwd=str(config.working_dir),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"git:err run {joined} @ {cwd} -> {e}")
        raise SpawnError(str(e)) from e

    code = _exit_code(cp.returncode)
    record_git_command(clean_args, cp.returncode == 0, (time.time() - start_time) * 1000)
    if cp.returncode == 0:
        logger.info(f"git:ok {joined}")
    else:
        logger.error(f"git:exit code={cp.returncode} {joined}")
    return RunResult(
        code=code if code is not None else -1,
        stdout=_decode(cp.stdout),
        stderr=_decode(cp.stderr),
    )


def git_version_ok(service, min_major: int = 2, min_minor: int = 23) -> bool:
    """Check that the resolved git supports ``git switch``/``git restore`` (2.23+)."""
    try:
        v = run_git(service, None, ["--version"]).stdout.strip()
        parts = v.split()
        if len(parts) >= 3:
            nums = parts[2].split(".")
            major = int(nums[0])
            minor = int(nums[1])
            return (major > min_major) or (major == min_major and minor >= min_minor)
    except (ValueError, IndexError) as e:
        logger.warning(f"Failed to parse git version: {e}")
    except GitError as e:
        logger.warning(f"Failed to run git --version: {e}")
    return False
