"""Data models for the gitbridge process layer."""

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class GitError(Exception):
    """Base class for failures reported before or instead of a git run."""


class MissingExecutableError(GitError):
    """No usable git executable could be resolved."""

    def __init__(self, message: str = "git executable not available"):
        super().__init__(message)


class InvalidPathError(GitError):
    """A repository path or executable override is unusable."""

    def __init__(self, detail: str):
        super().__init__(f"invalid path provided: {detail}")


class SpawnError(GitError):
    """The operating system failed to start the git process."""

    def __init__(self, detail: str):
        super().__init__(f"failed to spawn git: {detail}")


class InvalidArgumentError(GitError):
    """A caller-supplied argument or credential value failed sanitation."""

    def __init__(self, detail: str):
        super().__init__(f"invalid argument: {detail}")


class CredentialError(InvalidArgumentError):
    """An auth descriptor carries an unusable value."""


class MissingRepositoryError(GitError):
    """An operation that needs a repository path was called without one."""

    def __init__(self, message: str = "the repository path is required"):
        super().__init__(message)


class GitCommandFailedError(GitError):
    """A branch-level operation ran but git reported failure."""

    def __init__(self, message: str, outcome: "CommandOutcome | None" = None):
        super().__init__(message)
        self.outcome = outcome


@dataclass
class GitExecutable:
    """How to invoke git: a program plus optional wrapper arguments."""

    program: str
    prefix_args: list[str] = field(default_factory=list)
    description: str = ""

    def program_display(self) -> str:
        if not self.prefix_args:
            return self.program
        return f"{self.program} {' '.join(self.prefix_args)}"


@dataclass
class CommandConfig:
    """Executable and working directory for a single invocation."""

    executable: GitExecutable
    working_dir: Path


@dataclass
class GitPathInfo:
    detected_path: str | None
    configured_path: str | None
    effective_path: str | None
    uses_wrapper: bool


@dataclass
class GitRepositoryInfo:
    is_repository: bool
    worktree_root: str | None = None
    git_dir: str | None = None


@dataclass
class GitFileChange:
    """A single entry from porcelain status output."""

    path: str
    original_path: str | None = None
    index_status: str | None = None
    worktree_status: str | None = None


@dataclass
class GitStatus:
    branch: str | None = None
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    detached: bool = False
    staged: list[GitFileChange] = field(default_factory=list)
    unstaged: list[GitFileChange] = field(default_factory=list)
    conflicts: list[GitFileChange] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)
    is_clean: bool = True


@dataclass
class GitLogEntry:
    commit: str
    refs: list[str]
    summary: str


@dataclass
class GitGraphEntry:
    commit: str
    parents: list[str]
    author: str
    date: str
    subject: str


@dataclass
class GitBranches:
    current: str | None = None
    local: list[str] = field(default_factory=list)
    remote: list[str] = field(default_factory=list)


@dataclass
class GitSwitchResult:
    branch: str


@dataclass
class GitStashEntry:
    name: str
    hash: str
    relative_time: str
    message: str


@dataclass
class GitRemote:
    name: str
    url: str
    kind: str


@dataclass
class GitCommitFileChange:
    status: str
    path: str


@dataclass
class GitCommitDetails:
    commit: str = ""
    author: str = ""
    date: str = ""
    message: str = ""
    files: list[GitCommitFileChange] = field(default_factory=list)


@dataclass
class CommandOutcome:
    """Result of a capture-mode git run. Non-zero exits are data, not errors."""

    exit_code: int | None
    success: bool
    stdout: str
    stderr: str


@dataclass
class RunResult:
    """Untrimmed result of an arbitrary passthrough run."""

    code: int
    stdout: str
    stderr: str


class StreamEventKind(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class StreamEvent:
    """One event of a streaming invocation, tagged with its correlation id."""

    command_id: str
    kind: StreamEventKind
    data: str | None = None
    exit_code: int | None = None
    success: bool | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (StreamEventKind.COMPLETED, StreamEventKind.ERROR)


@dataclass
class CommandHandle:
    command_id: str


@dataclass
class StreamRequest:
    """Inbound request for fetch/pull/push."""

    repository_path: str
    remote: str | None = None
    branch: str | None = None
    auth: Any = None  # credentials.GitAuth | None
    command_id: str | None = None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_payload(value: Any) -> Any:
    """Convert a model (or nested lists of models) to a camelCase dict for the host app."""
    if is_dataclass(value) and not isinstance(value, type):
        return {_camel(f.name): to_payload(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    if isinstance(value, dict):
        return {k: to_payload(v) for k, v in value.items()}
    return value
