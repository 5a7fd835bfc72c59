"""Request/response and streaming git operations exposed to the host application."""

from pathlib import Path
from typing import List, Sequence

from config import DEFAULT_GRAPH_LIMIT, DEFAULT_LOG_LIMIT
from credentials import GitAuth
from git_utils import canonicalize_path, detect_repository, run_git, run_git_capture, sanitize_arg
from logging_config import get_logger
from metrics import time_operation
from models import (
    CommandHandle,
    CommandOutcome,
    GitBranches,
    GitCommandFailedError,
    GitCommitDetails,
    GitGraphEntry,
    GitLogEntry,
    GitPathInfo,
    GitRemote,
    GitRepositoryInfo,
    GitStashEntry,
    GitStatus,
    GitSwitchResult,
    InvalidArgumentError,
    MissingRepositoryError,
    RunResult,
    StreamRequest,
)
from parsers import (
    COMMIT_DETAILS_FORMAT,
    GRAPH_FORMAT,
    STASH_LIST_FORMAT,
    parse_branches,
    parse_commit_details,
    parse_graph,
    parse_log,
    parse_remotes,
    parse_stash_list,
    parse_status,
)

logger = get_logger(__name__)


def git_path_info(service) -> GitPathInfo:
    """Report detected, configured and effective git executables."""
    return service.info()


def git_set_path(service, path: str | None) -> GitPathInfo:
    """Set the executable override, or clear it with ``None``."""
    return service.set_override(path)


def git_detect_repository(repository_path: str | None) -> GitRepositoryInfo:
    """Find the worktree root and metadata directory containing a path."""
    if repository_path is None:
        raise MissingRepositoryError("repository_path is required")
    return detect_repository(canonicalize_path(repository_path))


def git_status(service, repository_path: str) -> GitStatus:
    with time_operation("git_status"):
        outcome = run_git_capture(
            service, repository_path, ["status", "--branch", "--porcelain=v1", "-z"]
        )
    return parse_status(outcome.stdout)


def _path_args(paths: Sequence[str]) -> List[str]:
    if not paths:
        raise InvalidArgumentError("no paths provided")
    return [sanitize_arg(path, "path") for path in paths]


def git_stage(service, repository_path: str, paths: Sequence[str]) -> CommandOutcome:
    return run_git_capture(service, repository_path, ["add", "--", *_path_args(paths)])


def git_unstage(service, repository_path: str, paths: Sequence[str]) -> CommandOutcome:
    return run_git_capture(
        service, repository_path, ["restore", "--staged", "--", *_path_args(paths)]
    )


def git_commit(service, repository_path: str, message: str) -> CommandOutcome:
    if not message.strip():
        raise InvalidArgumentError("commit message cannot be empty")
    return run_git_capture(
        service, repository_path, ["commit", "-m", sanitize_arg(message, "message")]
    )


def git_log(service, repository_path: str, limit: int = DEFAULT_LOG_LIMIT) -> List[GitLogEntry]:
    outcome = run_git_capture(
        service,
        repository_path,
        ["log", "--oneline", "--decorate", "-n", str(limit), "--no-color"],
    )
    return parse_log(outcome.stdout)


def git_graph(service, repository_path: str, limit: int = DEFAULT_GRAPH_LIMIT) -> List[GitGraphEntry]:
    with time_operation("git_graph"):
        outcome = run_git_capture(
            service,
            repository_path,
            ["log", "--date=iso-strict", GRAPH_FORMAT, "-n", str(limit)],
        )
    return parse_graph(outcome.stdout)


def git_commit_details(service, repository_path: str, commit: str) -> GitCommitDetails:
    outcome = run_git_capture(
        service,
        repository_path,
        [
            "show",
            "--name-status",
            "--date=iso-strict",
            COMMIT_DETAILS_FORMAT,
            "--no-color",
            sanitize_arg(commit, "commit"),
        ],
    )
    return parse_commit_details(outcome.stdout)


def git_branches(service, repository_path: str) -> GitBranches:
    outcome = run_git_capture(service, repository_path, ["branch", "-a", "--no-color"])
    return parse_branches(outcome.stdout)


def _require_success(outcome: CommandOutcome, fallback: str):
    if not outcome.success:
        logger.warning(f"git command failed (exit {outcome.exit_code}): {outcome.stderr}")
        raise GitCommandFailedError(outcome.stderr or fallback, outcome)


def git_switch_branch(
    service,
    repository_path: str,
    branch: str,
    create: bool = False,
    track: bool = False,
) -> GitSwitchResult:
    args = ["switch"]
    if create:
        args.append("-c")
    if track:
        args.append("--track")
    branch = sanitize_arg(branch, "branch")
    args.append(branch)

    outcome = run_git_capture(service, repository_path, args)
    _require_success(outcome, "failed to switch branch")
    return GitSwitchResult(branch=branch)


def git_delete_branch(service, repository_path: str, branch: str, force: bool = False) -> GitSwitchResult:
    branch = sanitize_arg(branch, "branch")
    outcome = run_git_capture(
        service, repository_path, ["branch", "-D" if force else "-d", branch]
    )
    _require_success(outcome, "failed to delete branch")
    return GitSwitchResult(branch=branch)


def git_checkout(service, repository_path: str, target: str) -> GitSwitchResult:
    target = sanitize_arg(target, "target")
    outcome = run_git_capture(service, repository_path, ["checkout", target])
    _require_success(outcome, "failed to checkout target")
    return GitSwitchResult(branch=target)


def git_stash_list(service, repository_path: str) -> List[GitStashEntry]:
    outcome = run_git_capture(service, repository_path, ["stash", "list", STASH_LIST_FORMAT])
    return parse_stash_list(outcome.stdout)


def git_stash_push(
    service,
    repository_path: str,
    message: str | None = None,
    include_untracked: bool = False,
) -> CommandOutcome:
    args = ["stash", "push"]
    if include_untracked:
        args.append("-u")
    if message is not None:
        args += ["-m", sanitize_arg(message, "message")]
    return run_git_capture(service, repository_path, args)


def git_stash_apply(
    service,
    repository_path: str,
    name: str | None = None,
    drop: bool = False,
) -> CommandOutcome:
    """Apply a stash, or pop it when ``drop`` is set."""
    args = ["stash", "pop" if drop else "apply"]
    if name is not None:
        args.append(sanitize_arg(name, "name"))
    return run_git_capture(service, repository_path, args)


def git_remote_list(service, repository_path: str) -> List[GitRemote]:
    outcome = run_git_capture(service, repository_path, ["remote", "-v"])
    return parse_remotes(outcome.stdout)


def git_run(service, cwd: str, args: Sequence[str]) -> RunResult:
    """Run arbitrary git arguments in ``cwd``."""
    return run_git(service, cwd, args)


def git_fetch_all(runner, request: StreamRequest) -> CommandHandle:
    return runner.start(request, ["fetch", "--all"])


def git_pull(runner, request: StreamRequest) -> CommandHandle:
    return runner.start(request, ["pull"])


def git_push(runner, request: StreamRequest) -> CommandHandle:
    return runner.start(request, ["push"])


def stream_request(
    repository_path: str | Path,
    remote: str | None = None,
    branch: str | None = None,
    auth: GitAuth | None = None,
    command_id: str | None = None,
) -> StreamRequest:
    """Convenience constructor for fetch/pull/push requests."""
    return StreamRequest(
        repository_path=str(repository_path),
        remote=remote,
        branch=branch,
        auth=auth,
        command_id=command_id,
    )
