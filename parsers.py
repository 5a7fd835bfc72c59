"""Parsers for git's machine-readable output.

Every parser is total: malformed or truncated input yields empty or
partially filled records instead of an exception.
"""

from models import (
    GitBranches,
    GitCommitDetails,
    GitCommitFileChange,
    GitFileChange,
    GitGraphEntry,
    GitLogEntry,
    GitRemote,
    GitStashEntry,
    GitStatus,
)

# Field separator used by the stash list pretty format (``%x01``).
STASH_FIELD_SEPARATOR = "\x01"
STASH_LIST_FORMAT = "--pretty=format:%H%x01%gd%x01%cr%x01%s"
GRAPH_FORMAT = "--pretty=format:%H|%P|%an|%ad|%s"
COMMIT_DETAILS_FORMAT = "--pretty=format:%H%n%an%n%ad%n%B"

_UNBORN_PREFIXES = ("No commits yet on ", "Initial commit on ")


def parse_status(output: str) -> GitStatus:
    """Parse ``git status --branch --porcelain=v1 -z``."""
    status = GitStatus()
    records = output.split("\0")
    i = 0
    while i < len(records):
        entry = records[i]
        i += 1
        if not entry:
            continue

        if entry.startswith("## "):
            _parse_branch_line(entry[3:], status)
            continue

        if entry.startswith("?? "):
            path = entry[3:]
            if path:
                status.untracked.append(path)
            continue

        if len(entry) <= 3:
            continue

        code = entry[:2]
        path_section = entry[3:]
        original_path = None

        # Takes the following record as the destination. Real git writes the
        # destination in this entry and the source in the next one under -z;
        # swap the two assignments below to follow that order.
        if code[0] in ("R", "C") and i < len(records):
            original_path = path_section
            path_section = records[i]
            i += 1

        path, embedded_original = _split_rename(path_section)
        if original_path is None:
            original_path = embedded_original

        change = GitFileChange(
            path=path,
            original_path=original_path,
            index_status=_status_char(code[0]),
            worktree_status=_status_char(code[1]),
        )

        if "U" in code:
            status.conflicts.append(change)
            continue
        if change.index_status is not None:
            status.staged.append(change)
        if change.worktree_status is not None:
            status.unstaged.append(change)

    status.is_clean = not (status.staged or status.unstaged or status.untracked or status.conflicts)
    return status


def _status_char(char: str) -> str | None:
    if char in (" ", "?"):
        return None
    return char


def _split_rename(path_section: str) -> tuple[str, str | None]:
    if " -> " in path_section:
        source, target = path_section.split(" -> ", 1)
        return target, source
    return path_section, None


def _is_detached_name(name: str) -> bool:
    return "(no branch)" in name or name.split(" ", 1)[0] == "HEAD"


def _strip_unborn_prefix(name: str) -> str:
    for prefix in _UNBORN_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def _parse_branch_line(line: str, status: GitStatus):
    """Parse the text after ``## `` in the branch header."""
    names_part, summary_part = line, ""
    bracket = line.find("[")
    if bracket != -1:
        names_part, summary_part = line[:bracket], line[bracket:]

    if "..." in names_part:
        head, rest = names_part.split("...", 1)
        head = _strip_unborn_prefix(head.strip())
        if _is_detached_name(head):
            status.detached = True
        else:
            status.branch = head
        if rest.strip():
            status.upstream = rest.strip()
    else:
        name = _strip_unborn_prefix(names_part.strip())
        if _is_detached_name(name):
            status.detached = True
        elif name:
            status.branch = name

    if summary_part.startswith("["):
        details = summary_part.strip("[]")
        for part in details.split(","):
            part = part.strip()
            if part.startswith("ahead "):
                value = part[len("ahead "):]
                if value.isdigit():
                    status.ahead = int(value)
            elif part.startswith("behind "):
                value = part[len("behind "):]
                if value.isdigit():
                    status.behind = int(value)


def parse_log(output: str) -> list[GitLogEntry]:
    """Parse ``git log --oneline --decorate``."""
    entries = []
    for line in output.splitlines():
        if not line.strip():
            continue
        commit, _, rest = line.partition(" ")
        rest = rest.strip()
        refs: list[str] = []
        summary = rest
        if rest.startswith("("):
            end = rest.find(")")
            if end != -1:
                refs = [r.strip() for r in rest[1:end].split(",") if r.strip()]
                summary = rest[end + 1:].strip()
        entries.append(GitLogEntry(commit=commit, refs=refs, summary=summary))
    return entries


def parse_graph(output: str) -> list[GitGraphEntry]:
    """Parse ``git log`` with the ``%H|%P|%an|%ad|%s`` format."""
    entries = []
    for line in output.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue
        parts = trimmed.split("|", 4)
        parts += [""] * (5 - len(parts))
        commit, parents, author, date, subject = parts
        entries.append(GitGraphEntry(
            commit=commit,
            parents=parents.split(),
            author=author,
            date=date,
            subject=subject,
        ))
    return entries


def parse_branches(output: str) -> GitBranches:
    """Parse ``git branch -a --no-color``."""
    result = GitBranches()
    seen = set()
    for line in output.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue
        is_current = trimmed.startswith("*")
        name = trimmed.lstrip("*").strip()
        if name not in seen:
            seen.add(name)
            if name.startswith("remotes/"):
                result.remote.append(name)
            else:
                result.local.append(name)
        if is_current:
            result.current = name
    return result


def parse_stash_list(output: str) -> list[GitStashEntry]:
    """Parse ``git stash list`` in the ``%H%x01%gd%x01%cr%x01%s`` format."""
    entries = []
    for line in output.splitlines():
        parts = line.split(STASH_FIELD_SEPARATOR, 3)
        if len(parts) < 4:
            continue
        entries.append(GitStashEntry(
            hash=parts[0],
            name=parts[1],
            relative_time=parts[2],
            message=parts[3],
        ))
    return entries


def parse_remotes(output: str) -> list[GitRemote]:
    """Parse ``git remote -v``."""
    remotes = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 3:
            remotes.append(GitRemote(name=parts[0], url=parts[1], kind=parts[2].strip("()")))
    return remotes


def parse_commit_details(output: str) -> GitCommitDetails:
    """Parse ``git show --name-status`` with the ``%H%n%an%n%ad%n%B`` format."""
    lines = output.splitlines()
    header = lines[:3] + [""] * (3 - len(lines[:3]))
    details = GitCommitDetails(commit=header[0], author=header[1], date=header[2])

    rest = iter(lines[3:])
    message_lines = []
    for line in rest:
        if not line.strip():
            break
        message_lines.append(line)
    details.message = "\n".join(message_lines).strip()

    for line in rest:
        parts = line.strip().split(None, 1)
        if len(parts) < 2:
            continue
        status, path = parts
        details.files.append(GitCommitFileChange(status=status, path=path.strip()))
    return details
