"""Tests for git output parsers."""

from models import GitFileChange
from parsers import (
    parse_branches,
    parse_commit_details,
    parse_graph,
    parse_log,
    parse_remotes,
    parse_stash_list,
    parse_status,
)


class TestParseStatus:
    """Tests for parse_status."""

    def test_branch_with_upstream_and_divergence(self):
        status = parse_status("## main...origin/main [ahead 2, behind 1]\0")

        assert status.branch == "main"
        assert status.upstream == "origin/main"
        assert status.ahead == 2
        assert status.behind == 1
        assert status.detached is False
        assert status.is_clean is True

    def test_branch_without_upstream(self):
        status = parse_status("## feature/x\0")

        assert status.branch == "feature/x"
        assert status.upstream is None
        assert status.ahead == 0
        assert status.behind == 0

    def test_detached_head(self):
        status = parse_status("## HEAD (no branch)\0")

        assert status.detached is True
        assert status.branch is None

    def test_detached_with_upstream_marker(self):
        status = parse_status("## (no branch)...origin/main\0")

        assert status.detached is True
        assert status.branch is None
        assert status.upstream == "origin/main"

    def test_unborn_branch_header(self):
        status = parse_status("## No commits yet on main\0")

        assert status.branch == "main"
        assert status.detached is False

    def test_unborn_branch_with_upstream(self):
        status = parse_status("## No commits yet on main...origin/main\0")

        assert status.branch == "main"
        assert status.upstream == "origin/main"
        assert status.detached is False

    def test_initial_commit_header_with_upstream(self):
        status = parse_status("## Initial commit on dev...origin/dev [behind 2]\0")

        assert status.branch == "dev"
        assert status.upstream == "origin/dev"
        assert status.behind == 2

    def test_branch_name_containing_head_is_not_detached(self):
        status = parse_status("## fix-HEAD-handling...origin/fix-HEAD-handling\0")

        assert status.detached is False
        assert status.branch == "fix-HEAD-handling"

    def test_only_behind(self):
        status = parse_status("## main...origin/main [behind 4]\0")

        assert status.ahead == 0
        assert status.behind == 4

    def test_staged_and_unstaged_entry_appears_in_both(self):
        status = parse_status("## main\0MM src/app.py\0")

        expected = GitFileChange(path="src/app.py", index_status="M", worktree_status="M")
        assert status.staged == [expected]
        assert status.unstaged == [expected]
        assert status.conflicts == []
        assert status.is_clean is False

    def test_index_only_and_worktree_only(self):
        status = parse_status("A  new.txt\0 D gone.txt\0")

        assert [c.path for c in status.staged] == ["new.txt"]
        assert status.staged[0].worktree_status is None
        assert [c.path for c in status.unstaged] == ["gone.txt"]
        assert status.unstaged[0].index_status is None

    def test_conflicts_are_exclusive(self):
        status = parse_status("UU both.txt\0AU added.txt\0DU deleted.txt\0")

        assert [c.path for c in status.conflicts] == ["both.txt", "added.txt", "deleted.txt"]
        assert status.staged == []
        assert status.unstaged == []

    def test_untracked(self):
        status = parse_status("## main\0?? notes.md\0?? build/\0")

        assert status.untracked == ["notes.md", "build/"]
        assert status.staged == []
        assert status.is_clean is False

    def test_rename_takes_next_record(self):
        status = parse_status("R  old_name.py\0new_name.py\0 M other.py\0")

        assert len(status.staged) == 1
        renamed = status.staged[0]
        assert renamed.path == "new_name.py"
        assert renamed.original_path == "old_name.py"
        assert renamed.index_status == "R"
        assert [c.path for c in status.unstaged] == ["other.py"]

    def test_copy_takes_next_record(self):
        status = parse_status("C  a.txt\0b.txt\0")

        assert status.staged[0].path == "b.txt"
        assert status.staged[0].original_path == "a.txt"

    def test_rename_with_arrow_in_path(self):
        status = parse_status(" M old.txt -> new.txt\0")

        assert status.unstaged[0].path == "new.txt"
        assert status.unstaged[0].original_path == "old.txt"

    def test_path_with_spaces(self):
        status = parse_status(" M docs/read me.md\0")

        assert status.unstaged[0].path == "docs/read me.md"

    def test_malformed_input_degrades(self):
        status = parse_status("\0\0M\0AB\0## \0")

        assert status.branch is None
        assert status.staged == []
        assert status.unstaged == []

    def test_empty_output(self):
        status = parse_status("")

        assert status.is_clean is True
        assert status.branch is None

    def test_deterministic(self):
        text = "## main...origin/main [ahead 1]\0MM a\0?? b\0UU c\0R  d\0e\0"
        assert parse_status(text) == parse_status(text)


class TestParseLog:
    """Tests for parse_log."""

    def test_with_decorations(self):
        entries = parse_log("abc1234 (HEAD -> main, origin/main, tag: v1.0) Add feature\n")

        assert len(entries) == 1
        assert entries[0].commit == "abc1234"
        assert entries[0].refs == ["HEAD -> main", "origin/main", "tag: v1.0"]
        assert entries[0].summary == "Add feature"

    def test_without_decorations(self):
        entries = parse_log("abc1234 Fix (minor) bug\ndef5678 Initial commit")

        assert entries[0].refs == []
        assert entries[0].summary == "Fix (minor) bug"
        assert entries[1].commit == "def5678"

    def test_unterminated_decoration(self):
        entries = parse_log("abc1234 (HEAD -> main broken")

        assert entries[0].refs == []
        assert entries[0].summary == "(HEAD -> main broken"

    def test_blank_lines_skipped(self):
        assert parse_log("\n\n") == []


class TestParseGraph:
    """Tests for parse_graph."""

    def test_full_entry(self):
        entries = parse_graph("h1|p1 p2|Alice|2024-01-02T03:04:05+00:00|Merge branch 'x'\n")

        entry = entries[0]
        assert entry.commit == "h1"
        assert entry.parents == ["p1", "p2"]
        assert entry.author == "Alice"
        assert entry.date == "2024-01-02T03:04:05+00:00"
        assert entry.subject == "Merge branch 'x'"

    def test_root_commit_has_no_parents(self):
        assert parse_graph("h0||Bob|2024-01-01|Initial")[0].parents == []

    def test_subject_may_contain_pipes(self):
        assert parse_graph("h|p|a|d|one | two")[0].subject == "one | two"

    def test_missing_trailing_fields(self):
        entry = parse_graph("h2|p1")[0]

        assert entry.author == ""
        assert entry.date == ""
        assert entry.subject == ""


class TestParseBranches:
    """Tests for parse_branches."""

    def test_local_and_remote(self):
        output = "* main\n  feature\n  remotes/origin/HEAD -> origin/main\n  remotes/origin/main\n"
        branches = parse_branches(output)

        assert branches.current == "main"
        assert branches.local == ["main", "feature"]
        assert branches.remote == ["remotes/origin/HEAD -> origin/main", "remotes/origin/main"]

    def test_duplicates_keep_first_but_current_updates(self):
        branches = parse_branches("  main\n* main\n  other\n")

        assert branches.local == ["main", "other"]
        assert branches.current == "main"

    def test_no_current(self):
        branches = parse_branches("  a\n  b\n")

        assert branches.current is None
        assert branches.local == ["a", "b"]


class TestParseStashList:
    """Tests for parse_stash_list."""

    def test_entries(self):
        output = "abc\x01stash@{0}\x012 hours ago\x01WIP on main: tweak\n" \
                 "def\x01stash@{1}\x013 days ago\x01On main: saved"
        entries = parse_stash_list(output)

        assert len(entries) == 2
        assert entries[0].hash == "abc"
        assert entries[0].name == "stash@{0}"
        assert entries[0].relative_time == "2 hours ago"
        assert entries[0].message == "WIP on main: tweak"

    def test_short_lines_dropped(self):
        assert parse_stash_list("abc\x01stash@{0}\x01now\nnot a stash") == []


class TestParseRemotes:
    """Tests for parse_remotes."""

    def test_fetch_and_push(self):
        output = "origin\thttps://example.com/r.git (fetch)\norigin\thttps://example.com/r.git (push)\n"
        remotes = parse_remotes(output)

        assert [(r.name, r.url, r.kind) for r in remotes] == [
            ("origin", "https://example.com/r.git", "fetch"),
            ("origin", "https://example.com/r.git", "push"),
        ]

    def test_incomplete_lines_dropped(self):
        assert parse_remotes("origin\n\n") == []


class TestParseCommitDetails:
    """Tests for parse_commit_details."""

    def test_full_output(self):
        output = (
            "0123abcd\n"
            "Alice\n"
            "2024-05-06T07:08:09+02:00\n"
            "Add parser\n"
            "\n"
            "Longer body text.\n"
            "M\tparsers.py\n"
            "A\tdocs/read me.md\n"
        )
        details = parse_commit_details(output)

        assert details.commit == "0123abcd"
        assert details.author == "Alice"
        assert details.date == "2024-05-06T07:08:09+02:00"
        assert details.message == "Add parser"
        assert [(f.status, f.path) for f in details.files] == [
            ("Longer", "body text."),
            ("M", "parsers.py"),
            ("A", "docs/read me.md"),
        ]

    def test_message_then_files(self):
        output = "h\na\nd\nSubject line\nsecond line\n\nD\told.txt\n\nR100\tx.txt\ty.txt\n"
        details = parse_commit_details(output)

        assert details.message == "Subject line\nsecond line"
        assert details.files[0].status == "D"
        assert details.files[0].path == "old.txt"
        assert details.files[1].status == "R100"
        assert details.files[1].path == "x.txt\ty.txt"

    def test_truncated_output(self):
        details = parse_commit_details("onlyhash")

        assert details.commit == "onlyhash"
        assert details.author == ""
        assert details.message == ""
        assert details.files == []
