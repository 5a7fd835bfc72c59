#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
gitbridge command line entry point.

Drives the same operations the host application calls and prints their
results as JSON. Streaming commands print one JSON event per line.
"""

import argparse
import json
import sys
import threading
import uuid

from PySide6.QtCore import QCoreApplication, Qt

import operations
from config import get_graph_limit, get_log_limit, load_config, save_config, set_git_path
from credentials import SshCommandAuth, TokenAuth
from error_handler import error_response, handle_git_error
from git_service import GitService
from logging_config import configure_qt_logging, get_logger, setup_logging
from metrics import initialize_metrics
from models import GitError, StreamEventKind, to_payload
from streaming import GitEventBus, GitStreamRunner

logger = get_logger(__name__)

_app = None


def _print_json(value):
    print(json.dumps(to_payload(value), indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gitbridge", description="Drive git and print structured results.")
    parser.add_argument("--log-level", default=None, help="override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="show detected/configured git executable")

    set_path = sub.add_parser("set-path", help="set or clear the git executable override")
    set_path.add_argument("path", nargs="?", default=None)

    for name in ("detect", "status", "log", "graph", "branches", "stashes", "remotes"):
        p = sub.add_parser(name)
        p.add_argument("repo")

    show = sub.add_parser("show", help="commit details")
    show.add_argument("repo")
    show.add_argument("commit")

    run = sub.add_parser("run", help="pass arguments straight to git")
    run.add_argument("repo")
    run.add_argument("args", nargs=argparse.REMAINDER)

    for name in ("fetch", "pull", "push"):
        p = sub.add_parser(name)
        p.add_argument("repo")
        p.add_argument("--remote")
        p.add_argument("--branch")
        p.add_argument("--token", help="HTTPS token (username defaults to 'git')")
        p.add_argument("--username")
        p.add_argument("--ssh-command")
        p.add_argument("--command-id")
    return parser


def _auth_from_args(args):
    if args.ssh_command:
        return SshCommandAuth(command=args.ssh_command)
    if args.token:
        return TokenAuth(token=args.token, username=args.username)
    return None


def _run_streaming(runner: GitStreamRunner, bus: GitEventBus, args) -> int:
    # The id is fixed up front so the subscription exists before the first event.
    command_id = args.command_id or str(uuid.uuid4())
    request = operations.stream_request(
        args.repo,
        remote=args.remote,
        branch=args.branch,
        auth=_auth_from_args(args),
        command_id=command_id,
    )
    start = {"fetch": operations.git_fetch_all, "pull": operations.git_pull, "push": operations.git_push}
    finished = threading.Event()
    result = {"code": 1}

    def on_event(event):
        print(json.dumps(to_payload(event), ensure_ascii=False), flush=True)
        if event.kind == StreamEventKind.COMPLETED:
            result["code"] = 0 if event.success else (event.exit_code or 1)
        if event.is_terminal:
            finished.set()

    subscription = bus.subscribe(on_event, command_id, Qt.ConnectionType.DirectConnection)
    try:
        start[args.command](runner, request)
        finished.wait()
        runner.wait(command_id)
    finally:
        subscription.close()
    return result["code"]


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config()
    setup_logging(level=args.log_level or cfg.get("log_level", "INFO"),
                  log_to_file=True, log_to_console=True, json_format=bool(cfg.get("log_json")))
    initialize_metrics()

    global _app
    _app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    configure_qt_logging()
    _app.setApplicationName("gitbridge")

    service = GitService()
    service.apply_config(cfg)
    bus = GitEventBus()
    runner = GitStreamRunner(service, bus, askpass_prefix=cfg["askpass_prefix"])

    logger.debug(f"gitbridge command: {args.command}")
    try:
        if args.command == "info":
            _print_json(operations.git_path_info(service))
        elif args.command == "set-path":
            info = operations.git_set_path(service, args.path)
            set_git_path(cfg, args.path)
            save_config(cfg)
            _print_json(info)
        elif args.command == "detect":
            _print_json(operations.git_detect_repository(args.repo))
        elif args.command == "status":
            _print_json(operations.git_status(service, args.repo))
        elif args.command == "log":
            _print_json(operations.git_log(service, args.repo, get_log_limit(cfg)))
        elif args.command == "graph":
            _print_json(operations.git_graph(service, args.repo, get_graph_limit(cfg)))
        elif args.command == "branches":
            _print_json(operations.git_branches(service, args.repo))
        elif args.command == "stashes":
            _print_json(operations.git_stash_list(service, args.repo))
        elif args.command == "remotes":
            _print_json(operations.git_remote_list(service, args.repo))
        elif args.command == "show":
            _print_json(operations.git_commit_details(service, args.repo, args.commit))
        elif args.command == "run":
            result = operations.git_run(service, args.repo, args.args)
            sys.stdout.write(result.stdout)
            sys.stderr.write(result.stderr)
            return result.code
        else:
            return _run_streaming(runner, bus, args)
    except GitError as e:
        handle_git_error(e, operation=args.command, repo_path=getattr(args, "repo", None))
        print(json.dumps(error_response(e)), file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
