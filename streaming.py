"""Long-running git commands delivered as asynchronous stream events.

Each invocation runs on its own background thread which owns the child's
output pipes and publishes :class:`StreamEvent` records on a shared
:class:`GitEventBus`. Subscribers filter by correlation id.
"""

import os
import subprocess
import threading
import uuid
from enum import Enum
from typing import Callable, IO, List

from PySide6.QtCore import QObject, Qt, Signal

from credentials import PreparedAuth, merge_auth_env, prepare_auth, DEFAULT_ASKPASS_PREFIX
from error_handler import handle_git_error
from git_utils import build_command, sanitize_arg
from logging_config import get_logger, log_exception
from metrics import record_streaming_command
from models import (
    CommandHandle,
    InvalidArgumentError,
    SpawnError,
    StreamEvent,
    StreamEventKind,
    StreamRequest,
)

logger = get_logger(__name__)


class GitEventBus(QObject):
    """Process-wide channel for stream events of every invocation."""

    stream_event = Signal(object)  # StreamEvent

    def publish(self, event: StreamEvent):
        self.stream_event.emit(event)

    def subscribe(
        self,
        callback: Callable[[StreamEvent], None],
        command_id: str | None = None,
        connection_type: Qt.ConnectionType = Qt.ConnectionType.DirectConnection,
    ) -> "StreamSubscription":
        """Deliver events to ``callback``, optionally only those of one invocation.

        Events are emitted from worker threads. The default direct connection
        runs ``callback`` on the emitting worker thread and needs no event
        loop, so the callback must be thread-safe. Pass ``QueuedConnection``
        (or ``AutoConnection``) to have events delivered on the thread that
        owns the bus instead; that thread must be running a Qt event loop.
        """
        def deliver(event: StreamEvent):
            if command_id is None or event.command_id == command_id:
                callback(event)

        self.stream_event.connect(deliver, connection_type)
        return StreamSubscription(self, deliver)


class StreamSubscription:
    """Handle returned by :meth:`GitEventBus.subscribe`."""

    def __init__(self, bus: GitEventBus, handler: Callable[[StreamEvent], None]):
        self._bus = bus
        self._handler = handler
        self._closed = False

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self._bus.stream_event.disconnect(self._handler)
        except (RuntimeError, TypeError) as e:
            logger.debug(f"Stream subscription already disconnected: {e}")


class StreamState(Enum):
    SPAWNING = "spawning"
    RUNNING = "running"
    COMPLETED = "completed"
    SPAWN_FAILED = "spawn_failed"


class _Invocation:
    """Book-keeping for one streaming run."""

    def __init__(self, command_id: str, command: List[str], cwd: str, env: dict, prepared: PreparedAuth):
        self.command_id = command_id
        self.command = command
        self.cwd = cwd
        self.env = env
        self.prepared = prepared
        self.state = StreamState.SPAWNING
        self.done = threading.Event()
        self.terminal_sent = False


class GitStreamRunner:
    """Starts streaming git commands and returns their correlation id immediately.

    There is no cancellation: a child that never exits never produces a
    terminal event.
    """

    def __init__(self, service, bus: GitEventBus, askpass_prefix: str = DEFAULT_ASKPASS_PREFIX):
        self.service = service
        self.bus = bus
        self.askpass_prefix = askpass_prefix
        self._lock = threading.Lock()
        self._invocations: dict[str, _Invocation | None] = {}

    def start(self, request: StreamRequest, args: List[str]) -> CommandHandle:
        """Validate, reserve a correlation id and launch the background task.

        Argument, path and credential failures raise before anything starts.
        A spawn failure is reported later as a single ``error`` event.
        """
        args = list(args)
        if request.remote is not None:
            args.append(sanitize_arg(request.remote, "remote"))
        if request.branch is not None:
            args.append(sanitize_arg(request.branch, "branch"))

        config = self.service.prepare(request.repository_path)
        command_id = request.command_id or str(uuid.uuid4())

        with self._lock:
            if command_id in self._invocations:
                raise InvalidArgumentError(f"command id {command_id!r} is already running")
            # Reserve the id before credentials are prepared so a clash never leaks a helper.
            self._invocations[command_id] = None

        try:
            prepared = (
                prepare_auth(request.auth, self.askpass_prefix)
                if request.auth is not None else PreparedAuth()
            )
        except Exception:
            with self._lock:
                self._invocations.pop(command_id, None)
            raise

        invocation = _Invocation(
            command_id=command_id,
            command=build_command(config.executable, args),
            cwd=str(config.working_dir),
            env=merge_auth_env(dict(os.environ), prepared.env),
            prepared=prepared,
        )
        with self._lock:
            self._invocations[command_id] = invocation

        record_streaming_command(args)
        logger.info(f"git:stream {command_id} {' '.join(args)}")
        worker = threading.Thread(
            target=self._run,
            args=(invocation,),
            name=f"git-stream-{command_id[:8]}",
            daemon=True,
        )
        worker.start()
        return CommandHandle(command_id=command_id)

    def is_running(self, command_id: str) -> bool:
        with self._lock:
            return command_id in self._invocations

    def active_ids(self) -> list[str]:
        with self._lock:
            return list(self._invocations)

    def wait(self, command_id: str, timeout: float | None = None) -> bool:
        """Block until the invocation has published its terminal event and cleaned up."""
        with self._lock:
            invocation = self._invocations.get(command_id)
        if invocation is None:
            return True
        return invocation.done.wait(timeout)

    def _run(self, invocation: _Invocation):
        try:
            try:
                proc = subprocess.Popen(
                    invocation.command,
                    cwd=invocation.cwd,
                    env=invocation.env,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except OSError as e:
                error = SpawnError(str(e))
                invocation.state = StreamState.SPAWN_FAILED
                handle_git_error(error, operation=" ".join(invocation.command[1:]), repo_path=invocation.cwd)
                self._finish(invocation, StreamEvent(
                    command_id=invocation.command_id,
                    kind=StreamEventKind.ERROR,
                    data=str(error),
                ))
                return

            invocation.state = StreamState.RUNNING
            pipe_errors: list[str] = []
            pumps = [
                threading.Thread(
                    target=self._pump,
                    args=(invocation, proc.stdout, StreamEventKind.STDOUT, pipe_errors),
                    daemon=True,
                ),
                threading.Thread(
                    target=self._pump,
                    args=(invocation, proc.stderr, StreamEventKind.STDERR, pipe_errors),
                    daemon=True,
                ),
            ]
            for pump in pumps:
                pump.start()
            for pump in pumps:
                pump.join()
            returncode = proc.wait()

            invocation.state = StreamState.COMPLETED
            if pipe_errors:
                terminal = StreamEvent(
                    command_id=invocation.command_id,
                    kind=StreamEventKind.ERROR,
                    data=pipe_errors[0],
                )
            else:
                terminal = StreamEvent(
                    command_id=invocation.command_id,
                    kind=StreamEventKind.COMPLETED,
                    exit_code=returncode if returncode >= 0 else None,
                    success=returncode == 0,
                )
                if returncode == 0:
                    logger.info(f"git:ok stream {invocation.command_id}")
                else:
                    logger.error(f"git:exit code={returncode} stream {invocation.command_id}")
            self._finish(invocation, terminal)
        except Exception as e:
            log_exception(logger, f"Streaming task {invocation.command_id} failed: {e}", command_id=invocation.command_id)
            self._finish(invocation, StreamEvent(
                command_id=invocation.command_id,
                kind=StreamEventKind.ERROR,
                data=str(e),
            ))

    def _pump(self, invocation: _Invocation, stream: IO[bytes], kind: StreamEventKind, errors: list):
        try:
            for raw in iter(stream.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                self.bus.publish(StreamEvent(command_id=invocation.command_id, kind=kind, data=line))
        except (OSError, ValueError) as e:
            errors.append(f"{kind.value} pipe failed: {e}")
        finally:
            stream.close()

    def _finish(self, invocation: _Invocation, event: StreamEvent):
        """Publish the terminal event once, then release credentials and the id."""
        if invocation.terminal_sent:
            return
        invocation.terminal_sent = True
        try:
            self.bus.publish(event)
        finally:
            invocation.prepared.release()
            with self._lock:
                self._invocations.pop(invocation.command_id, None)
            invocation.done.set()
