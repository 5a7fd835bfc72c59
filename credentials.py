"""Short-lived credentials for a single git invocation.

Token and username/password auth are delivered through a ``GIT_ASKPASS``
hook script written to a uniquely named temporary file. The script itself
holds no secret: it echoes environment variables that exist only in the
spawned child's environment. The temporary file must outlive the child,
because git runs the hook while it is working, so callers release the
:class:`PreparedAuth` only after the process has exited.
"""

import os
import sys
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from logging_config import get_logger
from models import CredentialError

logger = get_logger(__name__)

USERNAME_ENV = "GITBRIDGE_GIT_USERNAME"
PASSWORD_ENV = "GITBRIDGE_GIT_PASSWORD"
DEFAULT_TOKEN_USERNAME = "git"
DEFAULT_ASKPASS_PREFIX = "gitbridge-askpass-"

_POSIX_ASKPASS = f"""#!/bin/sh
case "$1" in
  *Username* ) printf '%s\\n' "${USERNAME_ENV}" ;;
  *username* ) printf '%s\\n' "${USERNAME_ENV}" ;;
  * ) printf '%s\\n' "${PASSWORD_ENV}" ;;
esac
"""

_WINDOWS_ASKPASS = f"""@echo off
set prompt=%1
echo %prompt%| findstr /I "Username" >nul
if %errorlevel%==0 (
  echo %{USERNAME_ENV}%
) else (
  echo %{PASSWORD_ENV}%
)
"""


@dataclass(frozen=True)
class TokenAuth:
    token: str
    username: str | None = None


@dataclass(frozen=True)
class UserPasswordAuth:
    username: str
    password: str


@dataclass(frozen=True)
class SshCommandAuth:
    command: str


GitAuth = Union[TokenAuth, UserPasswordAuth, SshCommandAuth]


@dataclass
class PreparedAuth:
    """Environment for the child plus temp files to delete once it has exited."""

    env: dict[str, str] = field(default_factory=dict)
    cleanup: list[Path] = field(default_factory=list)
    _released: bool = field(default=False, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self):
        """Delete the ephemeral files. Only the first call has any effect."""
        with self._lock:
            if self._released:
                return
            self._released = True
            paths, self.cleanup = self.cleanup, []
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove credential helper {path}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()


def auth_from_dict(data: dict | None) -> GitAuth | None:
    """Build an auth descriptor from the host's tagged form, e.g. ``{"kind": "token", "token": ...}``."""
    if data is None:
        return None
    kind = data.get("kind")
    try:
        if kind == "token":
            return TokenAuth(token=data["token"], username=data.get("username"))
        if kind == "user_password":
            return UserPasswordAuth(username=data["username"], password=data["password"])
        if kind == "ssh_command":
            return SshCommandAuth(command=data["command"])
    except KeyError as e:
        raise CredentialError(f"auth descriptor of kind {kind!r} is missing {e.args[0]!r}") from e
    raise CredentialError(f"unknown auth kind: {kind!r}")


def prepare_auth(auth: GitAuth, prefix: str = DEFAULT_ASKPASS_PREFIX) -> PreparedAuth:
    """Turn an auth descriptor into child environment variables and cleanup handles."""
    if isinstance(auth, TokenAuth):
        return _prepare_askpass(auth.username or DEFAULT_TOKEN_USERNAME, auth.token, prefix)
    if isinstance(auth, UserPasswordAuth):
        return _prepare_askpass(auth.username, auth.password, prefix)
    if isinstance(auth, SshCommandAuth):
        if not auth.command.strip():
            raise CredentialError("SSH command override must not be empty")
        return PreparedAuth(env={"GIT_SSH_COMMAND": auth.command})
    raise TypeError(f"unsupported auth descriptor: {type(auth).__name__}")


def merge_auth_env(base: dict[str, str], extra: dict[str, str]) -> dict[str, str]:
    """Return ``base`` overlaid with ``extra``; neither input is modified."""
    merged = dict(base)
    merged.update(extra)
    return merged


def _prepare_askpass(username: str, secret: str, prefix: str) -> PreparedAuth:
    if "\0" in username or "\0" in secret:
        raise CredentialError("credential values may not contain null bytes")

    script = _write_askpass_script(prefix)
    env = {
        USERNAME_ENV: username,
        PASSWORD_ENV: secret,
        "GIT_TERMINAL_PROMPT": "0",
        "GIT_ASKPASS": str(script),
    }
    logger.debug(f"Prepared askpass helper {script.name}")
    return PreparedAuth(env=env, cleanup=[script])


def _write_askpass_script(prefix: str) -> Path:
    windows = sys.platform.startswith("win")
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=".cmd" if windows else "")
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\r\n" if windows else "\n") as f:
            f.write(_WINDOWS_ASKPASS if windows else _POSIX_ASKPASS)
        if os.name == "posix":
            os.chmod(path, 0o700)
    except OSError:
        path.unlink(missing_ok=True)
        raise
    return path
