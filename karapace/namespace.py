"""Runtime backend built on unprivileged Linux user namespaces."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .terminal import short_id

logger = logging.getLogger(__name__)

_PROC_ROOT = Path("/proc")
_PID_PATTERN = re.compile(r"\+?[0-9]+")
_PID_MAX = 0xFFFFFFFF
_RUNNING_MARKER = ".running"


@dataclass(frozen=True)
class RuntimeStatus:
    """Whether an environment currently has a live session, and its PID."""

    env_id: str
    running: bool
    pid: int | None = None


def default_store_root() -> Path:
    """Return the store location under the user's home, or a shared fallback."""
    home = os.environ.get("HOME")
    if home is not None:
        return Path(home) / ".local/share/karapace"
    return Path("/tmp/karapace")


def _parse_pid(text: str) -> int | None:
    """Parse an unsigned 32-bit process id, or return None."""
    if not _PID_PATTERN.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _PID_MAX else None


class NamespaceBackend:
    """Runs environments in user namespaces with an overlay filesystem."""

    name = "namespace"

    def __init__(self, store_root: str | os.PathLike[str] | None = None) -> None:
        self.store_root = Path(store_root) if store_root is not None else default_store_root()

    def env_dir(self, env_id: str) -> Path:
        """Return the directory that holds an environment's state."""
        return self.store_root / "env" / env_id

    def available(self) -> bool:
        """Return whether an unprivileged user namespace can be created here."""
        try:
            result = subprocess.run(
                ["unshare", "--user", "--map-root-user", "--fork", "true"],
                capture_output=True,
                check=False,
            )
        except OSError:
            return False
        return result.returncode == 0

    def status(self, env_id: str) -> RuntimeStatus:
        """Report whether the environment has a live session.

        Stale or corrupt session markers are removed as a side effect.
        """
        not_running = RuntimeStatus(env_id=env_id, running=False, pid=None)
        running_file = self.env_dir(env_id) / _RUNNING_MARKER
        if not running_file.exists():
            return not_running

        try:
            content = running_file.read_text()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(
                "failed to read .running file for %s: %s", short_id(env_id), exc
            )
            return not_running

        trimmed = content.strip()
        pid = _parse_pid(trimmed)
        if pid is None:
            if trimmed:
                logger.warning(
                    "corrupt .running file for %s: could not parse PID from '%s'",
                    short_id(env_id),
                    trimmed,
                )
                running_file.unlink(missing_ok=True)
            return not_running

        if not (_PROC_ROOT / str(pid)).exists():
            running_file.unlink(missing_ok=True)
            return not_running
        return RuntimeStatus(env_id=env_id, running=True, pid=pid)