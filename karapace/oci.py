"""Runtime backend that hands environments to an OCI runtime (crun, runc or youki)."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import BackendUnavailableError, ExecFailedError
from .namespace import RuntimeStatus, default_store_root
from .terminal import short_id

RUNTIME_CANDIDATES = ("crun", "runc", "youki")
_PID_MAX = 0xFFFFFFFF
_NOT_FOUND_MARKERS = ("does not exist", "not found", "no such file or directory")

_STANDARD_MOUNTS = (
    '{"destination":"/proc","type":"proc","source":"proc"}',
    '{"destination":"/dev","type":"tmpfs","source":"tmpfs",'
    '"options":["nosuid","strictatime","mode=755","size=65536k"]}',
    '{"destination":"/dev/pts","type":"devpts","source":"devpts",'
    '"options":["nosuid","noexec","newinstance","ptmxmode=0666","mode=0620"]}',
    '{"destination":"/dev/shm","type":"tmpfs","source":"shm",'
    '"options":["nosuid","noexec","nodev","mode=1777","size=65536k"]}',
    '{"destination":"/sys","type":"sysfs","source":"sysfs",'
    '"options":["nosuid","noexec","nodev","ro"]}',
)

_RESOLV_CONF_MOUNT = (
    '{"destination":"/etc/resolv.conf","type":"bind","source":"/etc/resolv.conf",'
    '"options":["bind","ro"]}'
)


@dataclass(frozen=True)
class BindMount:
    """A host path made visible inside the container."""

    source: str | os.PathLike[str]
    target: str | os.PathLike[str]
    read_only: bool = False


def _container_id(env_id: str) -> str:
    return f"karapace-{short_id(env_id)}"


def generate_oci_spec(
    uid: int,
    gid: int,
    home: str | os.PathLike[str],
    username: str,
    hostname: str,
    env_vars: Iterable[tuple[str, str]],
    bind_mounts: Iterable[BindMount],
    network_isolation: bool,
) -> str:
    """Render the ``config.json`` of an OCI bundle for an interactive login shell."""
    home_str = str(home)

    env_entries = [
        f'"HOME={home_str}"',
        f'"USER={username}"',
        f'"HOSTNAME={hostname}"',
        '"TERM=xterm-256color"',
        '"KARAPACE_ENV=1"',
    ]
    for key, value in env_vars:
        escaped = value.replace('"', '\\"')
        env_entries.append(f'"{key}={escaped}"')

    mounts = list(_STANDARD_MOUNTS)
    mounts.append(
        f'{{"destination":"{home_str}","type":"bind","source":"{home_str}",'
        f'"options":["rbind","rw"]}}'
    )
    mounts.append(_RESOLV_CONF_MOUNT)
    for bind in bind_mounts:
        opts = '"rbind","ro"' if bind.read_only else '"rbind","rw"'
        mounts.append(
            f'{{"destination":"{bind.target}","type":"bind","source":"{bind.source}",'
            f'"options":[{opts}]}}'
        )

    mounts_json = ",".join(mounts)
    env_json = ",".join(env_entries)
    network_ns = ',{"type":"network"}' if network_isolation else ""

    return f"""{{
  "ociVersion": "1.0.2",
  "process": {{
    "terminal": true,
    "user": {{ "uid": {uid}, "gid": {gid} }},
    "args": ["/bin/bash", "-l"],
    "env": [{env_json}],
    "cwd": "{home_str}"
  }},
  "root": {{
    "path": "rootfs",
    "readonly": false
  }},
  "hostname": "{hostname}",
  "mounts": [{mounts_json}],
  "linux": {{
    "namespaces": [
      {{"type":"pid"}},
      {{"type":"mount"}},
      {{"type":"ipc"}},
      {{"type":"uts"}}
      {network_ns}
    ],
    "uidMappings": [{{ "containerID": 0, "hostID": {uid}, "size": 1 }}],
    "gidMappings": [{{ "containerID": 0, "hostID": {gid}, "size": 1 }}]
  }}
}}"""


def _state_pid(state: object) -> int | None:
    """Extract a live PID from a runtime's ``state`` document."""
    if not isinstance(state, dict):
        return None
    pid = state.get("pid")
    if isinstance(pid, bool) or not isinstance(pid, int):
        return None
    if pid <= 0 or pid > _PID_MAX:
        return None
    return pid


class OciBackend:
    """Runs environments through an OCI-compliant container runtime."""

    name = "oci"

    def __init__(self, store_root: str | os.PathLike[str] | None = None) -> None:
        self.store_root = Path(store_root) if store_root is not None else default_store_root()

    @staticmethod
    def find_runtime() -> str | None:
        """Return the first working OCI runtime on the PATH, or None."""
        for candidate in RUNTIME_CANDIDATES:
            try:
                result = subprocess.run(
                    [candidate, "--version"], capture_output=True, check=False
                )
            except OSError:
                continue
            if result.returncode == 0:
                return candidate
        return None

    def env_dir(self, env_id: str) -> Path:
        """Return the directory that holds an environment's state."""
        return self.store_root / "env" / env_id

    def available(self) -> bool:
        """Return whether an OCI runtime can be found."""
        return self.find_runtime() is not None

    def status(self, env_id: str) -> RuntimeStatus:
        """Ask the OCI runtime whether the environment's container is running."""
        runtime = self.find_runtime()
        if runtime is None:
            raise BackendUnavailableError("no OCI runtime found (crun/runc/youki)")

        try:
            result = subprocess.run(
                [runtime, "state", _container_id(env_id)],
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise ExecFailedError(f"{runtime} state failed: {exc}") from exc

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            lowered = stderr.lower()
            if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
                return RuntimeStatus(env_id=env_id, running=False, pid=None)
            raise ExecFailedError(f"{runtime} state failed: {stderr.strip()}")

        try:
            state = json.loads(result.stdout)
        except ValueError as exc:
            raise ExecFailedError(
                f"failed to parse {runtime} state output: {exc}"
            ) from exc

        pid = _state_pid(state)
        return RuntimeStatus(env_id=env_id, running=pid is not None, pid=pid)