"""Security policy checks for mounts, devices, environment and resources."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from .errors import DeviceDeniedError, MountDeniedError, PolicyViolationError


def canonicalize_logical(path: str) -> str:
    """Resolve ``.`` and ``..`` in an absolute path without touching the filesystem."""
    parts: list[str] = []
    for component in path.split("/"):
        if component in ("", "."):
            continue
        if component == "..":
            if parts:
                parts.pop()
        else:
            parts.append(component)
    return "/" + "/".join(parts)


def _default_allowed_env_vars() -> list[str]:
    return ["TERM", "LANG", "HOME", "USER", "PATH", "SHELL", "XDG_RUNTIME_DIR"]


def _default_denied_env_vars() -> list[str]:
    return ["SSH_AUTH_SOCK", "GPG_AGENT_INFO", "AWS_SECRET_ACCESS_KEY", "DOCKER_HOST"]


def _format_list(items: list[str]) -> str:
    return "[" + ", ".join(f'"{item}"' for item in items) + "]"


@dataclass
class SecurityPolicy:
    """What an environment is allowed to mount, access and consume."""

    allowed_mount_prefixes: list[str] = field(default_factory=lambda: ["/home", "/tmp"])
    allowed_devices: list[str] = field(default_factory=list)
    allow_network: bool = False
    allow_gpu: bool = False
    allow_audio: bool = False
    allowed_env_vars: list[str] = field(default_factory=_default_allowed_env_vars)
    denied_env_vars: list[str] = field(default_factory=_default_denied_env_vars)
    max_cpu_shares: int | None = None
    max_memory_mb: int | None = None

    @classmethod
    def from_manifest(cls, manifest: Any) -> SecurityPolicy:
        """Derive a policy that permits what the manifest declares."""
        allowed_devices = []
        if manifest.hardware_gpu:
            allowed_devices.append("/dev/dri")
        if manifest.hardware_audio:
            allowed_devices.append("/dev/snd")
        return cls(
            allow_gpu=manifest.hardware_gpu,
            allow_audio=manifest.hardware_audio,
            allow_network=not manifest.network_isolation,
            allowed_devices=allowed_devices,
            max_cpu_shares=manifest.cpu_shares,
            max_memory_mb=manifest.memory_limit_mb,
        )

    def validate_mounts(self, manifest: Any) -> None:
        """Raise MountDeniedError for an absolute mount outside the allowed prefixes."""
        for mount in manifest.mounts:
            host = mount.host_path
            if not host.startswith("/"):
                continue
            canonical = canonicalize_logical(host)
            if not any(canonical.startswith(p) for p in self.allowed_mount_prefixes):
                raise MountDeniedError(
                    f"mount '{host}' (resolved: {canonical}) is not under any allowed "
                    f"prefix: {_format_list(self.allowed_mount_prefixes)}"
                )

    def validate_devices(self, manifest: Any) -> None:
        """Raise DeviceDeniedError if the manifest asks for hardware the policy forbids."""
        if manifest.hardware_gpu and not self.allow_gpu:
            raise DeviceDeniedError("GPU access requested but not allowed by policy")
        if manifest.hardware_audio and not self.allow_audio:
            raise DeviceDeniedError("audio access requested but not allowed by policy")

    def filter_env_vars(self) -> list[tuple[str, str]]:
        """Return the allowed, non-denied variables present in the current environment."""
        return [
            (key, os.environ[key])
            for key in self.allowed_env_vars
            if key not in self.denied_env_vars and key in os.environ
        ]

    def validate_resource_limits(self, manifest: Any) -> None:
        """Raise PolicyViolationError if requested resources exceed the policy."""
        req, limit = manifest.cpu_shares, self.max_cpu_shares
        if req is not None and limit is not None and req > limit:
            raise PolicyViolationError(
                f"requested CPU shares {req} exceeds policy max {limit}"
            )
        req, limit = manifest.memory_limit_mb, self.max_memory_mb
        if req is not None and limit is not None and req > limit:
            raise PolicyViolationError(
                f"requested memory {req}MB exceeds policy max {limit}MB"
            )