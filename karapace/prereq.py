"""Checks for the host tools each runtime backend depends on."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass

_CURL_HINT = "zypper install curl | apt install curl | dnf install curl | pacman -S curl"


@dataclass(frozen=True)
class MissingPrereq:
    """A missing prerequisite with actionable install instructions."""

    name: str
    purpose: str
    install_hint: str

    def __str__(self) -> str:
        return f"  - {self.name}: {self.purpose} (install: {self.install_hint})"


def command_exists(name: str) -> bool:
    """Return whether an executable called ``name`` is on the PATH."""
    return shutil.which(name) is not None


def user_namespaces_work() -> bool:
    """Return whether an unprivileged user namespace can be created."""
    try:
        result = subprocess.run(
            ["unshare", "--user", "--map-root-user", "--fork", "true"],
            capture_output=True,
            check=False,
        )
    except OSError:
        return False
    return result.returncode == 0


def check_namespace_prereqs() -> list[MissingPrereq]:
    """Return what the namespace backend lacks; empty when all is present."""
    missing = []
    if not command_exists("unshare"):
        missing.append(
            MissingPrereq(
                "unshare",
                "user namespace isolation",
                "part of util-linux (usually pre-installed)",
            )
        )
    elif not user_namespaces_work():
        missing.append(
            MissingPrereq(
                "user namespaces",
                "unprivileged container isolation",
                "enable CONFIG_USER_NS=y in kernel, or: "
                "sysctl kernel.unprivileged_userns_clone=1",
            )
        )
    if not command_exists("fuse-overlayfs"):
        missing.append(
            MissingPrereq(
                "fuse-overlayfs",
                "overlay filesystem for writable container layers",
                "zypper install fuse-overlayfs | apt install fuse-overlayfs | "
                "dnf install fuse-overlayfs | pacman -S fuse-overlayfs",
            )
        )
    if not command_exists("curl"):
        missing.append(MissingPrereq("curl", "downloading container images", _CURL_HINT))
    return missing


def check_oci_prereqs() -> list[MissingPrereq]:
    """Return what the OCI backend lacks; empty when all is present."""
    missing = []
    if not any(command_exists(rt) for rt in ("crun", "runc", "youki")):
        missing.append(
            MissingPrereq(
                "OCI runtime",
                "OCI container execution",
                "install one of: crun, runc, or youki",
            )
        )
    if not command_exists("curl"):
        missing.append(MissingPrereq("curl", "downloading container images", _CURL_HINT))
    return missing


def format_missing(missing: Iterable[MissingPrereq]) -> str:
    """Format missing prerequisites into a user-facing message."""
    lines = "".join(f"{item}\n" for item in missing)
    return (
        "missing prerequisites:\n"
        + lines
        + "\nKarapace requires these tools to create container environments."
    )