# karapace

Building blocks for running isolated Linux environments: a security policy
for mounts, devices, environment variables and resource limits, checks for
the host tools the runtimes need, terminal markers for container sessions,
and status queries for two runtime backends — unprivileged user namespaces,
or an OCI runtime (`crun`, `runc` or `youki`).

The package has no third-party dependencies.

## Installation

```sh
pip install .
```

Tests need pytest:

```sh
pip install ".[test]"
pytest
```

## Security policy

`karapace.security.SecurityPolicy` is a dataclass. By default it allows
mounts under `/home` and `/tmp`, no devices, no network, no GPU or audio,
passes through `TERM`, `LANG`, `HOME`, `USER`, `PATH`, `SHELL` and
`XDG_RUNTIME_DIR`, denies `SSH_AUTH_SOCK`, `GPG_AGENT_INFO`,
`AWS_SECRET_ACCESS_KEY` and `DOCKER_HOST`, and sets no CPU or memory limits.

The policy methods take a manifest: any object with the attributes
`hardware_gpu`, `hardware_audio`, `network_isolation`, `cpu_shares`,
`memory_limit_mb` (an int or `None`) and `mounts` (items with a `host_path`).

```python
from types import SimpleNamespace

from karapace.errors import KarapaceRuntimeError
from karapace.security import SecurityPolicy, canonicalize_logical

canonicalize_logical("/home/../etc/passwd")   # "/etc/passwd"

manifest = SimpleNamespace(
    hardware_gpu=True,
    hardware_audio=False,
    network_isolation=False,
    cpu_shares=1024,
    memory_limit_mb=None,
    mounts=[SimpleNamespace(host_path="/home/user/project")],
)

policy = SecurityPolicy.from_manifest(manifest)
try:
    policy.validate_mounts(manifest)
    policy.validate_devices(manifest)
    policy.validate_resource_limits(manifest)
except KarapaceRuntimeError as exc:
    print(exc)

env = policy.filter_env_vars()   # list of (name, value) pairs from os.environ
```

- `from_manifest` allows exactly the hardware the manifest asks for
  (`/dev/dri` for GPU, `/dev/snd` for audio), allows network unless the
  manifest isolates it, and takes the manifest's CPU and memory values as
  the limits.
- `validate_mounts` checks only absolute host paths; they are normalised
  with `canonicalize_logical` (without touching the filesystem) and must
  start with an allowed prefix, otherwise `MountDeniedError` is raised.
  Relative paths are always accepted.
- `validate_devices` raises `DeviceDeniedError` for GPU or audio the policy
  does not allow.
- `validate_resource_limits` raises `PolicyViolationError` when a requested
  value exceeds a set limit.

## Errors

`karapace.errors` defines `KarapaceRuntimeError` and its subclasses
`ExecFailedError`, `BackendUnavailableError`, `MountDeniedError`,
`DeviceDeniedError` and `PolicyViolationError`. Each carries its text in
`message`.

## Prerequisites

```python
from karapace.prereq import check_namespace_prereqs, check_oci_prereqs, format_missing

missing = check_namespace_prereqs()
if missing:
    print(format_missing(missing))
```

The namespace backend needs `unshare` with working unprivileged user
namespaces, `fuse-overlayfs` and `curl`; the OCI backend needs one of
`crun`, `runc` or `youki`, and `curl`. Each missing item is a
`MissingPrereq` with `name`, `purpose` and `install_hint`.
`command_exists` and `user_namespaces_work` are available on their own.

## Backends

```python
from karapace.namespace import NamespaceBackend
from karapace.oci import OciBackend

backend = NamespaceBackend("/var/tmp/karapace-store")
backend.available()           # True when `unshare --user --map-root-user` works
backend.env_dir("abc123")     # <store>/env/abc123
backend.status("abc123")      # RuntimeStatus(env_id="abc123", running=False, pid=None)

oci = OciBackend("/var/tmp/karapace-store")
OciBackend.find_runtime()     # "crun", "runc", "youki" or None
oci.status("abc123")          # asks the runtime for container "karapace-abc123"
```

Without a store root, backends use `~/.local/share/karapace`, or
`/tmp/karapace` when `HOME` is not set (`default_store_root`).

`NamespaceBackend.status` reads the PID from the environment's `.running`
file and reports it as running only while `/proc/<pid>` exists; a stale or
unparsable file is removed. `OciBackend.status` raises
`BackendUnavailableError` when no OCI runtime is found, reports "not
running" when the runtime says the container does not exist, and raises
`ExecFailedError` for other runtime failures or unreadable state output.

`karapace.oci.generate_oci_spec(uid, gid, home, username, hostname,
env_vars, bind_mounts, network_isolation)` renders an OCI bundle
`config.json` for a login shell (`/bin/bash -l`), with the standard
`/proc`, `/dev`, `/sys` mounts, the home directory, `/etc/resolv.conf`, and
any `BindMount(source, target, read_only)` entries.

## Terminal markers

When stderr is a terminal, `karapace.terminal.emit_container_push` and
`emit_container_pop` write OSC 777 container markers, and
`print_container_banner` / `print_container_exit` print short entry and exit
messages using the 12-character `short_id`. When stderr is not a terminal
they do nothing.

## What this package does not do

It does not download base images, parse manifest files, install packages,
mount overlays, or build, enter, run commands in or destroy environments.
The backends offer only their store layout, availability check and status
query, and there is no command-line program.