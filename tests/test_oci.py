import json
import stat

import pytest

from karapace.errors import BackendUnavailableError, ExecFailedError
from karapace.oci import BindMount, OciBackend, generate_oci_spec

VERSION_OK = 'if [ "$1" = "--version" ]; then\n  echo test-runtime\n  exit 0\nfi\n'


def _write_script(directory, name, body):
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_bin(tmp_path, monkeypatch):
    directory = tmp_path / "bin"
    directory.mkdir()
    monkeypatch.setenv("PATH", str(directory))
    return directory


def _crun_with_state(fake_bin, state_body):
    _write_script(
        fake_bin,
        "crun",
        VERSION_OK + 'if [ "$1" = "state" ]; then\n' + state_body + "fi\nexit 1\n",
    )


def test_oci_env_dir_layout(tmp_path):
    backend = OciBackend(tmp_path)
    assert backend.env_dir("abc123") == tmp_path / "env" / "abc123"


def test_oci_status_reports_not_running(fake_bin, tmp_path):
    _crun_with_state(fake_bin, '  echo "container does not exist" 1>&2\n  exit 1\n')
    status = OciBackend(tmp_path).status("oci-test")
    assert status.running is False
    assert status.pid is None
    assert status.env_id == "oci-test"


def test_status_running_with_pid(fake_bin, tmp_path):
    _crun_with_state(
        fake_bin,
        '  if [ "$2" = "karapace-abcdefabcdef" ]; then\n'
        '    echo \'{"pid": 4242, "status": "running"}\'\n'
        "    exit 0\n"
        "  fi\n"
        '  echo "not found" 1>&2\n'
        "  exit 1\n",
    )
    status = OciBackend(tmp_path).status("abcdefabcdef0123456789")
    assert status.running is True
    assert status.pid == 4242


def test_status_pid_zero_is_not_running(fake_bin, tmp_path):
    _crun_with_state(fake_bin, "  echo '{\"pid\": 0}'\n  exit 0\n")
    status = OciBackend(tmp_path).status("env")
    assert status.running is False
    assert status.pid is None


def test_status_unexpected_error_raises(fake_bin, tmp_path):
    _crun_with_state(fake_bin, '  echo "permission denied" 1>&2\n  exit 1\n')
    with pytest.raises(ExecFailedError, match="crun state failed: permission denied"):
        OciBackend(tmp_path).status("env")


def test_status_invalid_json_raises(fake_bin, tmp_path):
    _crun_with_state(fake_bin, "  echo 'not json'\n  exit 0\n")
    with pytest.raises(ExecFailedError, match="failed to parse crun state output"):
        OciBackend(tmp_path).status("env")


def test_status_without_runtime_raises(fake_bin, tmp_path):
    with pytest.raises(BackendUnavailableError, match="no OCI runtime found"):
        OciBackend(tmp_path).status("env")


def test_find_runtime_prefers_crun(fake_bin):
    _write_script(fake_bin, "crun", VERSION_OK + "exit 1\n")
    _write_script(fake_bin, "runc", VERSION_OK + "exit 1\n")
    assert OciBackend.find_runtime() == "crun"


def test_find_runtime_skips_broken_candidate(fake_bin):
    _write_script(fake_bin, "crun", "exit 1\n")
    _write_script(fake_bin, "runc", VERSION_OK + "exit 1\n")
    assert OciBackend.find_runtime() == "runc"


def test_available_reflects_runtime_presence(fake_bin, tmp_path):
    backend = OciBackend(tmp_path)
    assert backend.available() is False
    _write_script(fake_bin, "youki", VERSION_OK + "exit 1\n")
    assert backend.available() is True


def _spec(**overrides):
    args = dict(
        uid=1000,
        gid=100,
        home="/home/tester",
        username="tester",
        hostname="karapace-abcdefabcdef",
        env_vars=[],
        bind_mounts=[],
        network_isolation=False,
    )
    args.update(overrides)
    return json.loads(generate_oci_spec(**args))


def test_spec_process_section():
    spec = _spec()
    assert spec["ociVersion"] == "1.0.2"
    process = spec["process"]
    assert process["user"] == {"uid": 1000, "gid": 100}
    assert process["args"] == ["/bin/bash", "-l"]
    assert process["cwd"] == "/home/tester"
    assert process["env"] == [
        "HOME=/home/tester",
        "USER=tester",
        "HOSTNAME=karapace-abcdefabcdef",
        "TERM=xterm-256color",
        "KARAPACE_ENV=1",
    ]
    assert spec["hostname"] == "karapace-abcdefabcdef"
    assert spec["root"] == {"path": "rootfs", "readonly": False}


def test_spec_extra_env_vars_escape_quotes():
    spec = _spec(env_vars=[("GREETING", 'say "hi"'), ("LANG", "C.UTF-8")])
    env = spec["process"]["env"]
    assert env[-2:] == ['GREETING=say "hi"', "LANG=C.UTF-8"]


def test_spec_mounts():
    spec = _spec(
        bind_mounts=[
            BindMount("/srv/data", "/data", read_only=True),
            BindMount("/tmp/work", "/work"),
        ]
    )
    mounts = spec["mounts"]
    assert [m["destination"] for m in mounts] == [
        "/proc",
        "/dev",
        "/dev/pts",
        "/dev/shm",
        "/sys",
        "/home/tester",
        "/etc/resolv.conf",
        "/data",
        "/work",
    ]
    assert mounts[5]["source"] == "/home/tester"
    assert mounts[5]["options"] == ["rbind", "rw"]
    assert mounts[7] == {
        "destination": "/data",
        "type": "bind",
        "source": "/srv/data",
        "options": ["rbind", "ro"],
    }
    assert mounts[8]["options"] == ["rbind", "rw"]


@pytest.mark.parametrize(
    ("isolated", "expected"),
    [
        (False, ["pid", "mount", "ipc", "uts"]),
        (True, ["pid", "mount", "ipc", "uts", "network"]),
    ],
)
def test_spec_namespaces(isolated, expected):
    spec = _spec(network_isolation=isolated)
    assert [ns["type"] for ns in spec["linux"]["namespaces"]] == expected


def test_spec_id_mappings():
    linux = _spec(uid=1234, gid=567)["linux"]
    assert linux["uidMappings"] == [{"containerID": 0, "hostID": 1234, "size": 1}]
    assert linux["gidMappings"] == [{"containerID": 0, "hostID": 567, "size": 1}]