"""Tests for building ssh arguments and supervising the ssh process."""

import io
import os
from pathlib import Path

import pytest
from rich.console import Console

from oken.errors import SpawnError, SSHNotFoundError
from oken.ssh.client import build_ssh_args, find_ssh, inject_keepalive
from oken.ssh.supervisor import (
    NO_RECONNECT,
    ConnectionSupervisor,
    ReconnectPolicy,
    notify_reconnect,
    run_inherited,
)
from oken.types import Host, HostEntry


class FakeSSH:
    """Exits with 255 `drops` times, then with `final`."""

    def __init__(self, drops: int, final: int = 0):
        self.drops = drops
        self.final = final
        self.calls: list[list[str]] = []

    def __call__(self, argv: list[str]) -> int:
        self.calls.append(argv)
        if len(self.calls) <= self.drops:
            return 255
        return self.final


def make_supervisor(runner, max_retries=3, sleeps=None):
    if sleeps is None:
        sleeps = []
    return ConnectionSupervisor(
        Path("/usr/bin/ssh"),
        ReconnectPolicy(max_retries=max_retries, delay_secs=5),
        runner=runner,
        sleep=sleeps.append,
        on_reconnect=lambda attempt, total: None,
    )


class TestInjectKeepalive:
    def test_prepends_options(self):
        assert inject_keepalive(["host"], 30, 4) == [
            "-o", "ServerAliveInterval=30", "-o", "ServerAliveCountMax=4", "host",
        ]

    def test_respects_user_value(self):
        args = ["-o", "ServerAliveInterval=10", "host"]
        assert inject_keepalive(args) == args

    def test_idempotent(self):
        once = inject_keepalive(["-p", "22", "host"])
        assert inject_keepalive(once) == once

    def test_does_not_mutate_input(self):
        args = ["host"]
        inject_keepalive(args)
        assert args == ["host"]


class TestBuildSSHArgs:
    def test_full_host(self):
        host = Host.from_entry(
            "web", HostEntry(hostname="10.0.0.1", user="deploy", port=2222, identity_file="~/.ssh/k")
        )
        assert build_ssh_args(host) == ["deploy@10.0.0.1", "-p", "2222", "-i", "~/.ssh/k"]

    def test_hostname_only(self):
        host = Host.from_entry("web", HostEntry(hostname="10.0.0.1"))
        assert build_ssh_args(host) == ["10.0.0.1"]

    def test_config_alias(self):
        assert build_ssh_args(Host.from_alias("bastion")) == ["bastion"]


class TestReconnect:
    def test_clean_exit_no_retry(self):
        ssh = FakeSSH(drops=0)
        sleeps = []
        result = make_supervisor(ssh, sleeps=sleeps).run(["host"])
        assert result.exit_code == 0
        assert result.retries == 0
        assert sleeps == []
        assert ssh.calls == [["/usr/bin/ssh", "host"]]

    def test_recovers_within_budget(self):
        ssh = FakeSSH(drops=2)
        sleeps = []
        result = make_supervisor(ssh, max_retries=3, sleeps=sleeps).run(["host"])
        assert result.exit_code == 0
        assert result.retries == 2
        assert sleeps == [5, 5]
        assert len(ssh.calls) == 3

    def test_retries_exactly_up_to_budget(self):
        ssh = FakeSSH(drops=3)
        sleeps = []
        result = make_supervisor(ssh, max_retries=3, sleeps=sleeps).run(["host"])
        assert result.exit_code == 0
        assert result.retries == 3

    def test_gives_up_with_255(self):
        ssh = FakeSSH(drops=5)
        sleeps = []
        result = make_supervisor(ssh, max_retries=2, sleeps=sleeps).run(["host"])
        assert result.exit_code == 255
        assert result.retries == 2
        assert len(sleeps) == 2
        assert len(ssh.calls) == 3

    def test_other_exit_codes_pass_through(self):
        ssh = FakeSSH(drops=1, final=130)
        result = make_supervisor(ssh).run(["host"])
        assert result.exit_code == 130
        assert result.retries == 1

    def test_non_lost_code_is_not_retried(self):
        ssh = FakeSSH(drops=0, final=1)
        result = make_supervisor(ssh).run(["host"])
        assert result.exit_code == 1
        assert len(ssh.calls) == 1

    def test_same_arguments_every_attempt(self):
        ssh = FakeSSH(drops=2)
        make_supervisor(ssh).run(["-p", "22", "host"])
        assert all(call == ssh.calls[0] for call in ssh.calls)

    def test_no_reconnect_policy(self):
        ssh = FakeSSH(drops=1)
        supervisor = ConnectionSupervisor(Path("ssh"), NO_RECONNECT, runner=ssh, sleep=lambda s: None)
        assert supervisor.run(["host"]).exit_code == 255
        assert len(ssh.calls) == 1

    def test_custom_lost_code(self):
        policy = ReconnectPolicy(max_retries=1, lost_exit_code=42)
        assert policy.should_retry(42, 0)
        assert not policy.should_retry(255, 0)
        assert not policy.should_retry(42, 1)

    def test_reconnect_notice(self):
        buf = io.StringIO()
        notify_reconnect(2, 3, Console(file=buf, force_terminal=False))
        assert buf.getvalue().strip() == "Connection lost. Reconnecting (2/3)…"


class TestRunInherited:
    def test_exit_code(self):
        assert run_inherited(["sh", "-c", "exit 3"]) == 3

    def test_spawn_failure(self, tmp_path):
        with pytest.raises(SpawnError):
            run_inherited([str(tmp_path / "missing-binary")])


class TestFindSSH:
    def make_exe(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n")
        path.chmod(0o755)
        return path

    def test_first_on_path(self, tmp_path):
        first = self.make_exe(tmp_path / "a" / "ssh")
        self.make_exe(tmp_path / "b" / "ssh")
        path_var = os.pathsep.join([str(tmp_path / "a"), str(tmp_path / "b")])
        assert find_ssh(path_var, ourselves=tmp_path / "oken") == first

    def test_skips_ourselves(self, tmp_path):
        ours = self.make_exe(tmp_path / "a" / "ssh")
        real = self.make_exe(tmp_path / "b" / "ssh")
        path_var = os.pathsep.join([str(tmp_path / "a"), str(tmp_path / "b")])
        assert find_ssh(path_var, ourselves=ours) == real

    def test_not_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr("oken.ssh.client.FALLBACK_SSH_PATHS", [])
        with pytest.raises(SSHNotFoundError):
            find_ssh(str(tmp_path), ourselves=tmp_path / "oken")
