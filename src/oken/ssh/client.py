"""Locating the ssh client and building its argument vector."""

import os
import sys
from pathlib import Path

from oken.errors import SSHNotFoundError
from oken.types import Host

FALLBACK_SSH_PATHS = ["/usr/bin/ssh", "/usr/local/bin/ssh"]


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


def find_ssh(path_var: str | None = None, ourselves: Path | None = None) -> Path:
    """Find the system ssh binary, skipping our own executable.

    oken may be installed or aliased as `ssh`; running ourselves again
    would loop forever.
    """
    if path_var is None:
        path_var = os.environ.get("PATH", "")
    if ourselves is None and sys.argv and sys.argv[0]:
        ourselves = Path(sys.argv[0])

    candidates = [Path(d) / "ssh" for d in path_var.split(os.pathsep) if d]
    candidates += [Path(p) for p in FALLBACK_SSH_PATHS]

    for candidate in candidates:
        if not candidate.is_file() or not os.access(candidate, os.X_OK):
            continue
        if ourselves is not None and _same_file(candidate, ourselves):
            continue
        return candidate

    raise SSHNotFoundError("could not find ssh binary on PATH")


def build_ssh_args(host: Host) -> list[str]:
    """Build ssh arguments for a resolved host.

    Hosts without a stored hostname are passed by alias so ssh applies
    its own config for them.
    """
    args = [host.target or host.alias]
    if host.port is not None:
        args += ["-p", str(host.port)]
    if host.identity_file:
        args += ["-i", host.identity_file]
    return args


def inject_keepalive(args: list[str], interval: int = 60, count_max: int = 3) -> list[str]:
    """Prepend ServerAlive options unless the caller already set an interval."""
    if any("ServerAliveInterval" in arg for arg in args):
        return list(args)
    return [
        "-o",
        f"ServerAliveInterval={interval}",
        "-o",
        f"ServerAliveCountMax={count_max}",
        *args,
    ]
