"""Background port-forwarding tunnels driven through ssh control sockets."""

import logging
import subprocess
from pathlib import Path

from oken.config import data_dir
from oken.errors import OkenError, SpawnError
from oken.ssh.args import extract_flags, extract_target_full
from oken.types import TunnelEntry

logger = logging.getLogger(__name__)


def socket_path(name: str, base: Path | None = None) -> Path:
    """<data dir>/tunnels/<name>.sock"""
    if base is None:
        base = data_dir()
    tunnels_dir = base / "tunnels"
    tunnels_dir.mkdir(parents=True, exist_ok=True)
    return tunnels_dir / f"{name}.sock"


def entry_from_args(args: list[str]) -> TunnelEntry:
    """Split typed ssh args into the target and the flags to reuse."""
    host = extract_target_full(args)
    if host is None:
        raise OkenError("no target host found in args")
    return TunnelEntry(host=host, ssh_flags=extract_flags(args))


def start_args(entry: TunnelEntry, sock: Path) -> list[str]:
    return ["-N", "-M", "-S", str(sock), *entry.ssh_flags, entry.host]


def is_running(ssh_path: Path, sock: Path, host: str) -> bool:
    """Ask the control master whether it is alive."""
    if not sock.exists():
        return False
    try:
        result = subprocess.run(
            [str(ssh_path), "-S", str(sock), "-O", "check", host],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        logger.debug(f"Tunnel check failed: {e}")
        return False
    return result.returncode == 0


def start(ssh_path: Path, entry: TunnelEntry, sock: Path) -> None:
    """Launch the tunnel in the background and return immediately."""
    argv = [str(ssh_path), *start_args(entry, sock)]
    logger.debug(f"Starting tunnel: {' '.join(argv)}")
    try:
        subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnError(f"failed to start tunnel: {e}") from e


def stop(ssh_path: Path, entry: TunnelEntry, sock: Path) -> None:
    try:
        result = subprocess.run(
            [str(ssh_path), "-S", str(sock), "-O", "stop", entry.host],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise SpawnError(f"failed to stop tunnel: {e}") from e
    if result.returncode != 0:
        raise OkenError(f"failed to stop tunnel: {result.stderr.strip() or result.returncode}")
