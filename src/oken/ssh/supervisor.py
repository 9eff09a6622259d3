"""Running ssh and reconnecting when the link drops."""

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from rich.console import Console

from oken.errors import SpawnError

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)

# OpenSSH exits with 255 when the connection is lost. It also uses 255 for
# its own failures (refused auth, host key mismatch), so those get retried too.
CONNECTION_LOST_EXIT_CODE = 255


@dataclass
class ReconnectPolicy:
    """When and how often to re-run ssh."""

    max_retries: int = 3
    delay_secs: float = 5
    lost_exit_code: int = CONNECTION_LOST_EXIT_CODE

    def should_retry(self, exit_code: int, retries_used: int) -> bool:
        return exit_code == self.lost_exit_code and retries_used < self.max_retries


NO_RECONNECT = ReconnectPolicy(max_retries=0)


@dataclass
class SessionResult:
    """Outcome of a supervised ssh session."""

    exit_code: int
    retries: int
    duration_secs: float


def run_inherited(argv: list[str]) -> int:
    """Run argv attached to our terminal and return its exit code."""
    try:
        returncode = subprocess.run(argv).returncode
    except OSError as e:
        raise SpawnError(f"failed to run {argv[0]}: {e}") from e
    # Killed by a signal
    if returncode < 0:
        return 1
    return returncode


def notify_reconnect(attempt: int, max_retries: int, console: Console = err_console) -> None:
    console.print(f"[dim]Connection lost. Reconnecting ({attempt}/{max_retries})…[/dim]", highlight=False)


class ConnectionSupervisor:
    """Runs one ssh process at a time, re-running it on connection loss."""

    def __init__(
        self,
        ssh_path: Path,
        policy: ReconnectPolicy = NO_RECONNECT,
        runner: Callable[[list[str]], int] = run_inherited,
        sleep: Callable[[float], None] = time.sleep,
        on_reconnect: Callable[[int, int], None] = notify_reconnect,
    ):
        self.ssh_path = ssh_path
        self.policy = policy
        self._runner = runner
        self._sleep = sleep
        self._on_reconnect = on_reconnect

    def run(self, args: list[str]) -> SessionResult:
        """Run ssh with args until it exits for a reason other than link loss."""
        argv = [str(self.ssh_path), *args]
        started = time.monotonic()
        retries = 0

        while True:
            logger.debug(f"Running {' '.join(argv)}")
            exit_code = self._runner(argv)

            if not self.policy.should_retry(exit_code, retries):
                break

            retries += 1
            logger.debug(f"ssh exited with {exit_code}, retry {retries}/{self.policy.max_retries}")
            self._on_reconnect(retries, self.policy.max_retries)
            self._sleep(self.policy.delay_secs)

        return SessionResult(
            exit_code=exit_code,
            retries=retries,
            duration_secs=time.monotonic() - started,
        )
