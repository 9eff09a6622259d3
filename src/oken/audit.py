"""Append-only log of finished ssh sessions."""

import logging
from pathlib import Path

from oken.config import AUDIT_LOG, data_dir
from oken.timefmt import utc_now_iso
from oken.types import AuditEntry

logger = logging.getLogger(__name__)


def default_audit_path() -> Path:
    return data_dir() / AUDIT_LOG


def log_session(
    alias: str,
    target: str,
    duration_secs: float,
    exit_code: int,
    path: Path | None = None,
) -> None:
    """Append one session line. Failures are logged, never raised."""
    try:
        if path is None:
            path = default_audit_path()
        # timestamp \t alias \t target \t duration_secs \t exit_code
        line = f"{utc_now_iso()}\t{alias}\t{target}\t{int(duration_secs)}\t{exit_code}\n"
        with open(path, "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        logger.debug(f"Could not write audit log: {e}")


def _parse_int(value: str) -> int | None:
    try:
        return int(value)
    except ValueError:
        return None


def parse_line(line: str) -> AuditEntry:
    parts = line.split("\t", 4)
    parts += [""] * (5 - len(parts))
    return AuditEntry(
        timestamp=parts[0],
        alias=parts[1],
        target=parts[2],
        duration_secs=_parse_int(parts[3]),
        exit_code=_parse_int(parts[4]),
    )


def read_recent(n: int = 20, path: Path | None = None) -> list[AuditEntry]:
    """Last n entries, newest first. Empty if there is no log yet."""
    if path is None:
        path = default_audit_path()
    if not path.exists():
        return []
    if n <= 0:
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read audit log {path}: {e}")
        return []
    lines = [line for line in text.splitlines() if line.strip()]
    return [parse_line(line) for line in reversed(lines[-n:])]
