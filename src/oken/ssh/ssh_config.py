"""Host alias discovery from the OpenSSH client configuration."""

import glob
import logging
import re
from pathlib import Path

from oken.config import ssh_config_path

logger = logging.getLogger(__name__)

# "Key Value", "Key=Value" and "Key = Value"
_KEYWORD_RE = re.compile(r"^([^\s=]+)\s*[=\s]\s*(.*)$")


def parse_ssh_config(path: Path | None = None, home: Path | None = None) -> list[str]:
    """Parse ~/.ssh/config and return its concrete host aliases, sorted.

    Wildcard patterns are skipped. Include directives are followed
    recursively unless they sit under a Match block, whose includes are
    conditional. Unreadable files contribute nothing.
    """
    if path is None:
        path = ssh_config_path()
    if home is None:
        home = Path.home()

    aliases: set[str] = set()
    _parse_file(path, home, aliases, visited=set())
    return sorted(aliases)


def split_keyword(line: str) -> tuple[str, str] | None:
    """Split a config line into (keyword, value)."""
    m = _KEYWORD_RE.match(line.strip())
    if m is None:
        return None
    keyword, value = m.group(1), m.group(2).strip()
    if not value:
        return None
    return keyword, value


def _parse_file(path: Path, home: Path, aliases: set[str], visited: set[Path]) -> None:
    try:
        canonical = path.resolve()
    except OSError:
        canonical = path
    if canonical in visited:
        logger.debug(f"Skipping already parsed ssh config {path}")
        return
    visited.add(canonical)

    try:
        contents = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Skipping unreadable ssh config {path}: {e}")
        return

    in_match_block = False

    for line in contents.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        parts = split_keyword(line)
        if parts is None:
            continue
        keyword, value = parts
        keyword = keyword.lower()

        if keyword == "host":
            in_match_block = False
            for alias in value.split():
                if "*" not in alias and "?" not in alias and not alias.startswith("!"):
                    aliases.add(alias)
        elif keyword == "match":
            in_match_block = True
        elif keyword == "include" and not in_match_block:
            for pattern in value.split():
                _process_include(pattern, home, path, aliases, visited)


def expand_tilde(pattern: str, home: Path) -> Path:
    if pattern == "~":
        return home
    if pattern.startswith("~/"):
        return home / pattern[2:]
    return Path(pattern)


def _process_include(
    pattern: str,
    home: Path,
    config_path: Path,
    aliases: set[str],
    visited: set[Path],
) -> None:
    expanded = expand_tilde(pattern, home)
    if not expanded.is_absolute():
        # Relative to the file holding the Include, not the root config.
        expanded = config_path.parent / expanded

    for match in sorted(glob.glob(str(expanded))):
        included = Path(match)
        if included.is_file():
            _parse_file(included, home, aliases, visited)
