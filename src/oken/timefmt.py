"""Timestamp helpers shared by history, audit and the picker."""

from datetime import datetime, timezone

ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime(ISO_FORMAT)


def parse_iso(value: str) -> datetime | None:
    """Parse "2026-02-27T10:30:00Z" (seconds optional). None if malformed."""
    for fmt in (ISO_FORMAT, "%Y-%m-%dT%H:%MZ"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def format_relative_time(iso: str, now: datetime | None = None) -> str:
    """Render an ISO timestamp as "5m ago", "3d ago", ... or verbatim if unparsable."""
    ts = parse_iso(iso)
    if ts is None:
        return iso
    if now is None:
        now = datetime.now(timezone.utc)

    diff = int((now - ts).total_seconds())
    if diff < 60:
        return "just now"

    minutes = diff // 60
    hours = diff // 3600
    days = diff // 86400
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    if days // 7 < 5:
        return f"{days // 7}w ago"
    return f"{days // 30}mo ago"


def format_duration(seconds: int) -> str:
    """Format seconds as human-readable duration."""
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        return f"{seconds // 60}m {seconds % 60:02d}s"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes:02d}m"
