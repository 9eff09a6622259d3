"""Storage protocols consumed by host resolution and the picker."""

from typing import Protocol

from oken.types import HostEntry, RecentHost


class HostStore(Protocol):
    """Protocol for the user's saved hosts."""

    def load(self) -> dict[str, HostEntry]:
        """Return alias -> entry. A missing store is an empty mapping."""
        ...

    def add(self, alias: str, entry: HostEntry) -> None:
        """Add a host. Raises HostExistsError if the alias is taken."""
        ...

    def remove(self, alias: str) -> None:
        """Remove a host. Raises HostNotFoundError if it isn't stored."""
        ...


class RecencyProvider(Protocol):
    """Protocol for connection history."""

    def record_connection(
        self,
        alias: str,
        hostname: str | None = None,
        user: str | None = None,
        port: int | None = None,
    ) -> None:
        ...

    def last_connected_hosts(self) -> list[RecentHost]:
        """Most recent connection per alias, newest first."""
        ...
