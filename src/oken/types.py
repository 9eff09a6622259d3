"""Core type definitions for oken."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HostSource(str, Enum):
    """Where a resolved host came from."""

    SSH_CONFIG = "ssh_config"
    STORE = "store"


class HostEntry(BaseModel):
    """A host as stored in hosts.yaml."""

    hostname: str
    user: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    identity_file: str | None = None
    tags: list[str] = []


class Host(BaseModel):
    """A resolved host, immutable for the duration of a run.

    Hosts that come from ~/.ssh/config only carry their alias; ssh resolves
    the rest itself when it is invoked with that alias.
    """

    model_config = ConfigDict(frozen=True)

    alias: str
    hostname: str | None = None
    user: str | None = None
    port: int | None = None
    identity_file: str | None = None
    tags: tuple[str, ...] = ()
    source: HostSource

    @classmethod
    def from_alias(cls, alias: str) -> "Host":
        return cls(alias=alias, source=HostSource.SSH_CONFIG)

    @classmethod
    def from_entry(cls, alias: str, entry: HostEntry) -> "Host":
        return cls(
            alias=alias,
            hostname=entry.hostname,
            user=entry.user,
            port=entry.port,
            identity_file=entry.identity_file,
            tags=tuple(entry.tags),
            source=HostSource.STORE,
        )

    @property
    def target(self) -> str:
        """user@hostname, hostname, or empty when ssh resolves the alias."""
        if self.hostname and self.user:
            return f"{self.user}@{self.hostname}"
        return self.hostname or ""


class ResolvedArguments(BaseModel):
    """What could be recovered from a raw ssh argument vector."""

    target: str | None = None  # as typed, possibly user@host
    host_only: str | None = None
    port: int | None = None
    identity_file: str | None = None


class TunnelEntry(BaseModel):
    """A named tunnel as stored in tunnels.yaml."""

    host: str
    ssh_flags: list[str] = []


class RecentHost(BaseModel):
    """Most recent connection to an alias."""

    alias: str
    last_connected: str  # ISO 8601, UTC


class AuditEntry(BaseModel):
    """One finished session from the audit log."""

    timestamp: str
    alias: str
    target: str
    duration_secs: int | None = None
    exit_code: int | None = None
