"""Persistence for saved hosts, tunnels and connection history."""

from oken.store.base import HostStore, RecencyProvider
from oken.store.history import HistoryStore
from oken.store.hosts import YAMLHostStore
from oken.store.tunnels import YAMLTunnelStore

__all__ = ["HistoryStore", "HostStore", "RecencyProvider", "YAMLHostStore", "YAMLTunnelStore"]
