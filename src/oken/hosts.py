"""Merging ~/.ssh/config aliases and saved hosts into one host list."""

import logging
from pathlib import Path

from oken.config import HOSTS_FILE, config_dir, ssh_config_path
from oken.errors import HostStoreError
from oken.ssh.ssh_config import parse_ssh_config
from oken.store.base import HostStore
from oken.store.hosts import YAMLHostStore
from oken.types import Host, HostSource

logger = logging.getLogger(__name__)


class HostResolver:
    """Resolve every known host. Saved hosts replace same-named config aliases."""

    def __init__(self, store: HostStore, ssh_config: Path | None = None, home: Path | None = None):
        self.store = store
        self.ssh_config = ssh_config if ssh_config is not None else ssh_config_path()
        self.home = home

    def _config_aliases(self) -> list[str]:
        try:
            return parse_ssh_config(self.ssh_config, self.home)
        except Exception as e:
            logger.warning(f"Ignoring {self.ssh_config}: {e}")
            return []

    def _stored_entries(self) -> dict:
        try:
            return self.store.load()
        except HostStoreError as e:
            logger.warning(f"Ignoring saved hosts: {e}")
            return {}

    def resolve(self, store_first: bool = False) -> list[Host]:
        """Return all hosts sorted by alias.

        With store_first, saved hosts come before config-only ones, each
        group sorted by alias.
        """
        hosts: dict[str, Host] = {}

        for alias in self._config_aliases():
            hosts[alias] = Host.from_alias(alias)

        for alias, entry in self._stored_entries().items():
            hosts[alias] = Host.from_entry(alias, entry)

        if store_first:
            return sorted(hosts.values(), key=lambda h: (h.source != HostSource.STORE, h.alias))
        return sorted(hosts.values(), key=lambda h: h.alias)

    def find(self, name: str) -> Host | None:
        """Look a host up by alias, then by hostname."""
        hosts = self.resolve()
        for host in hosts:
            if host.alias == name:
                return host
        for host in hosts:
            if host.hostname == name:
                return host
        return None


def default_store() -> YAMLHostStore:
    return YAMLHostStore(config_dir() / HOSTS_FILE)


def list_all_hosts() -> list[Host]:
    """All hosts from the default locations."""
    return HostResolver(default_store()).resolve()
