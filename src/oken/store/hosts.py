"""YAML-backed host store (hosts.yaml)."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from oken.errors import HostExistsError, HostNotFoundError, HostStoreError
from oken.types import HostEntry


class YAMLHostStore:
    """Saved hosts, keyed by alias, under a top-level `hosts:` mapping."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> dict[str, HostEntry]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise HostStoreError(f"failed to read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise HostStoreError(f"{self.path}: expected a mapping at top level")
        raw_hosts = data.get("hosts") or {}
        if not isinstance(raw_hosts, dict):
            raise HostStoreError(f"{self.path}: 'hosts' must be a mapping")

        hosts = {}
        for alias, raw in raw_hosts.items():
            try:
                hosts[str(alias)] = HostEntry(**(raw or {}))
            except (ValidationError, TypeError) as e:
                raise HostStoreError(f"{self.path}: invalid host '{alias}': {e}") from e
        return hosts

    def save(self, hosts: dict[str, HostEntry]) -> None:
        data = {
            "hosts": {
                alias: entry.model_dump(exclude_defaults=True)
                for alias, entry in sorted(hosts.items())
            }
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False)

    def add(self, alias: str, entry: HostEntry) -> None:
        hosts = self.load()
        if alias in hosts:
            raise HostExistsError(f"host '{alias}' already exists")
        hosts[alias] = entry
        self.save(hosts)

    def remove(self, alias: str) -> None:
        hosts = self.load()
        if alias not in hosts:
            raise HostNotFoundError(f"host '{alias}' not found")
        del hosts[alias]
        self.save(hosts)
