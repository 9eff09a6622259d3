"""YAML-backed tunnel definitions (tunnels.yaml)."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from oken.errors import OkenError, TunnelNotFoundError
from oken.types import TunnelEntry


class YAMLTunnelStore:
    """Named tunnels under a top-level `tunnels:` mapping."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> dict[str, TunnelEntry]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            raw = data.get("tunnels") or {}
            return {str(name): TunnelEntry(**entry) for name, entry in raw.items()}
        except (
            OSError,
            UnicodeDecodeError,
            yaml.YAMLError,
            ValidationError,
            TypeError,
            AttributeError,
        ) as e:
            raise OkenError(f"failed to parse {self.path}: {e}") from e

    def save(self, tunnels: dict[str, TunnelEntry]) -> None:
        data = {"tunnels": {name: t.model_dump() for name, t in sorted(tunnels.items())}}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)

    def get(self, name: str) -> TunnelEntry:
        tunnels = self.load()
        if name not in tunnels:
            raise TunnelNotFoundError(f"tunnel '{name}' not found")
        return tunnels[name]

    def add(self, name: str, entry: TunnelEntry) -> None:
        """Add or replace a tunnel."""
        tunnels = self.load()
        tunnels[name] = entry
        self.save(tunnels)

    def remove(self, name: str) -> None:
        tunnels = self.load()
        if name not in tunnels:
            raise TunnelNotFoundError(f"tunnel '{name}' not found")
        del tunnels[name]
        self.save(tunnels)
