"""Connecting to a host: confirmation, history, supervision and audit."""

import logging
import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path

from InquirerPy import inquirer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from oken import audit
from oken.config import OkenConfig
from oken.errors import HostExistsError, HostStoreError
from oken.hosts import HostResolver
from oken.picker import run_picker
from oken.ssh.args import extract_identity_file, extract_port, extract_target, extract_target_full
from oken.ssh.client import build_ssh_args, find_ssh, inject_keepalive
from oken.ssh.supervisor import NO_RECONNECT, ConnectionSupervisor, ReconnectPolicy, notify_reconnect
from oken.store.base import RecencyProvider
from oken.types import Host, HostEntry

logger = logging.getLogger(__name__)


def danger_matches(host: Host, danger_tags: list[str]) -> list[str]:
    """Tags on host that are configured as dangerous (case-insensitive)."""
    danger = {t.lower() for t in danger_tags}
    return [tag for tag in host.tags if tag.lower() in danger]


@dataclass
class SaveCandidate:
    """An unknown user@host target that could be saved."""

    user: str
    hostname: str
    host_known: bool  # hostname known, but not with this user


def save_candidate(args: list[str], hosts: list[Host]) -> SaveCandidate | None:
    """Decide whether a typed user@host target is worth offering to save."""
    target = extract_target_full(args)
    if not target or "@" not in target:
        return None
    user, _, hostname = target.partition("@")
    if not user or not hostname:
        return None

    def same_host(h: Host) -> bool:
        return h.alias == hostname or h.hostname == hostname

    if any((same_host(h) and h.user == user) or h.alias == target for h in hosts):
        return None
    return SaveCandidate(user=user, hostname=hostname, host_known=any(same_host(h) for h in hosts))


def parse_tags(line: str) -> list[str]:
    return [t.strip() for t in line.split(",") if t.strip()]


class Connector:
    """Runs ssh for a picked host or for raw arguments."""

    def __init__(
        self,
        config: OkenConfig,
        resolver: HostResolver,
        history: RecencyProvider | None = None,
        console: Console | None = None,
        audit_path: Path | None = None,
    ):
        self.config = config
        self.resolver = resolver
        self.history = history
        self.console = console or Console(stderr=True)
        self.audit_path = audit_path

    # Host selection

    def recent_map(self) -> dict[str, str]:
        """alias -> last connection time. Empty when history is unavailable."""
        if self.history is None:
            return {}
        try:
            return {r.alias: r.last_connected for r in self.history.last_connected_hosts()}
        except (sqlite3.Error, OSError) as e:
            logger.debug(f"History unavailable: {e}")
            return {}

    def pick(self, initial_query: str | None = None) -> Host:
        hosts = self.resolver.resolve()
        return run_picker(hosts, self.recent_map(), initial_query)

    # Prompts

    def confirm_danger(self, host: Host, yes: bool = False) -> bool:
        """Ask before connecting to hosts tagged as dangerous."""
        if yes:
            return True
        matched = danger_matches(host, self.config.danger_tags)
        if not matched:
            return True

        self.console.print(
            f"[bold yellow]⚠  WARNING:[/bold yellow] '{host.alias}' is tagged [{', '.join(matched)}]",
            markup=True,
            highlight=False,
        )
        return inquirer.confirm(message="Continue?", default=False).execute()

    def maybe_prompt_save(self, args: list[str]) -> None:
        """Offer to save a new user@host target. Best effort."""
        if not sys.stdin.isatty():
            return
        try:
            candidate = save_candidate(args, self.resolver.resolve())
            if candidate is None:
                return

            if candidate.host_known:
                self.console.print(
                    f"[dim]New user[/dim] [bold]{candidate.user}[/bold] [dim]for known host[/dim] "
                    f"[bold]{candidate.hostname}[/bold][dim]. Save it so you can pick it next time?[/dim]"
                )
                alias = inquirer.text(message="Save as (Enter to skip):").execute().strip()
                if not alias:
                    return
            else:
                self.console.print(
                    f"[dim]Looks like a new host. Save[/dim] [bold]{candidate.user}@{candidate.hostname}"
                    f"[/bold] [dim]so it shows up in the picker?[/dim]"
                )
                alias = inquirer.text(
                    message='Save as ("n" to skip):', default=candidate.hostname
                ).execute().strip()
                if alias.lower() in ("n", "no"):
                    return
                alias = alias or candidate.hostname

            tags = parse_tags(inquirer.text(message="Tags (comma-separated, Enter to skip):").execute())
            entry = HostEntry(
                hostname=candidate.hostname,
                user=candidate.user,
                port=extract_port(args),
                identity_file=extract_identity_file(args),
                tags=tags,
            )
            self.resolver.store.add(alias, entry)
            self.console.print(f"Saved host '{alias}'")
        except (HostExistsError, HostStoreError, ValidationError, OSError) as e:
            logger.debug(f"Save prompt failed: {e}")
            self.console.print(f"[yellow]Warning:[/yellow] could not save host: {escape(str(e))}")
        except KeyboardInterrupt:
            pass

    # Running ssh

    def _record(self, alias: str, host: Host | None = None) -> None:
        if self.history is None:
            return
        try:
            if host is None:
                self.history.record_connection(alias)
            else:
                self.history.record_connection(alias, host.hostname, host.user, host.port)
        except (sqlite3.Error, OSError) as e:
            logger.debug(f"Could not record history: {e}")

    def _policy(self, reconnect: bool) -> ReconnectPolicy:
        if not reconnect or not self.config.reconnect:
            return NO_RECONNECT
        return ReconnectPolicy(
            max_retries=self.config.reconnect_retries,
            delay_secs=self.config.reconnect_delay_secs,
            lost_exit_code=self.config.connection_lost_exit_code,
        )

    def _print_connecting(self, args: list[str]) -> None:
        target = extract_target(args)
        if target:
            self.console.print(f"[dim]→ Connecting to {escape(target)}…[/dim]", highlight=False)

    def _notify_reconnect(self, attempt: int, max_retries: int) -> None:
        notify_reconnect(attempt, max_retries, self.console)

    def _run(self, args: list[str], alias: str, target: str, reconnect: bool) -> int:
        supervisor = ConnectionSupervisor(
            find_ssh(), self._policy(reconnect), on_reconnect=self._notify_reconnect
        )
        self._print_connecting(args)
        result = supervisor.run(args)
        audit.log_session(alias, target, result.duration_secs, result.exit_code, self.audit_path)
        return result.exit_code

    def keepalive(self, args: list[str]) -> list[str]:
        return inject_keepalive(args, self.config.keepalive_interval, self.config.keepalive_count_max)

    def connect_host(self, host: Host, yes: bool = False, reconnect: bool = True) -> int:
        """Connect to a resolved host. Returns ssh's exit code."""
        if not self.confirm_danger(host, yes):
            return 0
        args = build_ssh_args(host)
        target = args[0]
        self._record(host.alias, host)
        return self._run(self.keepalive(args), host.alias, target, reconnect)

    def connect_args(self, ssh_args: list[str], yes: bool = False, reconnect: bool = True) -> int:
        """Connect with arguments typed by the user, left as they are."""
        self.maybe_prompt_save(ssh_args)

        target = extract_target(ssh_args)
        if target is not None and not yes:
            known = self.resolver.find(target)
            if known is not None and not self.confirm_danger(known, yes):
                return 0

        if target is not None:
            self._record(target)
        full_target = extract_target_full(ssh_args) or ""
        return self._run(self.keepalive(ssh_args), full_target, full_target, reconnect)

    def command_line(self, alias: str) -> str:
        """The full ssh command oken would run for alias."""
        host = self.resolver.find(alias)
        if host is None or host.alias != alias:
            return f"ssh {alias}"
        return " ".join([str(find_ssh()), *self.keepalive(build_ssh_args(host))])
