"""oken CLI."""

import logging
import os
import shlex
import subprocess
import sys

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from oken import __version__, audit
from oken import tunnels as tunnel_ops
from oken.config import (
    CONFIG_FILE,
    HISTORY_DB,
    HOSTS_FILE,
    TUNNELS_FILE,
    config_dir,
    data_dir,
    get_config_template,
    load_config,
)
from oken.connect import Connector
from oken.errors import OkenError, PickerCancelled
from oken.hosts import HostResolver, default_store
from oken.picker.state import build_items, filter_items
from oken.ssh.client import find_ssh
from oken.store.history import HistoryStore
from oken.store.tunnels import YAMLTunnelStore
from oken.timefmt import format_duration
from oken.types import HostEntry, HostSource

app = typer.Typer(help="oken - a smarter ssh. Run 'oken [SSH ARGS]' to connect.")
host_app = typer.Typer(help="Manage saved hosts")
tunnel_app = typer.Typer(help="Manage background tunnels")
config_app = typer.Typer(help="Manage oken settings")
app.add_typer(host_app, name="host")
app.add_typer(tunnel_app, name="tunnel")
app.add_typer(config_app, name="config")

# Everything not handled by `app` goes to ssh through this single-command app.
connect_app = typer.Typer(add_completion=False)

console = Console()
err_console = Console(stderr=True)

SUBCOMMANDS = {"host", "tunnel", "config", "print", "audit"}
APP_FLAGS = {"--help", "--version", "--install-completion", "--show-completion"}


def setup_logging(verbose: bool = False):
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
    )


def fail(message: str) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}", highlight=False)
    return typer.Exit(1)


def get_connector() -> Connector:
    return Connector(
        config=load_config(),
        resolver=HostResolver(default_store()),
        history=HistoryStore(data_dir() / HISTORY_DB),
        console=err_console,
    )


def get_tunnel_store() -> YAMLTunnelStore:
    return YAMLTunnelStore(config_dir() / TUNNELS_FILE)


def version_callback(value: bool):
    if value:
        console.print(f"oken {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    version: bool = typer.Option(
        False, "--version", callback=version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """oken - a smarter ssh."""


# Connecting


def _connect_by_tag(connector: Connector, tag: str, yes: bool, reconnect: bool) -> int:
    tag_lower = tag.lower()
    matches = [
        h for h in connector.resolver.resolve() if any(t.lower() == tag_lower for t in h.tags)
    ]
    if not matches:
        raise fail(f"no hosts found with tag '{tag}'")
    if len(matches) == 1:
        return connector.connect_host(matches[0], yes, reconnect)
    host = connector.pick(f"#{tag}")
    return connector.connect_host(host, yes, reconnect)


def _connect_by_name(connector: Connector, name: str, yes: bool, reconnect: bool) -> int:
    """A single bare word: exact alias, partial alias for the picker, or plain ssh."""
    hosts = connector.resolver.resolve()
    exact = next((h for h in hosts if h.alias == name), None)
    others = any(h.alias != name and name in h.alias for h in hosts)

    if exact is not None and not others:
        return connector.connect_host(exact, yes, reconnect)
    if filter_items(build_items(hosts), name):
        host = connector.pick(name)
        return connector.connect_host(host, yes, reconnect)
    return connector.connect_args([name], yes, reconnect)


@connect_app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
def connect(
    ctx: typer.Context,
    tag: str | None = typer.Option(None, "--tag", help="Connect to a host with this tag"),
    yes: bool = typer.Option(False, "--yes", help="Skip the danger-tag confirmation"),
    no_reconnect: bool = typer.Option(False, "--no-reconnect", help="Don't reconnect on connection loss"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """Connect to a host. Without arguments, pick one interactively."""
    setup_logging(verbose)
    ssh_args = list(ctx.args)
    reconnect = not no_reconnect

    try:
        connector = get_connector()
        if tag:
            code = _connect_by_tag(connector, tag, yes, reconnect)
        elif not ssh_args:
            host = connector.pick()
            code = connector.connect_host(host, yes, reconnect)
        elif len(ssh_args) == 1 and "@" not in ssh_args[0] and not ssh_args[0].startswith("-"):
            code = _connect_by_name(connector, ssh_args[0], yes, reconnect)
        else:
            code = connector.connect_args(ssh_args, yes, reconnect)
    except PickerCancelled:
        raise typer.Exit(0)
    except OkenError as e:
        raise fail(str(e))

    raise typer.Exit(code)


# Hosts


@host_app.command("add")
def host_add(
    name: str = typer.Argument(..., help="Alias for the host"),
    target: str = typer.Argument(..., help="user@host or host"),
    port: int | None = typer.Option(None, "--port", help="SSH port"),
    key: str | None = typer.Option(None, "--key", help="Path to the identity file"),
    tag: list[str] = typer.Option([], "--tag", help="Tag, may be repeated"),
):
    """Save a new host."""
    user, sep, hostname = target.partition("@")
    if not sep:
        user, hostname = None, target

    try:
        entry = HostEntry(hostname=hostname, user=user, port=port, identity_file=key, tags=tag)
        default_store().add(name, entry)
    except ValidationError as e:
        raise fail(f"invalid host: {e.errors()[0]['msg']}")
    except OkenError as e:
        raise fail(str(e))
    console.print(f"Added host '{name}'")


@host_app.command("list")
def host_list(
    all_hosts: bool = typer.Option(False, "--all", "-a", help="Include ~/.ssh/config aliases"),
):
    """List saved hosts."""
    store = default_store()
    table = Table()
    table.add_column("NAME")
    table.add_column("TARGET")
    table.add_column("PORT", justify="right")
    table.add_column("TAGS")

    if all_hosts:
        table.add_column("SOURCE")
        hosts = HostResolver(store).resolve(store_first=True)
        if not hosts:
            console.print("No hosts found.")
            return
        for h in hosts:
            source = "hosts.yaml" if h.source == HostSource.STORE else "ssh config"
            table.add_row(
                h.alias, h.target or "-", str(h.port or "-"), ", ".join(h.tags) or "-", source
            )
    else:
        try:
            entries = store.load()
        except OkenError as e:
            raise fail(str(e))
        if not entries:
            console.print("No hosts configured. Use `oken host add` to add one.")
            return
        for name, entry in sorted(entries.items()):
            target = f"{entry.user}@{entry.hostname}" if entry.user else entry.hostname
            table.add_row(name, target, str(entry.port or "-"), ", ".join(entry.tags) or "-")

    console.print(table)


@host_app.command("remove")
def host_remove(name: str = typer.Argument(..., help="Alias to remove")):
    """Remove a saved host."""
    try:
        default_store().remove(name)
    except OkenError as e:
        raise fail(str(e))
    console.print(f"Removed host '{name}'")


@host_app.command("edit")
def host_edit():
    """Open hosts.yaml in $EDITOR."""
    path = config_dir() / HOSTS_FILE
    editor = os.environ.get("EDITOR") or "vi"
    try:
        result = subprocess.run([*shlex.split(editor), str(path)])
    except OSError as e:
        raise fail(f"could not run editor '{editor}': {e}")
    if result.returncode != 0:
        raise fail(f"editor exited with status {result.returncode}")


# Tunnels


@tunnel_app.command(
    "add",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def tunnel_add(ctx: typer.Context, name: str = typer.Argument(..., help="Tunnel name")):
    """Save a tunnel from ssh arguments, e.g. `oken tunnel add db -L 5432:localhost:5432 bastion`."""
    try:
        entry = tunnel_ops.entry_from_args(list(ctx.args))
        get_tunnel_store().add(name, entry)
    except OkenError as e:
        raise fail(str(e))
    console.print(f"Added tunnel '{name}'")


@tunnel_app.command("start")
def tunnel_start(name: str = typer.Argument(..., help="Tunnel name")):
    """Start a tunnel in the background."""
    try:
        entry = get_tunnel_store().get(name)
        ssh = find_ssh()
        sock = tunnel_ops.socket_path(name)
        if tunnel_ops.is_running(ssh, sock, entry.host):
            console.print(f"Tunnel '{name}' is already running")
            return
        tunnel_ops.start(ssh, entry, sock)
    except OkenError as e:
        raise fail(str(e))
    console.print(f"Started tunnel '{name}'")


@tunnel_app.command("stop")
def tunnel_stop(name: str = typer.Argument(..., help="Tunnel name")):
    """Stop a running tunnel."""
    try:
        entry = get_tunnel_store().get(name)
        tunnel_ops.stop(find_ssh(), entry, tunnel_ops.socket_path(name))
    except OkenError as e:
        raise fail(str(e))
    console.print(f"Stopped tunnel '{name}'")


@tunnel_app.command("list")
def tunnel_list():
    """List tunnels and whether they are running."""
    try:
        entries = get_tunnel_store().load()
    except OkenError as e:
        raise fail(str(e))
    if not entries:
        console.print("No tunnels configured. Use `oken tunnel add` to add one.")
        return

    try:
        ssh = find_ssh()
    except OkenError:
        ssh = None

    table = Table()
    table.add_column("NAME")
    table.add_column("HOST")
    table.add_column("STATUS")
    table.add_column("FLAGS")
    for name, entry in sorted(entries.items()):
        running = ssh is not None and tunnel_ops.is_running(ssh, tunnel_ops.socket_path(name), entry.host)
        status = "[green]running[/green]" if running else "stopped"
        table.add_row(name, entry.host, status, " ".join(entry.ssh_flags))
    console.print(table)


@tunnel_app.command("remove")
def tunnel_remove(name: str = typer.Argument(..., help="Tunnel name")):
    """Forget a tunnel."""
    try:
        get_tunnel_store().remove(name)
    except OkenError as e:
        raise fail(str(e))
    console.print(f"Removed tunnel '{name}'")


# Misc


@app.command("print")
def print_command(host: str = typer.Argument(..., help="Host alias")):
    """Print the ssh command oken would run for a host."""
    try:
        line = get_connector().command_line(host)
    except OkenError as e:
        raise fail(str(e))
    console.print(line, markup=False, highlight=False, soft_wrap=True)


@app.command("audit")
def audit_command(
    lines: int = typer.Option(20, "--lines", "-n", help="Number of sessions to show"),
):
    """Show recent ssh sessions."""
    entries = audit.read_recent(lines)
    if not entries:
        console.print("No audit log found. Connect to some hosts first.")
        return

    table = Table()
    table.add_column("TIME")
    table.add_column("ALIAS")
    table.add_column("TARGET")
    table.add_column("DURATION", justify="right")
    table.add_column("EXIT", justify="right")
    for entry in entries:
        table.add_row(
            entry.timestamp.replace("T", " ").rstrip("Z"),
            entry.alias,
            entry.target,
            format_duration(entry.duration_secs) if entry.duration_secs is not None else "-",
            str(entry.exit_code) if entry.exit_code is not None else "-",
        )
    console.print(table)


@config_app.command("init")
def config_init():
    """Write a commented config.yaml."""
    path = config_dir() / CONFIG_FILE
    if path.exists():
        console.print(f"[yellow]Warning:[/yellow] {path} already exists.")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit(0)
    path.write_text(get_config_template(), encoding="utf-8")
    console.print(f"[green]Wrote {path}[/green]")


@config_app.command("show")
def config_show():
    """Show the effective settings."""
    config = load_config()
    console.print(yaml.safe_dump(config.model_dump(), sort_keys=False), markup=False, highlight=False)


def main():
    """Entry point: subcommands go to `app`, everything else to ssh."""
    argv = sys.argv[1:]
    if argv and (argv[0] in SUBCOMMANDS or argv[0] in APP_FLAGS):
        app()
    else:
        connect_app(prog_name="oken")


if __name__ == "__main__":
    main()
