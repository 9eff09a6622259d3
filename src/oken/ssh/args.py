"""Classification of raw ssh argument vectors."""

from oken.types import ResolvedArguments

# ssh flags that consume the following argument as their value.
FLAGS_WITH_VALUES = frozenset(
    [
        "-p", "-i", "-o", "-l", "-L", "-R", "-D", "-F", "-J", "-W", "-b",
        "-c", "-m", "-e", "-S", "-E", "-B", "-w", "-O", "-Q",
    ]
)


def _first_positional(args: list[str]) -> str | None:
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg in FLAGS_WITH_VALUES:
            skip_next = True
            continue
        # -v, -N, -T, -4 ...
        if arg.startswith("-"):
            continue
        return arg
    return None


def extract_target_full(args: list[str]) -> str | None:
    """Return the first positional argument as typed, e.g. "user@host"."""
    return _first_positional(args)


def extract_target(args: list[str]) -> str | None:
    """Return the first positional argument with any "user@" prefix removed."""
    target = _first_positional(args)
    if target is None:
        return None
    _, sep, host = target.partition("@")
    return host if sep else target


def _flag_value(args: list[str], flag: str) -> str | None:
    for i, arg in enumerate(args):
        if arg == flag:
            return args[i + 1] if i + 1 < len(args) else None
    return None


def extract_port(args: list[str]) -> int | None:
    """Value of -p as a port number, or None when absent or not a valid port."""
    value = _flag_value(args, "-p")
    if value is None:
        return None
    try:
        port = int(value)
    except ValueError:
        return None
    if not 0 <= port <= 65535:
        return None
    return port


def extract_identity_file(args: list[str]) -> str | None:
    """Value of -i, or None."""
    return _flag_value(args, "-i")


def extract_flags(args: list[str]) -> list[str]:
    """Keep flags and their values, dropping every positional argument."""
    flags = []
    skip_next = False
    for arg in args:
        if skip_next:
            flags.append(arg)
            skip_next = False
            continue
        if arg in FLAGS_WITH_VALUES:
            flags.append(arg)
            skip_next = True
            continue
        if arg.startswith("-"):
            flags.append(arg)
    return flags


def resolve_arguments(args: list[str]) -> ResolvedArguments:
    """Collect target, port and identity file from an argument vector."""
    return ResolvedArguments(
        target=extract_target_full(args),
        host_only=extract_target(args),
        port=extract_port(args),
        identity_file=extract_identity_file(args),
    )
