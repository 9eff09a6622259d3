"""Everything that touches the ssh client: arguments, config, process."""

from oken.ssh.args import (
    FLAGS_WITH_VALUES,
    extract_flags,
    extract_identity_file,
    extract_port,
    extract_target,
    extract_target_full,
    resolve_arguments,
)
from oken.ssh.client import build_ssh_args, find_ssh, inject_keepalive
from oken.ssh.ssh_config import parse_ssh_config
from oken.ssh.supervisor import (
    CONNECTION_LOST_EXIT_CODE,
    ConnectionSupervisor,
    ReconnectPolicy,
    SessionResult,
)

__all__ = [
    "CONNECTION_LOST_EXIT_CODE",
    "ConnectionSupervisor",
    "FLAGS_WITH_VALUES",
    "ReconnectPolicy",
    "SessionResult",
    "build_ssh_args",
    "extract_flags",
    "extract_identity_file",
    "extract_port",
    "extract_target",
    "extract_target_full",
    "find_ssh",
    "inject_keepalive",
    "parse_ssh_config",
    "resolve_arguments",
]
