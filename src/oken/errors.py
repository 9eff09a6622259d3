"""Error types raised by oken."""


class OkenError(RuntimeError):
    """Base class for errors reported to the user as a one-line message."""


class NoHostsError(OkenError):
    """No hosts were found when a picker was required."""


class PickerCancelled(OkenError):
    """The user dismissed the picker. Not a failure."""


class SSHNotFoundError(OkenError):
    """The ssh client binary could not be located."""


class SpawnError(OkenError):
    """The ssh client process could not be started."""


class HostStoreError(OkenError):
    """hosts.yaml exists but could not be parsed or validated."""


class HostExistsError(OkenError):
    """A host with this alias is already stored."""


class HostNotFoundError(OkenError):
    """No stored host has this alias."""


class TunnelNotFoundError(OkenError):
    """No tunnel is configured under this name."""
