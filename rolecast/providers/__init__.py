"""Script runners for live instances."""

from rolecast.providers.ssh import SSHConfig, SSHConnection, SSHScriptRunner

__all__ = [
    "SSHConfig",
    "SSHConnection",
    "SSHScriptRunner",
]
