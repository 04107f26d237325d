"""Run phase scripts over SSH."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import paramiko
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)

from rolecast.constants import DEFAULT_SCRIPT_TIMEOUT, DEFAULT_SSH_PORT, DEFAULT_SSH_USER

if TYPE_CHECKING:
    from rolecast.constants import Phase
    from rolecast.types.cluster import Instance

log = logger.bind(component="ssh")

_KEY_TYPES: tuple[type[paramiko.PKey], ...] = (
    paramiko.RSAKey,
    paramiko.ECDSAKey,
    paramiko.Ed25519Key,
)

# Keys may not be authorized yet, or sshd may still be starting
_RETRYABLE = (
    paramiko.ssh_exception.AuthenticationException,
    paramiko.ssh_exception.NoValidConnectionsError,
)


@dataclass(frozen=True, slots=True)
class SSHConfig:
    """SSH connection configuration."""

    host: str
    username: str
    port: int = DEFAULT_SSH_PORT
    key_path: str | None = None
    private_key: str | None = field(default=None, repr=False)


def load_private_key(text: str) -> paramiko.PKey:
    """Parse a PEM/OpenSSH private key of any supported type."""
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(text))
        except paramiko.SSHException:
            continue
    raise ValueError("Unsupported or invalid private key")


class SSHConnection:
    """One SSH session to an instance."""

    __slots__ = ("_client", "host")

    def __init__(self, config: SSHConfig) -> None:
        log.debug(
            "Connecting to {host}:{port} as {user}",
            host=config.host,
            port=config.port,
            user=config.username,
        )
        self.host = config.host
        kwargs: dict = {"hostname": config.host, "username": config.username, "port": config.port}
        if config.private_key:
            kwargs["pkey"] = load_private_key(config.private_key)
        elif config.key_path:
            kwargs["key_filename"] = config.key_path
        self._client = paramiko.SSHClient()
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            self._client.connect(**kwargs)
        except Exception:
            self._client.close()
            raise
        log.debug("Connected to {host}", host=config.host)

    def exec(self, command: str, stdin: str | None = None, timeout: int = 30) -> str:
        """Execute a command, optionally feeding ``stdin``; return stdout."""
        preview = command[:80] + "..." if len(command) > 80 else command
        log.debug("exec on {host}: {cmd}", host=self.host, cmd=preview)
        channel_in, stdout, stderr = self._client.exec_command(command, timeout=timeout)
        if stdin is not None:
            channel_in.write(stdin)
            channel_in.channel.shutdown_write()
        code = stdout.channel.recv_exit_status()
        log.debug("exec on {host}: exit_code={code}", host=self.host, code=code)
        if code != 0:
            raise RuntimeError(f"Command failed on {self.host} ({code}): {stderr.read().decode()}")
        return stdout.read().decode()

    def close(self) -> None:
        self._client.close()


class SSHScriptRunner:
    """ScriptRunner that pipes each script into ``bash`` over SSH.

    Login user and key come from the instance's credentials when the
    provider reported them, otherwise from the runner defaults.

    Args:
        user: Default login user.
        port: SSH port.
        key_path: Private key file used when the instance carries no key.
        timeout: Seconds a script may run.
        connect_timeout: Seconds to keep retrying the initial connection.
    """

    def __init__(
        self,
        user: str = DEFAULT_SSH_USER,
        port: int = DEFAULT_SSH_PORT,
        key_path: str | None = None,
        timeout: int = DEFAULT_SCRIPT_TIMEOUT,
        connect_timeout: float = 60.0,
    ) -> None:
        self.user = user
        self.port = port
        self.key_path = key_path
        self.timeout = timeout
        self.connect_timeout = connect_timeout

    def config_for(self, instance: Instance) -> SSHConfig:
        if instance.address is None:
            raise ValueError(f"Instance {instance.id} has no address")
        creds = instance.credentials
        return SSHConfig(
            host=instance.address,
            username=creds.user if creds and creds.user else self.user,
            port=self.port,
            key_path=self.key_path,
            private_key=creds.private_key if creds else None,
        )

    def connect(self, config: SSHConfig) -> SSHConnection:
        @retry(
            stop=stop_after_delay(self.connect_timeout),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(_RETRYABLE),
            reraise=True,
        )
        def connect_with_retry() -> SSHConnection:
            return SSHConnection(config)

        return connect_with_retry()

    def run_script(self, instance: Instance, script: str, phase: Phase) -> str:
        config = self.config_for(instance)
        command = "bash -s" if config.username == "root" else "sudo -n bash -s"
        log.info("Running {phase} script on {id} ({host})", phase=phase, id=instance.id, host=config.host)

        conn = self.connect(config)
        try:
            output = conn.exec(command, stdin=script, timeout=self.timeout)
        finally:
            conn.close()

        log.debug("{phase} script finished on {id}", phase=phase, id=instance.id)
        return output
