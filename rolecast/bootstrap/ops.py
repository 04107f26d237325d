"""Core bootstrap operations.

Declarative operations for node setup: key installation, shell function
calls and files. Each operation is a function returning an Op
(string or callable).
"""

from __future__ import annotations

import shlex

from rolecast.bootstrap.compose import Op

# =============================================================================
# Key Operations
# =============================================================================


def authorize_public_key(public_key: str, user_home: str = "~") -> Op:
    """Append a public key to the login user's authorized_keys.

    Example:
        >>> authorize_public_key("ssh-rsa AAAA... me@host")()
        'mkdir -p ~/.ssh\\ncat >> ~/.ssh/authorized_keys << \\'EOF\\'\\n...'
    """
    ssh_dir = f"{user_home}/.ssh"

    def generate() -> str:
        return "\n".join([
            f"mkdir -p {ssh_dir}",
            f"cat >> {ssh_dir}/authorized_keys << 'EOF'",
            public_key.strip(),
            "EOF",
            f"chmod 600 {ssh_dir}/authorized_keys",
        ])

    return generate


def install_private_key(private_key: str, user_home: str = "~") -> Op:
    """Install the cluster private key as id_rsa, readable only by its owner."""
    ssh_dir = f"{user_home}/.ssh"

    def generate() -> str:
        return "\n".join([
            f"mkdir -p {ssh_dir}",
            f"cat > {ssh_dir}/id_rsa << 'EOF'",
            private_key.strip(),
            "EOF",
            f"chmod 400 {ssh_dir}/id_rsa",
        ])

    return generate


# =============================================================================
# Command Operations
# =============================================================================


def call(function: str, *args: str | int) -> Op:
    """Invoke a shell function (or command) with quoted arguments.

    Example:
        >>> call("install_hadoop", "-c", "aws")()
        'install_hadoop -c aws'
    """
    parts = [function, *(shlex.quote(str(a)) for a in args)]
    return lambda: " ".join(parts)


# =============================================================================
# File Operations
# =============================================================================


def mkdir(path: str) -> Op:
    """Create a directory and any missing parents."""
    return lambda: f"mkdir -p {shlex.quote(path)}"


def _heredoc(redirect: str, path: str, content: str) -> str:
    return "\n".join([f"cat {redirect} {shlex.quote(path)} << 'EOF'", content.rstrip("\n"), "EOF"])


def file(path: str, content: str, mode: str | None = None) -> Op:
    """Replace ``path`` with ``content``.

    Example:
        >>> file("/etc/hadoop/conf/core-site.xml", "<configuration/>")()
        "cat > /etc/hadoop/conf/core-site.xml << 'EOF'\\n<configuration/>\\nEOF"
    """

    def generate() -> str:
        script = _heredoc(">", path, content)
        if mode:
            script += f"\nchmod {mode} {shlex.quote(path)}"
        return script

    return generate


def append_file(path: str, content: str) -> Op:
    """Append ``content`` to ``path``, creating it if missing."""
    return lambda: _heredoc(">>", path, content)
