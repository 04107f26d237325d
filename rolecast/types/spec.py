"""Cluster specification types.

ClusterSpec and InstanceTemplate describe the desired cluster. Both are
immutable and validated on construction; a ClusterSpec is built once per
run and passed down explicitly.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import cast

from rolecast.constants import DEFAULT_MAX_STARTUP_RETRIES, ROLE_SEPARATOR
from rolecast.exceptions import ConfigError

__all__ = [
    "ProviderIdentity",
    "KeyPair",
    "InstanceTemplate",
    "ClusterSpec",
    "parse_instance_templates",
]

_GROUP_UNSAFE = re.compile(r"[^a-z0-9-]+")


@dataclass(frozen=True, slots=True)
class ProviderIdentity:
    """Which provider to talk to and how to authenticate."""

    name: str = ""
    identity: str = ""
    credential: str = field(default="", repr=False)


@dataclass(frozen=True, slots=True)
class KeyPair:
    """SSH key pair shared by every node of the cluster.

    The public key is authorized on each node and the private key is
    installed so that nodes can reach each other.
    """

    public_key: str
    private_key: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class InstanceTemplate:
    """Desired shape of one homogeneous node group.

    Args:
        roles: Role names, in the order their hooks run.
        count: Target number of instances.
        min_count: Smallest acceptable number of instances. Defaults to count.
    """

    roles: tuple[str, ...]
    count: int
    min_count: int | None = None

    def __post_init__(self) -> None:
        roles = tuple(dict.fromkeys(self.roles))
        if not roles:
            raise ConfigError("Instance template needs at least one role")
        if any(not r or not r.strip() for r in roles):
            raise ConfigError(f"Role names must be non-empty, got {list(self.roles)}")
        if self.count <= 0:
            raise ConfigError(f"Instance count must be positive, got {self.count}")

        minimum = self.count if self.min_count is None else self.min_count
        if not 0 <= minimum <= self.count:
            raise ConfigError(
                f"Minimum count must be between 0 and {self.count} for "
                f"{ROLE_SEPARATOR.join(roles)}, got {minimum}"
            )
        object.__setattr__(self, "roles", roles)
        object.__setattr__(self, "min_count", minimum)

    @property
    def minimum(self) -> int:
        return cast(int, self.min_count)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def group_name(self, cluster_name: str) -> str:
        """Provider group name for this template's nodes.

        Lower-case, hyphen-separated, e.g. ``hadoop-hadoop-datanode-hadoop-tasktracker``.
        """
        raw = "-".join((cluster_name, *self.roles)).lower()
        return _GROUP_UNSAFE.sub("-", raw).strip("-")

    def __str__(self) -> str:
        return f"{self.count} {ROLE_SEPARATOR.join(self.roles)}"


@dataclass(frozen=True, slots=True)
class ClusterSpec:
    """Immutable description of a desired cluster.

    Args:
        name: Cluster name. Also the prefix of every provider group name.
        templates: Node groups, in the order they are merged into the cluster.
        provider: Provider identity and credentials.
        key_pair: SSH key pair installed on every node.
        max_startup_retries: Extra allocation rounds allowed per template.
        image_id: Default image for the machine template.
        hardware_id: Default hardware profile for the machine template.
        location_id: Default location (region/zone) for the machine template.
        config: Flat key/value configuration consumed by config builders.
    """

    name: str
    templates: tuple[InstanceTemplate, ...]
    provider: ProviderIdentity = field(default_factory=ProviderIdentity)
    key_pair: KeyPair | None = None
    max_startup_retries: int = DEFAULT_MAX_STARTUP_RETRIES
    image_id: str | None = None
    hardware_id: str | None = None
    location_id: str | None = None
    config: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigError("Cluster name must be non-empty")
        if self.max_startup_retries < 0:
            raise ConfigError(
                f"max_startup_retries must be >= 0, got {self.max_startup_retries}"
            )
        templates = tuple(self.templates)
        # Role set and provider group must each identify one template
        seen: dict[frozenset[str] | str, int] = {}
        for index, template in enumerate(templates):
            for key in (frozenset(template.roles), template.group_name(self.name)):
                first = seen.setdefault(key, index)
                if first != index:
                    raise ConfigError(
                        f"Templates '{templates[first]}' and '{template}' of cluster "
                        f"{self.name} share a role set or provider group; merge them into one"
                    )
        object.__setattr__(self, "templates", templates)
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))

    @property
    def public_key(self) -> str | None:
        return self.key_pair.public_key if self.key_pair else None

    @property
    def private_key(self) -> str | None:
        return self.key_pair.private_key if self.key_pair else None

    @property
    def roles(self) -> tuple[str, ...]:
        """Every role named by any template, in first-seen order."""
        return tuple(dict.fromkeys(r for t in self.templates for r in t.roles))

    def configuration(self, prefix: str) -> dict[str, str]:
        """Return keys under ``prefix.`` with the prefix stripped.

        Example:
            >>> spec.configuration("hadoop-common")
            {'fs.trash.interval': '60'}
        """
        head = f"{prefix}."
        return {k[len(head):]: v for k, v in self.config.items() if k.startswith(head)}


def parse_instance_templates(
    value: str,
    minimums: str | None = None,
) -> tuple[InstanceTemplate, ...]:
    """Parse the ``"N role+role,M role"`` template syntax.

    Args:
        value: Comma-separated ``count roles`` pairs, roles joined by '+'.
        minimums: Same syntax, giving the minimum count per role set.
            Role sets not mentioned keep minimum == count.

    Example:
        >>> parse_instance_templates("1 nn+jt,3 dn+tt", "2 dn+tt")
        (InstanceTemplate(roles=('nn', 'jt'), count=1, min_count=1),
         InstanceTemplate(roles=('dn', 'tt'), count=3, min_count=2))
    """
    counts = _parse_pairs(value)
    mins = {frozenset(roles): n for roles, n in _parse_pairs(minimums)} if minimums else {}

    known = {frozenset(roles) for roles, _ in counts}
    unknown = [ROLE_SEPARATOR.join(sorted(r)) for r in mins if r not in known]
    if unknown:
        raise ConfigError(f"Minimum given for unknown template(s): {', '.join(unknown)}")

    return tuple(
        InstanceTemplate(roles=roles, count=count, min_count=mins.get(frozenset(roles)))
        for roles, count in counts
    )


def _parse_pairs(value: str) -> list[tuple[tuple[str, ...], int]]:
    pairs: list[tuple[tuple[str, ...], int]] = []
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        match chunk.split():
            case [number, roles] if number.isdigit():
                pairs.append((tuple(roles.split(ROLE_SEPARATOR)), int(number)))
            case _:
                raise ConfigError(
                    f"Invalid instance template {chunk!r}, expected '<count> <role>[+<role>...]'"
                )
    return pairs
