"""Network administration: firewall rules and address resolution.

Role handlers open ports and resolve peer addresses through a
NetworkAdmin carried on every ClusterActionEvent. Rules are recorded
and forwarded to a pluggable firewall callable that knows how to talk
to the provider's security groups.
"""

from __future__ import annotations

import socket
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from rolecast.types.cluster import Instance
    from rolecast.types.spec import ClusterSpec

log = logger.bind(component="network")

ANYWHERE = "0.0.0.0/0"


@dataclass(frozen=True, slots=True)
class FirewallRule:
    """Ingress rule for a cluster."""

    cluster: str
    port: int
    source_cidr: str = ANYWHERE
    targets: tuple[str, ...] = ()
    protocol: str = "tcp"


type Firewall = Callable[[ClusterSpec, FirewallRule], None]
type Resolver = Callable[[str], str]


def reverse_dns(address: str) -> str:
    """Resolve an IP to its host name, falling back to the IP itself."""
    try:
        host, _, _ = socket.gethostbyaddr(address)
    except OSError:
        return address
    return host or address


class NetworkAdmin:
    """Firewall and DNS access for role handlers.

    Args:
        firewall: Called once per authorized rule. None records rules only.
        resolver: Address resolver. Defaults to reverse DNS with IP fallback.
        source_cidr: Default source range for ingress rules.
    """

    def __init__(
        self,
        firewall: Firewall | None = None,
        resolver: Resolver | None = None,
        source_cidr: str = ANYWHERE,
    ) -> None:
        self._firewall = firewall
        self._resolver = resolver or reverse_dns
        self.source_cidr = source_cidr
        self._rules: list[FirewallRule] = []
        self._lock = threading.Lock()

    @property
    def rules(self) -> tuple[FirewallRule, ...]:
        with self._lock:
            return tuple(self._rules)

    def authorize_ingress(
        self,
        spec: ClusterSpec,
        *ports: int,
        instances: Iterable[Instance] | None = None,
        cidr: str | None = None,
    ) -> tuple[FirewallRule, ...]:
        """Open ``ports`` on ``instances``, or on the whole cluster when None.

        An empty ``instances`` opens nothing, so a role that ended up with
        no instances never widens a rule to the whole cluster.
        """
        if instances is None:
            targets: tuple[str, ...] = ()
        else:
            targets = tuple(i.id for i in instances)
            if not targets:
                log.debug("No instances to open ports {ports} on, skipping", ports=list(ports))
                return ()
        rules = tuple(
            FirewallRule(
                cluster=spec.name,
                port=port,
                source_cidr=cidr or self.source_cidr,
                targets=targets,
            )
            for port in ports
        )
        for rule in rules:
            log.info(
                "Authorizing ingress on port {port} from {cidr} for {targets}",
                port=rule.port,
                cidr=rule.source_cidr,
                targets=list(targets) or "all instances",
            )
            if self._firewall is not None:
                self._firewall(spec, rule)
        with self._lock:
            self._rules.extend(rules)
        return rules

    def resolve_address(self, address: str) -> str:
        return self._resolver(address)
