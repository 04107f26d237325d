"""ZooKeeper quorum role."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from loguru import logger

from rolecast.bootstrap.ops import call

if TYPE_CHECKING:
    from rolecast.actions.event import ClusterActionEvent
    from rolecast.types.cluster import Cluster

log = logger.bind(component="zookeeper")

ROLE: Final = "zookeeper"
CLIENT_PORT: Final = 2181


def get_hosts(cluster: Cluster, port: int = CLIENT_PORT) -> str:
    """Quorum connect string, ``host:port`` per ZooKeeper instance in cluster order.

    Empty when the cluster has no ZooKeeper instances.
    """
    return ",".join(
        f"{i.private_ip or i.public_ip}:{port}" for i in cluster.instances_matching(ROLE)
    )


class ZooKeeperHandler:
    role = ROLE

    def before_bootstrap(self, event: ClusterActionEvent) -> None:
        conf = event.spec.configuration("zookeeper")
        event.add_statement_once(call("install_java"))
        event.add_statement(
            call(conf.get("install-function", "install_zookeeper"), "-c", event.spec.provider.name)
        )

    def before_configure(self, event: ClusterActionEvent) -> None:
        cluster = event.require_cluster()
        members = cluster.instances_matching(ROLE)
        event.network.authorize_ingress(event.spec, CLIENT_PORT, instances=members)

        conf = event.spec.configuration("zookeeper")
        peers = [i.private_ip or i.public_ip or i.id for i in members]
        event.add_statement(call(conf.get("configure-function", "configure_zookeeper"), *peers))

    def before_start(self, event: ClusterActionEvent) -> None:
        event.add_statement(call("start_zookeeper"))

    def after_configure(self, event: ClusterActionEvent) -> None:
        log.info("ZooKeeper quorum: {hosts}", hosts=get_hosts(event.require_cluster()))
