"""HBase master and region server roles.

Both roles need a ZooKeeper quorum in the same cluster; the quorum
string is handed to the configure function along with the master's
resolved host name.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Final

from rolecast.bootstrap.ops import call
from rolecast.bootstrap.template import MachineSelection, chain, default_strategy
from rolecast.services.zookeeper import get_hosts
from rolecast.types.cluster import role

if TYPE_CHECKING:
    from rolecast.actions.event import ClusterActionEvent
    from rolecast.types.spec import ClusterSpec

MASTER_ROLE: Final = "hbase-master"
REGIONSERVER_ROLE: Final = "hbase-regionserver"

MASTER_PORT: Final = 60000
MASTER_WEB_UI_PORT: Final = 60010
REGIONSERVER_PORT: Final = 60020
REGIONSERVER_WEB_UI_PORT: Final = 60030

# Arguments understood by the install/configure shell functions
PARAM_PROVIDER: Final = "-c"
PARAM_MASTER: Final = "-m"
PARAM_QUORUM: Final = "-q"
PARAM_TARBALL_URL: Final = "-u"

MIN_RAM_MB: Final = 1740


def _hbase_hardware(spec: ClusterSpec, selection: MachineSelection) -> MachineSelection:
    if selection.hardware_id:
        return selection
    return replace(
        selection,
        min_ram_mb=max(selection.min_ram_mb or 0, MIN_RAM_MB),
        is_64bit=True,
    )


hbase_strategy = chain(default_strategy, _hbase_hardware)


class HBaseHandler:
    role: str = ""
    ports: tuple[int, ...] = ()

    def before_bootstrap(self, event: ClusterActionEvent) -> None:
        spec = event.spec
        conf = spec.configuration("hbase")
        event.add_statement_once(
            call("configure_hostnames", PARAM_PROVIDER, spec.provider.name),
            call("install_java"),
            call(conf.get("install-function", "install_hbase"), *self._common_args(spec)),
        )
        event.set_template_strategy(hbase_strategy)

    def before_configure(self, event: ClusterActionEvent) -> None:
        spec, cluster = event.spec, event.require_cluster()
        master = cluster.instance_matching(role(MASTER_ROLE))
        event.network.authorize_ingress(
            spec, *self.ports, instances=cluster.instances_matching(role(self.role))
        )

        conf = spec.configuration("hbase")
        event.add_statement(
            call(
                conf.get("configure-function", "configure_hbase"),
                self.role,
                PARAM_MASTER,
                event.network.resolve_address(master.public_ip or master.private_ip or ""),
                PARAM_QUORUM,
                get_hosts(cluster),
                *self._common_args(spec),
            )
        )

    @staticmethod
    def _common_args(spec: ClusterSpec) -> list[str]:
        args = [PARAM_PROVIDER, spec.provider.name]
        tarball = spec.configuration("hbase").get("tarball-url")
        if tarball:
            args += [PARAM_TARBALL_URL, tarball]
        return args


class MasterHandler(HBaseHandler):
    role = MASTER_ROLE
    ports = (MASTER_WEB_UI_PORT, MASTER_PORT)


class RegionServerHandler(HBaseHandler):
    role = REGIONSERVER_ROLE
    ports = (REGIONSERVER_WEB_UI_PORT, REGIONSERVER_PORT)
