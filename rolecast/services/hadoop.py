"""Hadoop roles and configuration.

Four roles share one install path and differ in the ports they open:

    hadoop-namenode     8020 (IPC), 50070 (web UI)
    hadoop-jobtracker   8021 (IPC), 50030 (web UI)
    hadoop-datanode
    hadoop-tasktracker

Site files are generated at configure time, once the cluster is known.
Each file's properties come from three layers, later layers winning:
built-in defaults, the ClusterSpec's ``<prefix>.*`` keys, then values derived
from the cluster (namenode and jobtracker addresses). ``hadoop-env.*`` keys
are appended to hadoop-env.sh as exports.
"""

from __future__ import annotations

import shlex
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final
from xml.sax.saxutils import escape

from rolecast.bootstrap.ops import append_file, call, file, mkdir
from rolecast.network import Resolver, reverse_dns
from rolecast.types.cluster import role

if TYPE_CHECKING:
    from rolecast.actions.event import ClusterActionEvent
    from rolecast.bootstrap.compose import Op
    from rolecast.types.cluster import Cluster, Instance
    from rolecast.types.spec import ClusterSpec

NAMENODE_ROLE: Final = "hadoop-namenode"
JOBTRACKER_ROLE: Final = "hadoop-jobtracker"
DATANODE_ROLE: Final = "hadoop-datanode"
TASKTRACKER_ROLE: Final = "hadoop-tasktracker"

NAMENODE_PORT: Final = 8020
JOBTRACKER_PORT: Final = 8021
NAMENODE_WEB_UI_PORT: Final = 50070
JOBTRACKER_WEB_UI_PORT: Final = 50030

CONF_DIR: Final = "/etc/hadoop/conf"

DEFAULTS: Final[Mapping[str, Mapping[str, str]]] = MappingProxyType({
    "hadoop-common": {
        "fs.trash.interval": "1440",
        "io.file.buffer.size": "65536",
    },
    "hadoop-hdfs": {
        "dfs.block.size": "134217728",
        "dfs.datanode.du.reserved": "1073741824",
    },
    "hadoop-mapreduce": {
        "mapred.reduce.tasks.speculative.execution": "false",
        "mapred.child.java.opts": "-Xmx550m",
    },
})

type Derive = Callable[[Cluster, Resolver], Mapping[str, str]]


@dataclass(frozen=True, slots=True)
class HadoopConfigurationBuilder:
    """Builds the properties of one Hadoop site file.

    Args:
        prefix: Spec key prefix, e.g. ``hadoop-common``.
        derive: Cluster-derived properties, applied last.
        resolver: Address resolver handed to ``derive``.
    """

    prefix: str
    derive: Derive | None = None
    resolver: Resolver = reverse_dns
    defaults: Mapping[str, str] = field(default_factory=dict)

    def build(self, spec: ClusterSpec, cluster: Cluster) -> dict[str, str]:
        config = {**DEFAULTS.get(self.prefix, {}), **self.defaults, **spec.configuration(self.prefix)}
        if self.derive is not None:
            config |= self.derive(cluster, self.resolver)
        return config


def _host(instance: Instance, resolver: Resolver) -> str:
    return resolver(instance.public_ip or instance.private_ip or instance.id)


def _namenode_address(cluster: Cluster, resolver: Resolver) -> Mapping[str, str]:
    namenode = cluster.instance_matching(role(NAMENODE_ROLE))
    return {"fs.default.name": f"hdfs://{_host(namenode, resolver)}:{NAMENODE_PORT}/"}


def _jobtracker_address(cluster: Cluster, resolver: Resolver) -> Mapping[str, str]:
    jobtracker = cluster.instance_matching(role(JOBTRACKER_ROLE))
    return {"mapred.job.tracker": f"{_host(jobtracker, resolver)}:{JOBTRACKER_PORT}"}


def common_configuration(resolver: Resolver = reverse_dns) -> HadoopConfigurationBuilder:
    return HadoopConfigurationBuilder("hadoop-common", _namenode_address, resolver)


def hdfs_configuration(resolver: Resolver = reverse_dns) -> HadoopConfigurationBuilder:
    return HadoopConfigurationBuilder("hadoop-hdfs", resolver=resolver)


def mapreduce_configuration(resolver: Resolver = reverse_dns) -> HadoopConfigurationBuilder:
    return HadoopConfigurationBuilder("hadoop-mapreduce", _jobtracker_address, resolver)


def as_xml(config: Mapping[str, str]) -> str:
    """Render properties as a Hadoop ``<configuration>`` document, keys sorted."""
    lines = ['<?xml version="1.0"?>', "<configuration>"]
    for key, value in sorted(config.items()):
        lines += [
            "  <property>",
            f"    <name>{escape(key)}</name>",
            f"    <value>{escape(value)}</value>",
            "  </property>",
        ]
    lines.append("</configuration>")
    return "\n".join(lines)


def as_create_file_statement(path: str, config: Mapping[str, str]) -> Op:
    return file(path, as_xml(config))


def as_env_statement(path: str, env: Mapping[str, str]) -> Op:
    """Append ``export`` lines for ``env`` to a shell environment file."""
    return append_file(path, "\n".join(f"export {k}={shlex.quote(v)}" for k, v in sorted(env.items())))


class HadoopHandler:
    """Shared install and configure steps for every Hadoop role."""

    role: str = ""
    ports: tuple[int, ...] = ()

    def __init__(self, resolver: Resolver | None = None) -> None:
        self.resolver = resolver

    def before_bootstrap(self, event: ClusterActionEvent) -> None:
        conf = event.spec.configuration("hadoop")
        args = ["-c", event.spec.provider.name]
        if "tarball-url" in conf:
            args += ["-u", conf["tarball-url"]]
        event.add_statement_once(
            call("install_java"),
            call(conf.get("install-function", "install_hadoop"), *args),
        )

    def before_configure(self, event: ClusterActionEvent) -> None:
        spec, cluster = event.spec, event.require_cluster()
        if self.ports:
            event.network.authorize_ingress(
                spec, *self.ports, instances=cluster.instances_matching(role(self.role))
            )

        resolver = self.resolver or event.network.resolve_address
        site_files = {
            "core-site.xml": common_configuration(resolver),
            "hdfs-site.xml": hdfs_configuration(resolver),
            "mapred-site.xml": mapreduce_configuration(resolver),
        }
        event.add_statement_once(mkdir(CONF_DIR))
        event.add_statement_once(*(
            as_create_file_statement(f"{CONF_DIR}/{name}", builder.build(spec, cluster))
            for name, builder in site_files.items()
        ))
        env = spec.configuration("hadoop-env")
        if env:
            event.add_statement_once(as_env_statement(f"{CONF_DIR}/hadoop-env.sh", env))
        conf = spec.configuration("hadoop")
        event.add_statement(
            call(conf.get("configure-function", "configure_hadoop"), self.role, "-c", spec.provider.name)
        )


class NameNodeHandler(HadoopHandler):
    role = NAMENODE_ROLE
    ports = (NAMENODE_WEB_UI_PORT, NAMENODE_PORT)


class JobTrackerHandler(HadoopHandler):
    role = JOBTRACKER_ROLE
    ports = (JOBTRACKER_WEB_UI_PORT, JOBTRACKER_PORT)


class DataNodeHandler(HadoopHandler):
    role = DATANODE_ROLE


class TaskTrackerHandler(HadoopHandler):
    role = TASKTRACKER_ROLE


def hadoop_handlers(resolver: Resolver | None = None) -> tuple[HadoopHandler, ...]:
    return (
        NameNodeHandler(resolver),
        JobTrackerHandler(resolver),
        DataNodeHandler(resolver),
        TaskTrackerHandler(resolver),
    )
