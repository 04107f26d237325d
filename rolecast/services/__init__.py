"""Reference role handlers: Hadoop, HBase and ZooKeeper."""

from rolecast.services.hadoop import (
    DataNodeHandler,
    HadoopConfigurationBuilder,
    JobTrackerHandler,
    NameNodeHandler,
    TaskTrackerHandler,
    as_create_file_statement,
    hadoop_handlers,
)
from rolecast.services.hbase import MasterHandler, RegionServerHandler, hbase_strategy
from rolecast.services.zookeeper import ZooKeeperHandler, get_hosts

__all__ = [
    "DataNodeHandler",
    "HadoopConfigurationBuilder",
    "JobTrackerHandler",
    "MasterHandler",
    "NameNodeHandler",
    "RegionServerHandler",
    "TaskTrackerHandler",
    "ZooKeeperHandler",
    "as_create_file_statement",
    "get_hosts",
    "hadoop_handlers",
    "hbase_strategy",
]
