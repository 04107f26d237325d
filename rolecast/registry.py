"""Instance registry file.

One line per live instance, tab separated:

    hadoop-namenode+hadoop-jobtracker<TAB>i-123<TAB>54.1.2.3<TAB>10.0.0.4

The file lives in the cluster directory and is rewritten whole on every
change.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from rolecast.constants import REGISTRY_FILE_NAME, ROLE_SEPARATOR
from rolecast.types.cluster import Cluster, Instance

log = logger.bind(component="registry")


@dataclass(frozen=True, slots=True)
class RegistryRecord:
    roles: tuple[str, ...]
    id: str
    public_ip: str
    private_ip: str

    @classmethod
    def from_instance(cls, instance: Instance) -> RegistryRecord:
        return cls(
            roles=instance.roles,
            id=instance.id,
            public_ip=instance.public_ip or "",
            private_ip=instance.private_ip or "",
        )

    @classmethod
    def parse(cls, line: str) -> RegistryRecord:
        roles, instance_id, public_ip, private_ip = (line.split("\t") + ["", "", ""])[:4]
        return cls(
            roles=tuple(r for r in roles.split(ROLE_SEPARATOR) if r),
            id=instance_id,
            public_ip=public_ip,
            private_ip=private_ip,
        )

    def format(self) -> str:
        return "\t".join((ROLE_SEPARATOR.join(self.roles), self.id, self.public_ip, self.private_ip))


class InstanceRegistry:
    """Line-oriented record of a cluster's instances."""

    __slots__ = ("path",)

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @classmethod
    def in_directory(cls, cluster_dir: Path | str) -> InstanceRegistry:
        return cls(Path(cluster_dir) / REGISTRY_FILE_NAME)

    def write(self, cluster: Cluster | Iterable[Instance]) -> None:
        records = [RegistryRecord.from_instance(i) for i in cluster]
        self._write_records(records)
        log.debug("Wrote {n} instance(s) to {path}", n=len(records), path=self.path)

    def read(self) -> tuple[RegistryRecord, ...]:
        if not self.path.is_file():
            return ()
        lines = self.path.read_text().splitlines()
        return tuple(RegistryRecord.parse(line) for line in lines if line.strip())

    def __contains__(self, instance_id: object) -> bool:
        return any(r.id == instance_id for r in self.read())

    def remove(self, instance_id: str) -> bool:
        """Drop the line for ``instance_id``.

        Returns:
            True if a line was removed, False if the id (or the file) was absent.
        """
        records = self.read()
        kept = [r for r in records if r.id != instance_id]
        if len(kept) == len(records):
            return False
        self._write_records(kept)
        log.debug("Removed {id} from {path}", id=instance_id, path=self.path)
        return True

    def _write_records(self, records: list[RegistryRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("".join(f"{r.format()}\n" for r in records))
