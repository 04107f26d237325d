from pathlib import Path

import pytest

from rolecast import Cluster, Instance, InstanceRegistry
from rolecast.registry import RegistryRecord

pytestmark = [pytest.mark.unit]


@pytest.fixture
def cluster():
    return Cluster((
        Instance(id="i-1", roles=("nn", "jt"), public_ip="54.0.0.1", private_ip="10.0.0.1"),
        Instance(id="i-10", roles=("dn",), public_ip="54.0.0.10", private_ip="10.0.0.10"),
        Instance(id="i-2", roles=("dn",)),
    ))


class TestRegistryFile:
    def test_write_format(self, tmp_path: Path, cluster):
        registry = InstanceRegistry.in_directory(tmp_path)
        registry.write(cluster)

        assert (tmp_path / "instances").read_text().splitlines() == [
            "nn+jt\ti-1\t54.0.0.1\t10.0.0.1",
            "dn\ti-10\t54.0.0.10\t10.0.0.10",
            "dn\ti-2\t\t",
        ]

    def test_read_back(self, tmp_path: Path, cluster):
        registry = InstanceRegistry.in_directory(tmp_path)
        registry.write(cluster)

        records = registry.read()
        assert records[0] == RegistryRecord(("nn", "jt"), "i-1", "54.0.0.1", "10.0.0.1")
        assert [r.id for r in records] == ["i-1", "i-10", "i-2"]

    def test_missing_file_reads_empty(self, tmp_path: Path):
        assert InstanceRegistry(tmp_path / "nope" / "instances").read() == ()

    def test_creates_parent_directory(self, tmp_path: Path, cluster):
        registry = InstanceRegistry.in_directory(tmp_path / "clusters" / "hadoop")
        registry.write(cluster)
        assert registry.path.is_file()


class TestRemove:
    def test_removes_exact_id_only(self, tmp_path: Path, cluster):
        registry = InstanceRegistry.in_directory(tmp_path)
        registry.write(cluster)

        assert registry.remove("i-1") is True
        assert [r.id for r in registry.read()] == ["i-10", "i-2"]

    def test_absent_id_is_noop(self, tmp_path: Path, cluster):
        registry = InstanceRegistry.in_directory(tmp_path)
        registry.write(cluster)
        before = registry.path.read_text()

        assert registry.remove("i-99") is False
        assert registry.path.read_text() == before

    def test_missing_file_is_noop(self, tmp_path: Path):
        registry = InstanceRegistry.in_directory(tmp_path)
        assert registry.remove("i-1") is False
        assert not registry.path.exists()

    def test_contains(self, tmp_path: Path, cluster):
        registry = InstanceRegistry.in_directory(tmp_path)
        registry.write(cluster)
        assert "i-10" in registry
        assert "i-1" in registry
        assert "i-" not in registry
