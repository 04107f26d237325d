import pytest

from rolecast import Cluster, Instance, InstanceLookupError, NodeHandle, only_roles, role

pytestmark = [pytest.mark.unit]


def _instance(instance_id, *roles):
    return Instance(id=instance_id, roles=roles, public_ip=f"54.0.0.{instance_id[-1]}")


@pytest.fixture
def cluster():
    return Cluster((
        _instance("i-1", "nn", "jt"),
        _instance("i-2", "dn", "tt"),
        _instance("i-3", "dn", "tt"),
        _instance("i-4", "dn"),
    ))


class TestLookup:
    def test_instances_matching_role(self, cluster):
        assert [i.id for i in cluster.instances_matching(role("dn"))] == ["i-2", "i-3", "i-4"]

    def test_role_name_shortcut(self, cluster):
        assert cluster.instances_matching("tt") == cluster.instances_matching(role("tt"))

    def test_only_roles_is_exact(self, cluster):
        assert [i.id for i in cluster.instances_matching(only_roles(("tt", "dn")))] == ["i-2", "i-3"]

    def test_first_match_is_first_inserted(self, cluster):
        assert cluster.instance_matching("dn").id == "i-2"

    def test_missing_role_raises_lookup_error(self, cluster):
        with pytest.raises(LookupError):
            cluster.instance_matching("zookeeper")

    def test_lookup_error_type(self, cluster):
        with pytest.raises(InstanceLookupError):
            cluster.instance_matching(role("hbase-master"))

    def test_empty_match(self, cluster):
        assert cluster.instances_matching("nothing") == ()


class TestCollection:
    def test_repeated_id_keeps_first(self):
        first = _instance("i-1", "nn")
        cluster = Cluster((first, _instance("i-1", "dn"), _instance("i-2", "dn")))
        assert cluster.ids == ("i-1", "i-2")
        assert cluster.get("i-1") is first

    def test_contains_instance_or_id(self, cluster):
        assert "i-3" in cluster
        assert cluster.get("i-3") in cluster
        assert "i-9" not in cluster
        assert 42 not in cluster

    def test_len_and_iter(self, cluster):
        assert len(cluster) == 4
        assert [i.id for i in cluster] == ["i-1", "i-2", "i-3", "i-4"]

    def test_get_missing(self, cluster):
        assert cluster.get("i-9") is None


class TestNodeHandle:
    def test_to_instance_uses_first_addresses(self):
        node = NodeHandle(id="n", public_addresses=("1.1.1.1", "2.2.2.2"), private_addresses=("10.0.0.1",))
        instance = node.to_instance(("dn",))
        assert (instance.public_ip, instance.private_ip, instance.roles) == ("1.1.1.1", "10.0.0.1", ("dn",))

    def test_to_instance_without_addresses(self):
        instance = NodeHandle(id="n").to_instance(("dn",))
        assert instance.address is None

    def test_address_prefers_public(self):
        assert Instance(id="n", roles=(), public_ip="1.1.1.1", private_ip="10.0.0.1").address == "1.1.1.1"
        assert Instance(id="n", roles=(), private_ip="10.0.0.1").address == "10.0.0.1"
