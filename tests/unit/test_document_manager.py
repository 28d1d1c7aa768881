# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Unit tests for document edit operations.
"""
import pytest
from dcb.CONVERTERS.to_compose_yaml import ComposeYamlConverter
from dcb.MANAGERS.document_manager import DocumentManager as dm, digits_only
from dcb.MODELS.compose_document import ComposeDocument
from dcb.MODELS.service_definition import ServiceDefinition, VolumeMount, RestartPolicyCondition, Protocol
from dcb.MODELS.network_definition import NetworkDefinition
from dcb.MODELS.volume_definition import VolumeDefinition


@pytest.fixture
def linked_doc():
    """Two services attached to one network, one of them mounting a volume."""
    return ComposeDocument(
        services=[
            ServiceDefinition(name="web", networks=["frontend"]),
            ServiceDefinition(name="api", networks=["frontend", "backend"],
                              volumes=[VolumeMount(source="db-data", target="/var/lib/data"),
                                       VolumeMount(source="./logs", target="/logs")]),
        ],
        networks=[NetworkDefinition(name="frontend"), NetworkDefinition(name="backend")],
        volumes=[VolumeDefinition(name="db-data")],
    )


class TestServices:
    """Tests for service operations."""

    def test_new_document_has_one_unnamed_service(self):
        """Test the starting state of a session."""
        doc = dm.new_document()
        assert len(doc.services) == 1
        assert doc.services[0].name == ""
        assert doc.networks == [] and doc.volumes == []

    def test_add_and_remove_service(self):
        """Test appending and removing services."""
        doc = dm.add_service(dm.new_document())
        assert len(doc.services) == 2
        doc = dm.update_service_field(doc, 1, "name", "db")
        doc = dm.remove_service(doc, 0)
        assert [s.name for s in doc.services] == ["db"]

    def test_sole_service_guard(self):
        """Test that the last service cannot be removed."""
        doc = dm.update_service_field(dm.new_document(), 0, "image", "nginx")
        after = dm.remove_service(doc, 0)
        assert len(after.services) == 1
        assert after.services[0].image == "nginx"

    def test_operations_do_not_mutate_input(self):
        """Test the immutable-update discipline."""
        doc = dm.new_document()
        updated = dm.update_service_field(doc, 0, "image", "nginx")
        assert doc.services[0].image == ""
        assert updated.services[0].image == "nginx"
        assert updated is not doc

    def test_unknown_field_raises(self):
        """Test that a typo in a field name fails fast."""
        with pytest.raises(ValueError):
            dm.update_service_field(dm.new_document(), 0, "imgae", "nginx")

    def test_restart_none_is_unset(self):
        """Test that the 'none' choice maps to unset."""
        doc = dm.update_service_field(dm.new_document(), 0, "restart", "always")
        assert doc.services[0].restart == RestartPolicyCondition.ALWAYS
        doc = dm.update_service_field(doc, 0, "restart", "none")
        assert doc.services[0].restart is None

    def test_tri_state_round_trips_through_unset(self):
        """Test privileged going set and back to unset."""
        doc = dm.update_service_field(dm.new_document(), 0, "privileged", True)
        doc = dm.update_service_field(doc, 0, "privileged", None)
        assert doc.services[0].privileged is None

    def test_out_of_range_index_raises(self):
        """Test the fail-fast index contract."""
        doc = dm.new_document()
        with pytest.raises(IndexError):
            dm.update_service_field(doc, 3, "image", "nginx")
        with pytest.raises(IndexError):
            dm.remove_service(doc, -1)
        with pytest.raises(IndexError):
            dm.update_port(doc, 0, 0, "host", "80")


class TestListFields:
    """Tests for index-scoped list helpers."""

    def test_ports(self):
        """Test port add, update and remove."""
        doc = dm.add_port(dm.new_document(), 0)
        doc = dm.update_port(doc, 0, 0, "host", "80a80")
        doc = dm.update_port(doc, 0, 0, "container", "80")
        doc = dm.update_port(doc, 0, 0, "protocol", "udp")
        port = doc.services[0].ports[0]
        assert (port.host, port.container, port.protocol) == ("8080", "80", Protocol.UDP)
        doc = dm.remove_port(doc, 0, 0)
        assert doc.services[0].ports == []

    def test_volume_mounts(self):
        """Test mount add and update."""
        doc = dm.add_volume_mount(dm.new_document(), 0)
        doc = dm.update_volume_mount(doc, 0, 0, "source", "data")
        doc = dm.update_volume_mount(doc, 0, 0, "read_only", True)
        assert doc.services[0].volumes[0] == VolumeMount(source="data", read_only=True)

    def test_environment_and_labels(self):
        """Test key/value pair helpers."""
        doc = dm.add_environment(dm.new_document(), 0, "A", "1")
        doc = dm.update_environment(doc, 0, 0, "value", "2")
        doc = dm.add_label(doc, 0)
        doc = dm.update_label(doc, 0, 0, "key", "tier")
        svc = doc.services[0]
        assert (svc.environment[0].key, svc.environment[0].value) == ("A", "2")
        assert svc.labels[0].key == "tier"
        doc = dm.remove_environment(doc, 0, 0)
        assert doc.services[0].environment == []
        with pytest.raises(ValueError):
            dm.add_pair(doc, 0, "ports")

    def test_string_lists(self):
        """Test depends_on and security_opt helpers."""
        doc = dm.add_depends_on(dm.new_document(), 0)
        doc = dm.update_depends_on(doc, 0, 0, "db")
        doc = dm.add_security_opt(doc, 0, "no-new-privileges:true")
        doc = dm.add_list_entry(doc, 0, "dns", "1.1.1.1")
        svc = doc.services[0]
        assert svc.depends_on == ["db"]
        assert svc.security_opt == ["no-new-privileges:true"]
        assert svc.dns == ["1.1.1.1"]
        doc = dm.remove_depends_on(doc, 0, 0)
        assert doc.services[0].depends_on == []

    def test_healthcheck(self):
        """Test that the healthcheck is created on first edit and can be removed."""
        doc = dm.set_healthcheck_field(dm.new_document(), 0, "interval", "5s")
        assert doc.services[0].healthcheck.interval == "5s"
        assert doc.services[0].healthcheck.test == ""
        doc = dm.remove_healthcheck(doc, 0)
        assert doc.services[0].healthcheck is None


class TestNetworks:
    """Tests for network operations and their cascades."""

    def test_add_network_generates_unique_name(self):
        """Test generated network names."""
        doc = dm.add_network(dm.new_document())
        doc = dm.add_network(doc)
        assert [n.name for n in doc.networks] == ["network1", "network2"]
        doc = dm.rename_network(doc, 0, "network3")
        doc = dm.add_network(doc)
        assert doc.networks[-1].name not in ("network2", "network3")

    def test_cascading_rename(self, linked_doc):
        """Test that renaming rewrites every reference."""
        doc = dm.rename_network(linked_doc, 0, "edge")
        assert doc.services[0].networks == ["edge"]
        assert doc.services[1].networks == ["edge", "backend"]
        out = ComposeYamlConverter(doc).convert()
        assert "  edge:" in out
        assert "frontend" not in out
        assert linked_doc.services[0].networks == ["frontend"]

    def test_update_network_name_cascades(self, linked_doc):
        """Test that the generic field update routes renames."""
        doc = dm.update_network_field(linked_doc, 1, "name", "private")
        assert doc.services[1].networks == ["frontend", "private"]

    def test_rename_collision_rejected(self, linked_doc):
        """Test that two networks cannot share a name."""
        with pytest.raises(ValueError):
            dm.rename_network(linked_doc, 0, "backend")
        assert dm.rename_network(linked_doc, 0, "frontend").networks[0].name == "frontend"

    def test_rename_to_empty_rejected(self, linked_doc):
        """Test that clearing a name cannot orphan its references."""
        with pytest.raises(ValueError):
            dm.rename_network(linked_doc, 0, "")
        with pytest.raises(ValueError):
            dm.update_network_field(linked_doc, 0, "name", "  ")
        doc = dm.rename_network(linked_doc, 0, "edge")
        assert doc.services[0].networks == ["edge"]
        assert "frontend" not in ComposeYamlConverter(doc).convert()

    def test_naming_an_unnamed_network(self):
        """Test that an unnamed network leaves empty references alone."""
        doc = ComposeDocument(services=[ServiceDefinition(name="web", networks=[""])],
                              networks=[NetworkDefinition()])
        doc = dm.rename_network(doc, 0, "edge")
        assert doc.networks[0].name == "edge"
        assert doc.services[0].networks == [""]

    def test_cascading_delete(self, linked_doc):
        """Test that removing a network detaches services."""
        doc = dm.remove_network(linked_doc, 0)
        assert doc.services[0].networks == []
        assert doc.services[1].networks == ["backend"]
        assert [n.name for n in doc.networks] == ["backend"]

    def test_network_settings(self):
        """Test pair, IPAM and flag helpers."""
        doc = dm.add_network(dm.new_document(), "net")
        doc = dm.update_network_field(doc, 0, "attachable", True)
        doc = dm.add_network_pair(doc, 0, "driver_opts", "mtu", "1400")
        doc = dm.update_network_pair(doc, 0, "driver_opts", 0, "value", "1450")
        doc = dm.set_ipam_driver(doc, 0, "default")
        doc = dm.add_ipam_config(doc, 0)
        doc = dm.update_ipam_config(doc, 0, 0, "subnet", "10.0.0.0/24")
        doc = dm.add_ipam_option(doc, 0, "foo", "bar")
        net = doc.networks[0]
        assert net.attachable is True
        assert net.driver_opts[0].value == "1450"
        assert net.ipam.driver == "default"
        assert net.ipam.config[0].subnet == "10.0.0.0/24"
        assert net.ipam.options[0].key == "foo"
        doc = dm.remove_ipam_config(doc, 0, 0)
        doc = dm.remove_network_pair(doc, 0, "driver_opts", 0)
        assert doc.networks[0].ipam.config == []
        assert doc.networks[0].driver_opts == []

    def test_duplicate_add_rejected(self):
        """Test adding a network under a taken name."""
        doc = dm.add_network(dm.new_document(), "net")
        with pytest.raises(ValueError):
            dm.add_network(doc, "net")


class TestVolumes:
    """Tests for volume operations and their cascades."""

    def test_cascading_rename(self, linked_doc):
        """Test that renaming rewrites mount sources."""
        doc = dm.rename_volume(linked_doc, 0, "pg-data")
        assert doc.services[1].volumes[0].source == "pg-data"
        assert doc.services[1].volumes[1].source == "./logs"

    def test_cascading_delete(self, linked_doc):
        """Test that removing a volume drops the mounts using it."""
        doc = dm.remove_volume(linked_doc, 0)
        assert [m.source for m in doc.services[1].volumes] == ["./logs"]
        out = ComposeYamlConverter(doc).convert()
        assert "db-data" not in out
        assert "\nvolumes:" not in out

    def test_rename_collision_rejected(self):
        """Test that two volumes cannot share a name."""
        doc = dm.add_volume(dm.add_volume(dm.new_document()))
        with pytest.raises(ValueError):
            dm.update_volume_field(doc, 1, "name", "volume1")

    def test_rename_to_empty_rejected(self, linked_doc):
        """Test that clearing a volume name keeps its mounts attached."""
        with pytest.raises(ValueError):
            dm.rename_volume(linked_doc, 0, "")
        doc = dm.update_volume_field(linked_doc, 0, "name", "data")
        assert doc.services[1].volumes[0].source == "data"
        out = ComposeYamlConverter(doc).convert()
        assert "data:/var/lib/data" in out
        assert "db-data" not in out

    def test_convenience_options(self):
        """Test the type/device/o fields."""
        doc = dm.add_volume(dm.new_document(), "data")
        doc = dm.update_volume_field(doc, 0, "device", "/srv/data")
        doc = dm.add_volume_pair(doc, 0, "labels", "backup", "daily")
        assert doc.volumes[0].device == "/srv/data"
        assert doc.volumes[0].labels[0].value == "daily"


def test_digits_only():
    assert digits_only("80a8-0") == "8080"
    assert digits_only("") == ""


def test_reference_problems(linked_doc):
    doc = dm.update_service_field(linked_doc, 0, "depends_on", ["cache"])
    doc = dm.update_list_entry(doc, 0, "networks", 0, "nowhere")
    problems = dm.reference_problems(doc)
    assert "Service 'web' references unknown network 'nowhere'" in problems
    assert "Service 'web' depends on unknown service 'cache'" in problems
    assert dm.reference_problems(linked_doc) == []
