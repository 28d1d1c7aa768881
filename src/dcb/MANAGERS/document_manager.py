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
Edit operations on a compose document, keeping service references to
networks and volumes consistent under rename and delete.

Every operation takes the current document and returns a new one; the
input document is never modified.
"""
import logging
import re
from typing import Any, Callable, List, Sequence, TypeVar
from ..MODELS.compose_document import ComposeDocument
from ..MODELS.service_definition import (
    ServiceDefinition, PortMapping, VolumeMount, KeyValue, HealthCheck,
)
from ..MODELS.network_definition import NetworkDefinition, IpamConfig
from ..MODELS.volume_definition import VolumeDefinition

logger = logging.getLogger(__name__)

T = TypeVar("T")

STRING_LIST_FIELDS = ("depends_on", "networks", "dns", "extra_hosts", "security_opt")
SERVICE_PAIR_FIELDS = ("environment", "labels")
RESOURCE_PAIR_FIELDS = ("driver_opts", "labels")


def digits_only(value: str) -> str:
    """
    Input filter for port fields: keeps only the digit characters.
    """
    return re.sub(r'[^0-9]', '', value or '')


def _checked(items: Sequence[T], index: int, what: str) -> T:
    """
    Returns ``items[index]``, rejecting negative and out-of-range indices.

    :raises IndexError: If the index does not address an existing entry.
    """
    if not isinstance(index, int) or not 0 <= index < len(items):
        raise IndexError(f"{what} index {index} out of range ({len(items)} entries)")
    return items[index]


def _check_field(model: Any, field: str, allowed: Sequence[str] = ()) -> None:
    names = allowed or type(model).model_fields.keys()
    if field not in names:
        raise ValueError(f"Unknown {type(model).__name__} field: {field}")


def _unique_name(prefix: str, taken: Sequence[str]) -> str:
    n = len(taken) + 1
    while f"{prefix}{n}" in taken:
        n += 1
    return f"{prefix}{n}"


def _check_rename(entities: Sequence[Any], index: int, new_name: str, what: str) -> None:
    if not new_name or not new_name.strip():
        raise ValueError(f"A {what} name must not be empty")
    if any(e.name == new_name for i, e in enumerate(entities) if i != index):
        raise ValueError(f"A {what} named '{new_name}' already exists")


class DocumentManager:
    """
    Structural and field edits on a ComposeDocument.
    """

    @staticmethod
    def new_document() -> ComposeDocument:
        """
        Creates the document a fresh session starts with: one unnamed service.
        """
        return ComposeDocument()

    @staticmethod
    def _edit(document: ComposeDocument, edit: Callable[[ComposeDocument], None]) -> ComposeDocument:
        doc = document.model_copy(deep=True)
        edit(doc)
        return doc

    @staticmethod
    def _edit_service(document: ComposeDocument, index: int,
                      edit: Callable[[ServiceDefinition], None]) -> ComposeDocument:
        _checked(document.services, index, "service")
        return DocumentManager._edit(document, lambda doc: edit(doc.services[index]))

    @staticmethod
    def _edit_network(document: ComposeDocument, index: int,
                      edit: Callable[[NetworkDefinition], None]) -> ComposeDocument:
        _checked(document.networks, index, "network")
        return DocumentManager._edit(document, lambda doc: edit(doc.networks[index]))

    @staticmethod
    def _edit_volume(document: ComposeDocument, index: int,
                     edit: Callable[[VolumeDefinition], None]) -> ComposeDocument:
        _checked(document.volumes, index, "volume")
        return DocumentManager._edit(document, lambda doc: edit(doc.volumes[index]))

    # Services

    @staticmethod
    def add_service(document: ComposeDocument) -> ComposeDocument:
        """
        Appends a service with every field unset.
        """
        return DocumentManager._edit(document, lambda doc: doc.services.append(ServiceDefinition()))

    @staticmethod
    def remove_service(document: ComposeDocument, index: int) -> ComposeDocument:
        """
        Removes a service. The last remaining service is never removed.
        """
        _checked(document.services, index, "service")
        if len(document.services) == 1:
            logger.debug("Refusing to remove the only service")
            return document.model_copy(deep=True)
        return DocumentManager._edit(document, lambda doc: doc.services.pop(index))

    @staticmethod
    def update_service_field(document: ComposeDocument, index: int, field: str, value: Any) -> ComposeDocument:
        """
        Replaces a single service field. No other entity is affected.

        :raises ValueError: For an unknown field or a value of the wrong type.
        """
        _check_field(ServiceDefinition(), field)
        return DocumentManager._edit_service(document, index, lambda svc: setattr(svc, field, value))

    # Ports

    @staticmethod
    def add_port(document: ComposeDocument, index: int) -> ComposeDocument:
        return DocumentManager._edit_service(document, index, lambda svc: svc.ports.append(PortMapping()))

    @staticmethod
    def remove_port(document: ComposeDocument, index: int, port_index: int) -> ComposeDocument:
        _checked(_checked(document.services, index, "service").ports, port_index, "port")
        return DocumentManager._edit_service(document, index, lambda svc: svc.ports.pop(port_index))

    @staticmethod
    def update_port(document: ComposeDocument, index: int, port_index: int, field: str, value: str) -> ComposeDocument:
        """
        Updates the host, container or protocol of a port. Port numbers keep
        only their digits.
        """
        port = _checked(_checked(document.services, index, "service").ports, port_index, "port")
        _check_field(port, field)
        if field in ("host", "container"):
            value = digits_only(value)
        return DocumentManager._edit_service(
            document, index, lambda svc: setattr(svc.ports[port_index], field, value))

    # Volume mounts

    @staticmethod
    def add_volume_mount(document: ComposeDocument, index: int) -> ComposeDocument:
        return DocumentManager._edit_service(document, index, lambda svc: svc.volumes.append(VolumeMount()))

    @staticmethod
    def remove_volume_mount(document: ComposeDocument, index: int, mount_index: int) -> ComposeDocument:
        _checked(_checked(document.services, index, "service").volumes, mount_index, "volume mount")
        return DocumentManager._edit_service(document, index, lambda svc: svc.volumes.pop(mount_index))

    @staticmethod
    def update_volume_mount(document: ComposeDocument, index: int, mount_index: int,
                            field: str, value: Any) -> ComposeDocument:
        mount = _checked(_checked(document.services, index, "service").volumes, mount_index, "volume mount")
        _check_field(mount, field)
        return DocumentManager._edit_service(
            document, index, lambda svc: setattr(svc.volumes[mount_index], field, value))

    # Key/value pairs: environment, labels

    @staticmethod
    def add_pair(document: ComposeDocument, index: int, field: str,
                 key: str = "", value: str = "") -> ComposeDocument:
        """
        Appends a key/value pair to ``environment`` or ``labels``.
        """
        _check_field(ServiceDefinition(), field, SERVICE_PAIR_FIELDS)
        return DocumentManager._edit_service(
            document, index, lambda svc: getattr(svc, field).append(KeyValue(key=key, value=value)))

    @staticmethod
    def remove_pair(document: ComposeDocument, index: int, field: str, pair_index: int) -> ComposeDocument:
        _check_field(ServiceDefinition(), field, SERVICE_PAIR_FIELDS)
        _checked(getattr(_checked(document.services, index, "service"), field), pair_index, field)
        return DocumentManager._edit_service(document, index, lambda svc: getattr(svc, field).pop(pair_index))

    @staticmethod
    def update_pair(document: ComposeDocument, index: int, field: str, pair_index: int,
                    part: str, value: str) -> ComposeDocument:
        """
        Updates the ``key`` or ``value`` part of an environment variable or label.
        """
        _check_field(ServiceDefinition(), field, SERVICE_PAIR_FIELDS)
        pair = _checked(getattr(_checked(document.services, index, "service"), field), pair_index, field)
        _check_field(pair, part)
        return DocumentManager._edit_service(
            document, index, lambda svc: setattr(getattr(svc, field)[pair_index], part, value))

    @staticmethod
    def add_environment(document: ComposeDocument, index: int, key: str = "", value: str = "") -> ComposeDocument:
        return DocumentManager.add_pair(document, index, "environment", key, value)

    @staticmethod
    def remove_environment(document: ComposeDocument, index: int, pair_index: int) -> ComposeDocument:
        return DocumentManager.remove_pair(document, index, "environment", pair_index)

    @staticmethod
    def update_environment(document: ComposeDocument, index: int, pair_index: int,
                           part: str, value: str) -> ComposeDocument:
        return DocumentManager.update_pair(document, index, "environment", pair_index, part, value)

    @staticmethod
    def add_label(document: ComposeDocument, index: int, key: str = "", value: str = "") -> ComposeDocument:
        return DocumentManager.add_pair(document, index, "labels", key, value)

    @staticmethod
    def remove_label(document: ComposeDocument, index: int, pair_index: int) -> ComposeDocument:
        return DocumentManager.remove_pair(document, index, "labels", pair_index)

    @staticmethod
    def update_label(document: ComposeDocument, index: int, pair_index: int,
                     part: str, value: str) -> ComposeDocument:
        return DocumentManager.update_pair(document, index, "labels", pair_index, part, value)

    # String lists: depends_on, networks, dns, extra_hosts, security_opt

    @staticmethod
    def add_list_entry(document: ComposeDocument, index: int, field: str, value: str = "") -> ComposeDocument:
        _check_field(ServiceDefinition(), field, STRING_LIST_FIELDS)
        return DocumentManager._edit_service(document, index, lambda svc: getattr(svc, field).append(value))

    @staticmethod
    def remove_list_entry(document: ComposeDocument, index: int, field: str, entry_index: int) -> ComposeDocument:
        _check_field(ServiceDefinition(), field, STRING_LIST_FIELDS)
        _checked(getattr(_checked(document.services, index, "service"), field), entry_index, field)
        return DocumentManager._edit_service(document, index, lambda svc: getattr(svc, field).pop(entry_index))

    @staticmethod
    def update_list_entry(document: ComposeDocument, index: int, field: str,
                          entry_index: int, value: str) -> ComposeDocument:
        _check_field(ServiceDefinition(), field, STRING_LIST_FIELDS)
        _checked(getattr(_checked(document.services, index, "service"), field), entry_index, field)

        def edit(svc: ServiceDefinition):
            getattr(svc, field)[entry_index] = value

        return DocumentManager._edit_service(document, index, edit)

    @staticmethod
    def add_depends_on(document: ComposeDocument, index: int, value: str = "") -> ComposeDocument:
        return DocumentManager.add_list_entry(document, index, "depends_on", value)

    @staticmethod
    def remove_depends_on(document: ComposeDocument, index: int, entry_index: int) -> ComposeDocument:
        return DocumentManager.remove_list_entry(document, index, "depends_on", entry_index)

    @staticmethod
    def update_depends_on(document: ComposeDocument, index: int, entry_index: int, value: str) -> ComposeDocument:
        return DocumentManager.update_list_entry(document, index, "depends_on", entry_index, value)

    @staticmethod
    def add_security_opt(document: ComposeDocument, index: int, value: str = "") -> ComposeDocument:
        return DocumentManager.add_list_entry(document, index, "security_opt", value)

    @staticmethod
    def remove_security_opt(document: ComposeDocument, index: int, entry_index: int) -> ComposeDocument:
        return DocumentManager.remove_list_entry(document, index, "security_opt", entry_index)

    @staticmethod
    def update_security_opt(document: ComposeDocument, index: int, entry_index: int, value: str) -> ComposeDocument:
        return DocumentManager.update_list_entry(document, index, "security_opt", entry_index, value)

    # Healthcheck

    @staticmethod
    def set_healthcheck_field(document: ComposeDocument, index: int, field: str, value: str) -> ComposeDocument:
        """
        Sets one healthcheck field, creating the healthcheck on first use.
        """
        _check_field(HealthCheck(), field)

        def edit(svc: ServiceDefinition):
            if svc.healthcheck is None:
                svc.healthcheck = HealthCheck()
            setattr(svc.healthcheck, field, value)

        return DocumentManager._edit_service(document, index, edit)

    @staticmethod
    def remove_healthcheck(document: ComposeDocument, index: int) -> ComposeDocument:
        return DocumentManager._edit_service(document, index, lambda svc: setattr(svc, "healthcheck", None))

    # Networks

    @staticmethod
    def add_network(document: ComposeDocument, name: str = "") -> ComposeDocument:
        """
        Appends a network, named ``network<N>`` unless a name is given.

        :raises ValueError: If the name is already used by another network.
        """
        taken = [n.name for n in document.networks]
        name = name or _unique_name("network", taken)
        if name in taken:
            raise ValueError(f"A network named '{name}' already exists")
        return DocumentManager._edit(document, lambda doc: doc.networks.append(NetworkDefinition(name=name)))

    @staticmethod
    def remove_network(document: ComposeDocument, index: int) -> ComposeDocument:
        """
        Removes a network and detaches every service from it.
        """
        removed = _checked(document.networks, index, "network").name

        def edit(doc: ComposeDocument):
            doc.networks.pop(index)
            if removed:
                for svc in doc.services:
                    svc.networks = [n for n in svc.networks if n != removed]

        return DocumentManager._edit(document, edit)

    @staticmethod
    def rename_network(document: ComposeDocument, index: int, new_name: str) -> ComposeDocument:
        """
        Renames a network and rewrites every service reference to it.

        :raises ValueError: If the new name is empty or another network already has it.
        """
        old_name = _checked(document.networks, index, "network").name
        _check_rename(document.networks, index, new_name, "network")

        def edit(doc: ComposeDocument):
            doc.networks[index].name = new_name
            if old_name:
                for svc in doc.services:
                    svc.networks = [new_name if n == old_name else n for n in svc.networks]

        return DocumentManager._edit(document, edit)

    @staticmethod
    def update_network_field(document: ComposeDocument, index: int, field: str, value: Any) -> ComposeDocument:
        """
        Replaces a single network field. Renames go through ``rename_network``.
        """
        network = _checked(document.networks, index, "network")
        _check_field(network, field)
        if field == "name":
            return DocumentManager.rename_network(document, index, value)
        return DocumentManager._edit_network(document, index, lambda net: setattr(net, field, value))

    @staticmethod
    def add_network_pair(document: ComposeDocument, index: int, field: str,
                         key: str = "", value: str = "") -> ComposeDocument:
        """
        Appends a ``driver_opts`` or ``labels`` entry to a network.
        """
        _check_field(NetworkDefinition(), field, RESOURCE_PAIR_FIELDS)
        return DocumentManager._edit_network(
            document, index, lambda net: getattr(net, field).append(KeyValue(key=key, value=value)))

    @staticmethod
    def remove_network_pair(document: ComposeDocument, index: int, field: str, pair_index: int) -> ComposeDocument:
        _check_field(NetworkDefinition(), field, RESOURCE_PAIR_FIELDS)
        _checked(getattr(_checked(document.networks, index, "network"), field), pair_index, field)
        return DocumentManager._edit_network(document, index, lambda net: getattr(net, field).pop(pair_index))

    @staticmethod
    def update_network_pair(document: ComposeDocument, index: int, field: str, pair_index: int,
                            part: str, value: str) -> ComposeDocument:
        _check_field(NetworkDefinition(), field, RESOURCE_PAIR_FIELDS)
        pair = _checked(getattr(_checked(document.networks, index, "network"), field), pair_index, field)
        _check_field(pair, part)
        return DocumentManager._edit_network(
            document, index, lambda net: setattr(getattr(net, field)[pair_index], part, value))

    @staticmethod
    def set_ipam_driver(document: ComposeDocument, index: int, driver: str) -> ComposeDocument:
        return DocumentManager._edit_network(document, index, lambda net: setattr(net.ipam, "driver", driver))

    @staticmethod
    def add_ipam_config(document: ComposeDocument, index: int, subnet: str = "", gateway: str = "") -> ComposeDocument:
        return DocumentManager._edit_network(
            document, index, lambda net: net.ipam.config.append(IpamConfig(subnet=subnet, gateway=gateway)))

    @staticmethod
    def remove_ipam_config(document: ComposeDocument, index: int, config_index: int) -> ComposeDocument:
        _checked(_checked(document.networks, index, "network").ipam.config, config_index, "IPAM config")
        return DocumentManager._edit_network(document, index, lambda net: net.ipam.config.pop(config_index))

    @staticmethod
    def update_ipam_config(document: ComposeDocument, index: int, config_index: int,
                           field: str, value: str) -> ComposeDocument:
        config = _checked(_checked(document.networks, index, "network").ipam.config, config_index, "IPAM config")
        _check_field(config, field)
        return DocumentManager._edit_network(
            document, index, lambda net: setattr(net.ipam.config[config_index], field, value))

    @staticmethod
    def add_ipam_option(document: ComposeDocument, index: int, key: str = "", value: str = "") -> ComposeDocument:
        return DocumentManager._edit_network(
            document, index, lambda net: net.ipam.options.append(KeyValue(key=key, value=value)))

    @staticmethod
    def remove_ipam_option(document: ComposeDocument, index: int, option_index: int) -> ComposeDocument:
        _checked(_checked(document.networks, index, "network").ipam.options, option_index, "IPAM option")
        return DocumentManager._edit_network(document, index, lambda net: net.ipam.options.pop(option_index))

    @staticmethod
    def update_ipam_option(document: ComposeDocument, index: int, option_index: int,
                           part: str, value: str) -> ComposeDocument:
        option = _checked(_checked(document.networks, index, "network").ipam.options, option_index, "IPAM option")
        _check_field(option, part)
        return DocumentManager._edit_network(
            document, index, lambda net: setattr(net.ipam.options[option_index], part, value))

    # Volumes

    @staticmethod
    def add_volume(document: ComposeDocument, name: str = "") -> ComposeDocument:
        """
        Appends a volume, named ``volume<N>`` unless a name is given.

        :raises ValueError: If the name is already used by another volume.
        """
        taken = [v.name for v in document.volumes]
        name = name or _unique_name("volume", taken)
        if name in taken:
            raise ValueError(f"A volume named '{name}' already exists")
        return DocumentManager._edit(document, lambda doc: doc.volumes.append(VolumeDefinition(name=name)))

    @staticmethod
    def remove_volume(document: ComposeDocument, index: int) -> ComposeDocument:
        """
        Removes a volume together with every mount that uses it.
        """
        removed = _checked(document.volumes, index, "volume").name

        def edit(doc: ComposeDocument):
            doc.volumes.pop(index)
            if removed:
                for svc in doc.services:
                    svc.volumes = [m for m in svc.volumes if m.source != removed]

        return DocumentManager._edit(document, edit)

    @staticmethod
    def rename_volume(document: ComposeDocument, index: int, new_name: str) -> ComposeDocument:
        """
        Renames a volume and rewrites every mount that uses it.

        :raises ValueError: If the new name is empty or another volume already has it.
        """
        old_name = _checked(document.volumes, index, "volume").name
        _check_rename(document.volumes, index, new_name, "volume")

        def edit(doc: ComposeDocument):
            doc.volumes[index].name = new_name
            if old_name:
                for svc in doc.services:
                    for mount in svc.volumes:
                        if mount.source == old_name:
                            mount.source = new_name

        return DocumentManager._edit(document, edit)

    @staticmethod
    def update_volume_field(document: ComposeDocument, index: int, field: str, value: Any) -> ComposeDocument:
        """
        Replaces a single volume field. Renames go through ``rename_volume``.
        """
        volume = _checked(document.volumes, index, "volume")
        _check_field(volume, field)
        if field == "name":
            return DocumentManager.rename_volume(document, index, value)
        return DocumentManager._edit_volume(document, index, lambda vol: setattr(vol, field, value))

    @staticmethod
    def add_volume_pair(document: ComposeDocument, index: int, field: str,
                        key: str = "", value: str = "") -> ComposeDocument:
        """
        Appends a ``driver_opts`` or ``labels`` entry to a volume.
        """
        _check_field(VolumeDefinition(), field, RESOURCE_PAIR_FIELDS)
        return DocumentManager._edit_volume(
            document, index, lambda vol: getattr(vol, field).append(KeyValue(key=key, value=value)))

    @staticmethod
    def remove_volume_pair(document: ComposeDocument, index: int, field: str, pair_index: int) -> ComposeDocument:
        _check_field(VolumeDefinition(), field, RESOURCE_PAIR_FIELDS)
        _checked(getattr(_checked(document.volumes, index, "volume"), field), pair_index, field)
        return DocumentManager._edit_volume(document, index, lambda vol: getattr(vol, field).pop(pair_index))

    @staticmethod
    def update_volume_pair(document: ComposeDocument, index: int, field: str, pair_index: int,
                           part: str, value: str) -> ComposeDocument:
        _check_field(VolumeDefinition(), field, RESOURCE_PAIR_FIELDS)
        pair = _checked(getattr(_checked(document.volumes, index, "volume"), field), pair_index, field)
        _check_field(pair, part)
        return DocumentManager._edit_volume(
            document, index, lambda vol: setattr(getattr(vol, field)[pair_index], part, value))

    # Checks

    @staticmethod
    def reference_problems(document: ComposeDocument) -> List[str]:
        """
        Lists duplicate names and service references to networks or
        services that do not exist. Mount sources are not checked since
        they may be host paths.

        :return: Human readable problem descriptions, empty when consistent.
        """
        problems = []
        for what, entities in (("service", document.services), ("network", document.networks),
                               ("volume", document.volumes)):
            seen = set()
            for entity in entities:
                if entity.name and entity.name in seen:
                    problems.append(f"Duplicate {what} name '{entity.name}'")
                seen.add(entity.name)

        networks = {n.name for n in document.networks if n.name}
        services = {s.name for s in document.services if s.name}
        for svc in document.services:
            label = svc.name or "<unnamed>"
            for ref in svc.networks:
                if ref and ref not in networks:
                    problems.append(f"Service '{label}' references unknown network '{ref}'")
            for dep in svc.depends_on:
                if dep and dep not in services:
                    problems.append(f"Service '{label}' depends on unknown service '{dep}'")
        return problems
