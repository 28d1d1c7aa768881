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
Converter projecting a compose document onto Docker Compose YAML text.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Sequence
from ..MODELS.compose_document import ComposeDocument
from ..MODELS.service_definition import ServiceDefinition, HealthCheck, KeyValue, Protocol
from ..MODELS.network_definition import NetworkDefinition
from ..MODELS.volume_definition import VolumeDefinition
from ..UTILS.command_tokenizer import tokenize_command
from ..UTILS.yaml_dumper import FlowList, QuotedString, dump_compose

logger = logging.getLogger(__name__)


def _non_empty(values: Sequence[str]) -> List[str]:
    return [v for v in values if v and v.strip()]


def _pairs_to_map(pairs: Sequence[KeyValue]) -> Dict[str, Optional[str]]:
    """
    Collapses key/value pairs into a map. Empty keys are dropped and a
    repeated key keeps its first position with the last value.
    """
    result = {}
    for pair in pairs:
        if pair.key:
            result[pair.key] = pair.value
    return result


def _pairs_to_list(pairs: Sequence[KeyValue]) -> List[str]:
    # KEY alone when the value is unset
    return [k if v is None else f"{k}={v}" for k, v in _pairs_to_map(pairs).items()]


def _prune(mapping: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drops keys whose value is None, an empty string or an empty container.
    """
    return {k: v for k, v in mapping.items() if v is not None and v != "" and v != [] and v != {}}


def render_port(host: str, container: str, protocol: Protocol = Protocol.TCP) -> Optional[str]:
    """
    Renders a port in short syntax, e.g. ``8080:80/udp``.

    :return: The short syntax, or None when no container port is set.
    """
    if not container:
        return None
    value = f"{host}:{container}" if host else container
    if Protocol(protocol) != Protocol.TCP:
        value = f"{value}/{Protocol(protocol).value}"
    return value


def render_mount(source: str, target: str, read_only: bool = False) -> Optional[str]:
    """
    Renders a volume mount in short syntax, e.g. ``data:/var/lib/data:ro``.

    :return: The short syntax, or None when no target path is set.
    """
    if not target:
        return None
    value = f"{source}:{target}" if source else target
    if read_only and source:
        value += ":ro"
    return value


def _command(text: str) -> Optional[FlowList]:
    tokens = tokenize_command(text)
    return FlowList(tokens) if tokens else None


def _env_file(text: str) -> Any:
    paths = [p.strip() for p in text.split(',') if p.strip()]
    if len(paths) == 1:
        return paths[0]
    return paths


def _healthcheck(hc: Optional[HealthCheck]) -> Optional[Dict[str, Any]]:
    if hc is None or not hc.test.strip():
        return None
    retries = hc.retries.strip()
    return _prune({
        "test": _command(hc.test),
        "interval": hc.interval.strip(),
        "timeout": hc.timeout.strip(),
        "retries": int(retries) if retries.isdigit() else retries,
        "start_period": hc.start_period.strip(),
        "start_interval": hc.start_interval.strip(),
    })


def render_service(svc: ServiceDefinition) -> Dict[str, Any]:
    """
    Renders one service as an ordered map, omitting every unset field.

    :param svc: The service definition.
    :return: The Compose map for the service.
    """
    ports = [render_port(p.host, p.container, p.protocol) for p in svc.ports]
    mounts = [render_mount(m.source, m.target, m.read_only) for m in svc.volumes]

    return _prune({
        "image": svc.image,
        "container_name": svc.container_name,
        "command": _command(svc.command),
        "entrypoint": _command(svc.entrypoint),
        "restart": svc.restart.value if svc.restart else None,
        "working_dir": svc.working_dir,
        "user": QuotedString(svc.user) if svc.user else None,
        "env_file": _env_file(svc.env_file),
        "ports": [p for p in ports if p],
        "volumes": [m for m in mounts if m],
        "environment": _pairs_to_list(svc.environment),
        "healthcheck": _healthcheck(svc.healthcheck),
        "depends_on": _non_empty(svc.depends_on),
        "networks": _non_empty(svc.networks),
        "dns": _non_empty(svc.dns),
        "extra_hosts": _non_empty(svc.extra_hosts),
        "security_opt": _non_empty(svc.security_opt),
        "shm_size": svc.shm_size,
        "labels": _pairs_to_list(svc.labels),
        "privileged": svc.privileged,
        "read_only": svc.read_only,
    })


def _external(external_name: str) -> Any:
    return {"name": external_name} if external_name else True


def render_network(net: NetworkDefinition) -> Dict[str, Any]:
    """
    Renders one top-level network. Driver settings are kept alongside
    ``external`` when both are given.
    """
    ipam = _prune({
        "driver": net.ipam.driver,
        "config": [_prune({"subnet": c.subnet, "gateway": c.gateway}) for c in net.ipam.config
                   if c.subnet or c.gateway],
        "options": _pairs_to_map(net.ipam.options),
    })
    return _prune({
        "external": _external(net.external_name) if net.external else None,
        "driver": net.driver,
        "driver_opts": _pairs_to_map(net.driver_opts),
        "attachable": net.attachable,
        "internal": net.internal,
        "enable_ipv6": net.enable_ipv6,
        "ipam": ipam,
        "labels": _pairs_to_list(net.labels),
    })


def render_volume(vol: VolumeDefinition) -> Dict[str, Any]:
    """
    Renders one top-level volume, merging ``type``/``device``/``o`` into ``driver_opts``.
    """
    driver_opts = _pairs_to_map(vol.driver_opts)
    for key in ("type", "device", "o"):
        value = getattr(vol, key)
        if value:
            driver_opts[key] = value
    return _prune({
        "external": _external(vol.external_name) if vol.external else None,
        "driver": vol.driver,
        "driver_opts": driver_opts,
        "labels": _pairs_to_list(vol.labels),
    })


def build_compose(services: Sequence[ServiceDefinition],
                  networks: Sequence[NetworkDefinition] = (),
                  volumes: Sequence[VolumeDefinition] = ()) -> Dict[str, Any]:
    """
    Builds the ordered Compose structure. Unnamed entities are skipped.
    """
    compose: Dict[str, Any] = {"services": {}}
    for svc in services:
        if not svc.name:
            continue
        compose["services"][svc.name] = render_service(svc)

    named_networks = [n for n in networks if n.name]
    if named_networks:
        compose["networks"] = {n.name: render_network(n) for n in named_networks}

    named_volumes = [v for v in volumes if v.name]
    if named_volumes:
        compose["volumes"] = {v.name: render_volume(v) for v in named_volumes}

    return compose


def project(services: Sequence[ServiceDefinition],
            networks: Sequence[NetworkDefinition] = (),
            volumes: Sequence[VolumeDefinition] = ()) -> str:
    """
    Projects services, networks and volumes onto Compose YAML text.
    The same input always yields byte-identical output.

    :param services: Services in display order.
    :param networks: Top-level networks in display order.
    :param volumes: Top-level volumes in display order.
    :return: The YAML text.
    """
    compose = build_compose(services, networks, volumes)
    text = dump_compose(compose)
    logger.debug("Projected %d services, %d networks, %d volumes",
                 len(compose["services"]), len(compose.get("networks", {})), len(compose.get("volumes", {})))
    return text


class ComposeYamlConverter:
    """
    Converts a compose document into a docker-compose.yml file.
    """

    def __init__(self, document: ComposeDocument):
        """
        Initializes the converter.

        :param document: The document to convert.
        """
        self.document = document

    def convert(self) -> str:
        """
        Generates the YAML text for the document.

        :return: The YAML text.
        """
        return project(self.document.services, self.document.networks, self.document.volumes)

    def write(self, output_path: str = "docker-compose.yml") -> str:
        """
        Writes the YAML text to a file.

        :param output_path: Where to write the file.
        :return: The path written.
        """
        parent = os.path.dirname(output_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(output_path, "w") as f:
            f.write(self.convert())
        logger.info("Compose file written to %s", output_path)
        return output_path
