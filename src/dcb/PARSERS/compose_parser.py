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
Parsers reading Docker Compose YAML files into an editable document.
"""
import json
import logging
import yaml
from pydantic import ValidationError
from typing import Dict, Any, List
from ..MODELS.compose_document import ComposeDocument
from ..MODELS.service_definition import (
    ServiceDefinition, RestartPolicyCondition, PortMapping, VolumeMount, KeyValue, HealthCheck,
)
from ..MODELS.network_definition import NetworkDefinition, IpamSettings, IpamConfig
from ..MODELS.volume_definition import VolumeDefinition
from ..UTILS.yaml_loader import load_compose

logger = logging.getLogger(__name__)


class TemplateReadError(ValueError):
    """
    Raised when a compose template could not be read.
    """


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _names(value: Any) -> List[str]:
    """
    Names from either a list or the keys of a map (depends_on, networks).
    """
    if isinstance(value, dict):
        return [str(k) for k in value]
    if isinstance(value, (list, tuple)):
        return [_scalar(v) for v in value]
    if value is None:
        return []
    return [_scalar(value)]


def _pairs(value: Any) -> List[KeyValue]:
    """
    Key/value pairs from a ``KEY=VALUE`` list or a map. A bare ``KEY``
    or a null map value keeps None as its value.
    """
    if isinstance(value, dict):
        return [KeyValue(key=str(k), value=None if v is None else _scalar(v)) for k, v in value.items()]
    pairs = []
    for entry in value or []:
        key, sep, val = _scalar(entry).partition('=')
        pairs.append(KeyValue(key=key, value=val if sep else None))
    return pairs


def _command_text(value: Any) -> str:
    """
    Keeps exec-form lists as JSON so their tokens survive unchanged.
    """
    if isinstance(value, (list, tuple)):
        return json.dumps([_scalar(v) for v in value])
    return _scalar(value)


def _external(value: Any) -> tuple:
    if isinstance(value, dict):
        return True, _scalar(value.get('name'))
    return bool(value), ""


class ComposeParser:
    """
    Parser for docker-compose.yml files.
    """
    def parse(self, compose_path: str) -> ComposeDocument:
        """
        Parses a compose file from a path.

        :param compose_path: Path to the compose file.
        :return: Parsed document.
        """
        with open(compose_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> ComposeDocument:
        """
        Parses a compose file from a string.

        :param content: YAML content of the compose file.
        :return: Parsed document.
        :raises TemplateReadError: If the content is not a readable compose file.
        """
        try:
            data = load_compose(content)
        except yaml.YAMLError as e:
            raise TemplateReadError(f"This template could not be read: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TemplateReadError("This template could not be read: expected a mapping at the top level")

        try:
            services = [self._parse_service(str(name), spec or {})
                        for name, spec in (data.get('services') or {}).items()]
            networks = [self._parse_network(str(name), spec or {})
                        for name, spec in (data.get('networks') or {}).items()]
            volumes = [self._parse_volume(str(name), spec or {})
                       for name, spec in (data.get('volumes') or {}).items()]
        except (AttributeError, TypeError, ValidationError) as e:
            raise TemplateReadError(f"This template could not be read: {e}") from e

        if not services:
            services = [ServiceDefinition()]
        return ComposeDocument(services=services, networks=networks, volumes=volumes)

    def _parse_service(self, name: str, spec: Dict[str, Any]) -> ServiceDefinition:
        """
        Parses a single service definition from a compose file.

        :param name: The name of the service.
        :param spec: The service specification dictionary.
        :return: A ServiceDefinition instance.
        """
        # Restart policy
        # An unquoted `restart: no` loads as False
        restart = "no" if spec.get('restart') is False else _scalar(spec.get('restart'))
        if restart and restart not in {c.value for c in RestartPolicyCondition}:
            logger.warning("Service %s: unsupported restart policy %r ignored", name, restart)
            restart = ""

        # Volumes
        volumes = []
        for v in spec.get('volumes', []) or []:
            if isinstance(v, dict):
                volumes.append(VolumeMount(source=_scalar(v.get('source')), target=_scalar(v.get('target')),
                                           read_only=bool(v.get('read_only', False))))
                continue
            parts = _scalar(v).split(':')
            if len(parts) == 1:
                volumes.append(VolumeMount(target=parts[0]))
            else:
                volumes.append(VolumeMount(source=parts[0], target=parts[1],
                                           read_only=len(parts) > 2 and 'ro' in parts[2].split(',')))

        # Ports
        ports = [self._parse_port(name, p) for p in spec.get('ports', []) or []]

        # Healthcheck
        healthcheck = None
        hc = spec.get('healthcheck')
        if isinstance(hc, dict) and hc.get('test'):
            healthcheck = HealthCheck(
                test=_command_text(hc.get('test')),
                interval=_scalar(hc.get('interval')),
                timeout=_scalar(hc.get('timeout')),
                retries=_scalar(hc.get('retries')),
                start_period=_scalar(hc.get('start_period')),
                start_interval=_scalar(hc.get('start_interval')),
            )

        extra_hosts = spec.get('extra_hosts') or []
        if isinstance(extra_hosts, dict):
            extra_hosts = [f"{host}:{ip}" for host, ip in extra_hosts.items()]

        env_file = spec.get('env_file') or ""
        if isinstance(env_file, (list, tuple)):
            env_file = ", ".join(_scalar(e.get('path') if isinstance(e, dict) else e) for e in env_file)

        return ServiceDefinition(
            name=name,
            image=_scalar(spec.get('image')),
            container_name=_scalar(spec.get('container_name')),
            command=_command_text(spec.get('command')),
            entrypoint=_command_text(spec.get('entrypoint')),
            working_dir=_scalar(spec.get('working_dir')),
            user=_scalar(spec.get('user')),
            restart=restart or None,
            environment=_pairs(spec.get('environment')),
            env_file=_scalar(env_file),
            ports=ports,
            networks=_names(spec.get('networks')),
            dns=_names(spec.get('dns')),
            extra_hosts=_names(extra_hosts),
            volumes=volumes,
            shm_size=_scalar(spec.get('shm_size')),
            healthcheck=healthcheck,
            depends_on=_names(spec.get('depends_on')),
            privileged=spec.get('privileged'),
            read_only=spec.get('read_only'),
            security_opt=_names(spec.get('security_opt')),
            labels=_pairs(spec.get('labels')),
        )

    def _parse_port(self, service: str, port: Any) -> PortMapping:
        """
        Parses short (``[ip:]host:container[/proto]``) or long port syntax.
        """
        if isinstance(port, dict):
            return PortMapping(host=_scalar(port.get('published')), container=_scalar(port.get('target')),
                               protocol=port.get('protocol') or 'tcp')
        text, _, protocol = _scalar(port).partition('/')
        parts = text.split(':')
        if len(parts) > 2:
            logger.debug("Service %s: host IP dropped from port %s", service, text)
        container = parts[-1]
        host = parts[-2] if len(parts) > 1 else ""
        return PortMapping(host=host, container=container, protocol=protocol or 'tcp')

    def _parse_network(self, name: str, spec: Dict[str, Any]) -> NetworkDefinition:
        external, external_name = _external(spec.get('external'))
        if external and not external_name and spec.get('name'):
            external_name = _scalar(spec.get('name'))

        ipam_spec = spec.get('ipam') or {}
        ipam = IpamSettings(
            driver=_scalar(ipam_spec.get('driver')),
            config=[IpamConfig(subnet=_scalar(c.get('subnet')), gateway=_scalar(c.get('gateway')))
                    for c in ipam_spec.get('config') or []],
            options=_pairs(ipam_spec.get('options')),
        )
        return NetworkDefinition(
            name=name,
            driver=_scalar(spec.get('driver')),
            driver_opts=_pairs(spec.get('driver_opts')),
            attachable=spec.get('attachable'),
            internal=spec.get('internal'),
            enable_ipv6=spec.get('enable_ipv6'),
            labels=_pairs(spec.get('labels')),
            external=external,
            external_name=external_name,
            ipam=ipam,
        )

    def _parse_volume(self, name: str, spec: Dict[str, Any]) -> VolumeDefinition:
        external, external_name = _external(spec.get('external'))
        if external and not external_name and spec.get('name'):
            external_name = _scalar(spec.get('name'))

        return VolumeDefinition(
            name=name,
            driver=_scalar(spec.get('driver')),
            driver_opts=_pairs(spec.get('driver_opts')),
            labels=_pairs(spec.get('labels')),
            external=external,
            external_name=external_name,
        )

    def parse_document(self, content: str) -> ComposeDocument:
        """
        Reads a saved document in model form (JSON or YAML), as written by
        ``ComposeDocument.model_dump``.

        :param content: The serialized document.
        :return: The document.
        :raises TemplateReadError: If the content is not a valid document.
        """
        try:
            data = load_compose(content) or {}
            return ComposeDocument.model_validate(data)
        except (yaml.YAMLError, ValidationError) as e:
            raise TemplateReadError(f"This document could not be read: {e}") from e
