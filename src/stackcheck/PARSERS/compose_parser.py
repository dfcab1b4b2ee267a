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
Parsers for deployment descriptor YAML files.
"""
import logging
import os
import re
from typing import Dict, Any, List, Optional, Set

import yaml
from pydantic import ValidationError

from ..errors import DescriptorSyntaxError
from ..MODELS.compose_descriptor import ComposeDescriptor, NamedVolume
from ..MODELS.service_definition import (
    EnvFileReference, MountType, PortMapping, PortProtocol, RestartPolicy,
    RestartPolicyCondition, ServiceDefinition, VolumeMount,
)
from ..UTILS.string_interpolation import EnvironmentInterpolator
from .env_parser import load_project_env
from .yaml_loader import load_yaml

logger = logging.getLogger(__name__)

TOP_LEVEL_KEYS = ('version', 'services', 'volumes')
SERVICE_KEYS = ('image', 'env_file', 'depends_on', 'ports', 'volumes', 'restart')
MOUNT_KEYS = ('source', 'target', 'type', 'read_only')
VOLUME_KEYS = ('driver', 'driver_opts', 'external', 'labels', 'name')

# [host_ip:][host_port:]container_port[/protocol]
_PORT_RE = re.compile(
    r'^(?:(?P<ip>\[[0-9a-fA-F:]+\]|\d+\.\d+\.\d+\.\d+):)?'
    r'(?:(?P<host>\d*):)?'
    r'(?P<container>\d+)'
    r'(?:/(?P<proto>[a-z]+))?$'
)
_RESTART_RE = re.compile(r'^(?P<condition>[a-z-]+)(?::(?P<retries>\d+))?$')


def _is_known(key: Any, known: tuple) -> bool:
    # x-* keys are extension fields, usually holding YAML anchors
    return key in known or (isinstance(key, str) and key.startswith('x-'))


class ComposeParser:
    """
    Parser for docker-compose style deployment descriptors.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None, project_dir: Optional[str] = None,
                 strict_interpolation: bool = False):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: Variables for interpolation. Defaults to the project .env overlaid
            with os.environ.
        :param project_dir: Directory used to find the project .env. Defaults to the
            directory of the parsed file.
        :param strict_interpolation: Fail on unset variables instead of substituting ''.
        """
        self.context = context
        self.project_dir = project_dir
        self.strict_interpolation = strict_interpolation

    def parse(self, compose_path: str) -> ComposeDescriptor:
        """
        Parses a descriptor from a path.

        :param compose_path: Path to the descriptor.
        :return: Parsed descriptor.
        :raises FileNotFoundError: If the file does not exist.
        :raises DescriptorSyntaxError: If the file is not a well-formed descriptor.
        """
        with open(compose_path, 'r', encoding='utf-8') as f:
            try:
                content = f.read()
            except UnicodeDecodeError as e:
                raise DescriptorSyntaxError(f"{compose_path} is not valid UTF-8: {e.reason} at byte {e.start}") from e
        project_dir = self.project_dir or os.path.dirname(os.path.abspath(compose_path))
        logger.debug("Parsing %s (project dir %s)", compose_path, project_dir)
        return self.parse_from_string(content, project_dir=project_dir)

    def parse_from_string(self, content: str, project_dir: Optional[str] = None) -> ComposeDescriptor:
        """
        Parses a descriptor from a string.

        :param content: YAML content of the descriptor.
        :param project_dir: Directory used to look up the project .env.
        :return: Parsed descriptor.
        :raises DescriptorSyntaxError: If the content is not a well-formed descriptor.
        """
        try:
            data = load_yaml(content)
        except yaml.YAMLError as e:
            raise DescriptorSyntaxError(f"Invalid YAML: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise DescriptorSyntaxError(f"top level must be a mapping, got {type(data).__name__}")

        missing: Set[str] = set()
        data = EnvironmentInterpolator.interpolate_data(
            data, self._context(project_dir), strict=self.strict_interpolation, missing=missing)
        for var_name in sorted(missing):
            logger.warning("The %s variable is not set. Defaulting to a blank string.", var_name)

        version = data.get('version')
        services_spec = self._mapping(data.get('services'), key='services')
        volumes_spec = self._mapping(data.get('volumes'), key='volumes')

        services = {}
        for name, spec in services_spec.items():
            services[str(name)] = self._parse_service(str(name), spec)

        volumes = {}
        for name, spec in volumes_spec.items():
            volumes[str(name)] = self._parse_volume(str(name), spec)

        return ComposeDescriptor(
            version=str(version) if version is not None else None,
            services=services,
            volumes=volumes,
            unsupported_keys=[str(k) for k in data if not _is_known(k, TOP_LEVEL_KEYS)],
        )

    def _context(self, project_dir: Optional[str]) -> Dict[str, str]:
        if self.context is not None:
            return self.context
        context = load_project_env(project_dir or '.')
        context.update(os.environ)
        return context

    def _mapping(self, value: Any, key: str, service: Optional[str] = None) -> Dict[Any, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise DescriptorSyntaxError(f"must be a mapping, got {type(value).__name__}", service=service, key=key)
        return value

    def _sequence(self, value: Any, key: str, service: str) -> List[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise DescriptorSyntaxError(f"must be a list, got {type(value).__name__}", service=service, key=key)
        return value

    def _parse_service(self, name: str, spec: Any) -> ServiceDefinition:
        """
        Parses a single service definition.

        :param name: The name of the service.
        :param spec: The service specification mapping.
        :return: A ServiceDefinition instance.
        """
        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise DescriptorSyntaxError(f"must be a mapping, got {type(spec).__name__}", service=name)

        image = spec.get('image')
        if image is not None and not isinstance(image, str):
            raise DescriptorSyntaxError("must be a string", service=name, key='image')

        return ServiceDefinition(
            name=name,
            image=image or '',
            env_files=[EnvFileReference(path=p) for p in self._to_list(spec.get('env_file'), name, 'env_file')],
            depends_on=self._parse_depends_on(name, spec.get('depends_on')),
            ports=[self._parse_port(name, p) for p in self._sequence(spec.get('ports'), 'ports', name)],
            volumes=[self._parse_mount(name, v) for v in self._sequence(spec.get('volumes'), 'volumes', name)],
            restart=self._parse_restart(name, spec['restart']) if 'restart' in spec else None,
            unsupported_keys=[str(k) for k in spec if not _is_known(k, SERVICE_KEYS)],
        )

    def _parse_depends_on(self, name: str, value: Any) -> List[str]:
        # Long form is a mapping of service name to {condition: ...}; order is kept
        if isinstance(value, dict):
            return [str(k) for k in value]
        return [str(v) for v in self._sequence(value, 'depends_on', name)]

    def _parse_port(self, name: str, value: Any) -> PortMapping:
        try:
            if isinstance(value, bool):
                raise DescriptorSyntaxError(f"invalid port {value!r}", service=name, key='ports')
            if isinstance(value, int):
                return PortMapping(container_port=value)
            if isinstance(value, dict):
                unknown = set(value) - {'target', 'published', 'protocol', 'host_ip', 'mode', 'name', 'app_protocol'}
                if unknown:
                    raise DescriptorSyntaxError(f"unknown port keys {sorted(unknown)}", service=name, key='ports')
                if 'target' not in value:
                    raise DescriptorSyntaxError("port mapping requires 'target'", service=name, key='ports')
                published = value.get('published')
                return PortMapping(
                    container_port=int(value['target']),
                    host_port=int(published) if published not in (None, '') else None,
                    protocol=PortProtocol(value.get('protocol', 'tcp')),
                    host_ip=value.get('host_ip'),
                )
            if isinstance(value, str):
                match = _PORT_RE.match(value.strip())
                if not match:
                    raise DescriptorSyntaxError(
                        f"invalid port '{value}', expected [host:]container[/protocol]", service=name, key='ports')
                ip = match.group('ip')
                host = match.group('host')
                return PortMapping(
                    container_port=int(match.group('container')),
                    host_port=int(host) if host else None,
                    protocol=PortProtocol(match.group('proto') or 'tcp'),
                    host_ip=ip.strip('[]') if ip else None,
                )
        except (TypeError, ValueError) as e:
            raise DescriptorSyntaxError(f"invalid port {value!r}: {self._reason(e)}", service=name, key='ports') from e
        raise DescriptorSyntaxError(f"invalid port {value!r}", service=name, key='ports')

    def _parse_mount(self, name: str, value: Any) -> VolumeMount:
        if isinstance(value, str):
            return self._parse_short_mount(name, value)
        if not isinstance(value, dict):
            raise DescriptorSyntaxError(f"invalid volume entry {value!r}", service=name, key='volumes')

        unknown = set(value) - set(MOUNT_KEYS) - {'volume', 'bind', 'tmpfs', 'consistency'}
        if unknown:
            raise DescriptorSyntaxError(f"unknown mount keys {sorted(unknown)}", service=name, key='volumes')
        if not value.get('target'):
            raise DescriptorSyntaxError("mount requires 'target'", service=name, key='volumes')

        mount_type = value.get('type', MountType.VOLUME.value)
        try:
            mount_type = MountType(mount_type)
        except ValueError as e:
            raise DescriptorSyntaxError(
                f"unknown mount type '{mount_type}', expected one of {[t.value for t in MountType]}",
                service=name, key='volumes') from e

        read_only = value.get('read_only', False)
        if not isinstance(read_only, bool):
            raise DescriptorSyntaxError(f"read_only must be true or false, got {read_only!r}",
                                        service=name, key='volumes')

        source = value.get('source')
        return VolumeMount(
            source=str(source) if source else None,
            target=str(value['target']),
            type=mount_type,
            read_only=read_only,
        )

    def _parse_short_mount(self, name: str, value: str) -> VolumeMount:
        # source:target[:mode] or an anonymous volume at target
        parts = value.split(':')
        read_only = False
        if len(parts) == 3:
            mode = parts.pop()
            options = mode.split(',')
            if not set(options) <= {'ro', 'rw', 'z', 'Z', 'cached', 'delegated', 'consistent', 'nocopy'}:
                raise DescriptorSyntaxError(f"invalid mount mode '{mode}' in '{value}'", service=name, key='volumes')
            read_only = 'ro' in options
        if len(parts) == 1:
            return VolumeMount(source=None, target=parts[0], read_only=read_only)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise DescriptorSyntaxError(f"invalid volume '{value}', expected source:target[:mode]",
                                        service=name, key='volumes')
        source, target = parts
        is_path = source.startswith(('/', '.', '~'))
        return VolumeMount(
            source=source,
            target=target,
            type=MountType.BIND if is_path else MountType.VOLUME,
            read_only=read_only,
        )

    def _parse_restart(self, name: str, value: Any) -> RestartPolicy:
        # YAML 1.1 reads an unquoted `no` as False
        if value is False:
            value = RestartPolicyCondition.NO.value
        match = _RESTART_RE.match(value) if isinstance(value, str) else None
        if match:
            try:
                condition = RestartPolicyCondition(match.group('condition'))
            except ValueError:
                condition = None
            retries = match.group('retries')
            if condition is not None and (retries is None or condition == RestartPolicyCondition.ON_FAILURE):
                return RestartPolicy(condition=condition, max_retries=int(retries) if retries else None)
        raise DescriptorSyntaxError(
            f"invalid restart policy {value!r}, expected one of "
            f"{[c.value for c in RestartPolicyCondition]} or on-failure:<retries>",
            service=name, key='restart')

    def _parse_volume(self, name: str, spec: Any) -> NamedVolume:
        if spec is None or spec == {} or spec == '':
            return NamedVolume(name=name)
        if not isinstance(spec, dict):
            raise DescriptorSyntaxError(f"volumes.{name}: must be empty or a mapping, got {type(spec).__name__}")
        unknown = set(spec) - set(VOLUME_KEYS)
        if unknown:
            raise DescriptorSyntaxError(f"volumes.{name}: unknown keys {sorted(unknown)}")
        external = spec.get('external', False)
        try:
            return NamedVolume(
                name=name,
                driver=spec.get('driver'),
                driver_opts={str(k): str(v) for k, v in (spec.get('driver_opts') or {}).items()},
                external=bool(external),
                labels=self._labels(spec.get('labels')),
            )
        except (AttributeError, TypeError, ValidationError) as e:
            raise DescriptorSyntaxError(f"volumes.{name}: {self._reason(e)}") from e

    def _labels(self, value: Any) -> Dict[str, str]:
        if not value:
            return {}
        if isinstance(value, list):
            return dict(item.split('=', 1) if '=' in item else (item, '') for item in value)
        return {str(k): str(v) for k, v in value.items()}

    def _reason(self, error: Exception) -> str:
        if isinstance(error, ValidationError):
            return "; ".join(e['msg'] for e in error.errors())
        return str(error)

    def _to_list(self, val: Any, name: str, key: str) -> List[str]:
        """
        Helper to ensure a value is a list of strings.

        :param val: The value to convert.
        :return: A list of strings.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        if isinstance(val, list):
            # Long form entries are {path: ..., required: ...}
            return [str(v['path']) if isinstance(v, dict) and 'path' in v else str(v) for v in val]
        raise DescriptorSyntaxError(f"must be a string or a list, got {type(val).__name__}", service=name, key=key)
