"""
Models for the descriptor as a whole.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from .service_definition import ServiceDefinition

class NamedVolume(BaseModel):
    """
    A top-level volume declaration. An empty declaration asks for the default driver.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    driver: Optional[str] = None
    driver_opts: Dict[str, str] = {}
    external: bool = False
    labels: Dict[str, str] = {}

    @property
    def is_default(self) -> bool:
        return self.driver is None and not self.driver_opts and not self.external and not self.labels

    def to_compose(self) -> Optional[Dict[str, Any]]:
        """
        Returns the declaration as it would appear in the descriptor.
        """
        if self.is_default:
            return None
        data: Dict[str, Any] = {}
        if self.driver is not None:
            data['driver'] = self.driver
        if self.driver_opts:
            data['driver_opts'] = dict(self.driver_opts)
        if self.external:
            data['external'] = True
        if self.labels:
            data['labels'] = dict(self.labels)
        return data

class ComposeDescriptor(BaseModel):
    """
    A parsed deployment descriptor: a format-version marker, services and named volumes.
    Mapping order follows declaration order in the source file.
    """
    model_config = ConfigDict(frozen=True)

    version: Optional[str] = None
    services: Dict[str, ServiceDefinition] = {}
    volumes: Dict[str, NamedVolume] = {}

    # Top-level keys outside the recognised format
    unsupported_keys: List[str] = []

    def service(self, name: str) -> ServiceDefinition:
        """
        :raises KeyError: If no service of that name is declared.
        """
        return self.services[name]

    def mounts_of(self, volume_name: str) -> List[str]:
        """
        Names of the services that mount the given named volume.
        """
        return [name for name, svc in self.services.items() if volume_name in svc.named_volumes]

    def to_compose(self) -> Dict[str, Any]:
        """
        Renders the descriptor back into plain compose data, normalized to long syntax.
        """
        data: Dict[str, Any] = {}
        if self.version is not None:
            data['version'] = self.version

        services: Dict[str, Any] = {}
        for name, svc in self.services.items():
            entry: Dict[str, Any] = {'image': svc.image}
            if svc.env_files:
                entry['env_file'] = [ref.path for ref in svc.env_files]
            if svc.depends_on:
                entry['depends_on'] = list(svc.depends_on)
            if svc.ports:
                entry['ports'] = [str(p) for p in svc.ports]
            if svc.volumes:
                mounts = []
                for m in svc.volumes:
                    mount: Dict[str, Any] = {'type': m.type.value}
                    if m.source:
                        mount['source'] = m.source
                    mount['target'] = m.target
                    if m.read_only:
                        mount['read_only'] = True
                    mounts.append(mount)
                entry['volumes'] = mounts
            if svc.restart is not None:
                entry['restart'] = str(svc.restart)
            services[name] = entry
        data['services'] = services

        if self.volumes:
            data['volumes'] = {name: vol.to_compose() for name, vol in self.volumes.items()}
        return data
