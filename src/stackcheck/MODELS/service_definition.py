"""
Models for a single service entry: restart policy, ports, mounts and env files.
"""
import os
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

class RestartPolicyCondition(str, Enum):
    """
    Conditions under which the engine restarts a service container.
    """
    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    UNLESS_STOPPED = "unless-stopped"

class RestartPolicy(BaseModel):
    """
    Restart policy as written in the descriptor, e.g. ``always`` or ``on-failure:3``.
    """
    model_config = ConfigDict(frozen=True)

    condition: RestartPolicyCondition = RestartPolicyCondition.NO
    max_retries: Optional[int] = None

    def __str__(self) -> str:
        if self.max_retries is not None:
            return f"{self.condition.value}:{self.max_retries}"
        return self.condition.value

class PortProtocol(str, Enum):
    TCP = "tcp"
    UDP = "udp"

class PortMapping(BaseModel):
    """
    A published port. ``host_port`` is None when the engine picks one.
    """
    model_config = ConfigDict(frozen=True)

    container_port: int = Field(ge=1, le=65535)
    host_port: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: PortProtocol = PortProtocol.TCP
    host_ip: Optional[str] = None

    def __str__(self) -> str:
        parts = []
        if self.host_ip:
            parts.append(self.host_ip)
        if self.host_port is not None:
            parts.append(str(self.host_port))
        parts.append(str(self.container_port))
        text = ":".join(parts)
        if self.protocol != PortProtocol.TCP:
            text += f"/{self.protocol.value}"
        return text

class MountType(str, Enum):
    VOLUME = "volume"
    BIND = "bind"
    TMPFS = "tmpfs"

class VolumeMount(BaseModel):
    """
    Binds a named volume (or a host path, or a tmpfs) to a path in the container.
    """
    model_config = ConfigDict(frozen=True)

    source: Optional[str] = None
    target: str
    type: MountType = MountType.VOLUME
    read_only: bool = False

    @property
    def is_named_volume(self) -> bool:
        """True when the mount refers to a top-level volume declaration."""
        return self.type == MountType.VOLUME and bool(self.source)

    def __str__(self) -> str:
        text = f"{self.source}:{self.target}" if self.source else self.target
        if self.read_only:
            text += ":ro"
        return text

class EnvFileReference(BaseModel):
    """
    Path to an external KEY=VALUE file. Its content is opaque to the descriptor.
    """
    model_config = ConfigDict(frozen=True)

    path: str

    def resolve(self, project_dir: str = ".") -> str:
        """
        Resolves the path against the project directory.

        :param project_dir: Directory the descriptor lives in.
        :return: Absolute path of the env file.
        """
        path = os.path.expanduser(self.path)
        if os.path.isabs(path):
            return path
        return os.path.abspath(os.path.join(project_dir, path))

    def exists(self, project_dir: str = ".") -> bool:
        return os.path.isfile(self.resolve(project_dir))

    def __str__(self) -> str:
        return self.path

class ServiceDefinition(BaseModel):
    """
    The definition of a single deployable container, as declared in the descriptor.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    image: str = ""
    env_files: List[EnvFileReference] = []
    depends_on: List[str] = []
    ports: List[PortMapping] = []
    volumes: List[VolumeMount] = []
    restart: Optional[RestartPolicy] = None

    # Keys present in the source that the format does not recognise
    unsupported_keys: List[str] = []

    @property
    def named_volumes(self) -> List[str]:
        """Names of the top-level volumes this service mounts, in mount order."""
        return [m.source for m in self.volumes if m.is_named_volume]
