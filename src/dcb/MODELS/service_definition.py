"""
Models for defining services, including restart policies, health checks, ports and mounts.
"""
from typing import List, Optional, Any
from pydantic import BaseModel, ConfigDict, field_validator
from enum import Enum

class RestartPolicyCondition(str, Enum):
    """
    Conditions under which a service should be restarted.
    """
    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    UNLESS_STOPPED = "unless-stopped"

class Protocol(str, Enum):
    """
    Transport protocol of a published port. TCP is the Compose default.
    """
    TCP = "tcp"
    UDP = "udp"

class KeyValue(BaseModel):
    """
    A single key/value pair. Used for environment variables, labels and driver options.

    A value of None means the key is listed without one, as in
    ``environment: [PASSTHROUGH]``, which Compose takes from the host.
    """
    model_config = ConfigDict(validate_assignment=True)

    key: str = ""
    value: Optional[str] = ""

class PortMapping(BaseModel):
    """
    Maps a host port to a container port.
    """
    model_config = ConfigDict(validate_assignment=True)

    host: str = ""
    container: str = ""
    protocol: Protocol = Protocol.TCP

class VolumeMount(BaseModel):
    """
    Defines a mapping between a host path (or named volume) and a service path.
    """
    model_config = ConfigDict(validate_assignment=True)

    source: str = ""
    target: str = ""
    read_only: bool = False

class HealthCheck(BaseModel):
    """
    Defines a command to run to check the health of a service.

    All fields are kept as the user typed them; ``test`` is tokenized
    only when the document is projected.
    """
    model_config = ConfigDict(validate_assignment=True)

    test: str = ""
    interval: str = ""
    timeout: str = ""
    retries: str = ""
    start_period: str = ""
    start_interval: str = ""

class ServiceDefinition(BaseModel):
    """
    The full definition of a single service as edited in the builder.
    """
    model_config = ConfigDict(validate_assignment=True)

    name: str = ""
    image: str = ""
    container_name: str = ""

    # Execution
    command: str = ""
    entrypoint: str = ""
    working_dir: str = ""
    user: str = ""
    restart: Optional[RestartPolicyCondition] = None

    # Environment
    environment: List[KeyValue] = []
    env_file: str = ""

    # Networking
    ports: List[PortMapping] = []
    networks: List[str] = []
    dns: List[str] = []
    extra_hosts: List[str] = []

    # Storage
    volumes: List[VolumeMount] = []
    shm_size: str = ""

    # Lifecycle
    healthcheck: Optional[HealthCheck] = None
    depends_on: List[str] = []

    # Security
    privileged: Optional[bool] = None
    read_only: Optional[bool] = None
    security_opt: List[str] = []

    # Metadata
    labels: List[KeyValue] = []

    @field_validator("restart", mode="before")
    @classmethod
    def _unset_restart(cls, value: Any) -> Any:
        """
        The builder offers "none" as the unset choice; it never reaches the output.
        """
        if value is None or (isinstance(value, str) and value.strip().lower() in ("", "none")):
            return None
        return value
