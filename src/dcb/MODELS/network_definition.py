"""
Models for top-level Compose networks.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from .service_definition import KeyValue

class IpamConfig(BaseModel):
    """
    A single IPAM address pool.
    """
    model_config = ConfigDict(validate_assignment=True)

    subnet: str = ""
    gateway: str = ""

class IpamSettings(BaseModel):
    """
    IP address management for a network.
    """
    model_config = ConfigDict(validate_assignment=True)

    driver: str = ""
    config: List[IpamConfig] = []
    options: List[KeyValue] = []

class NetworkDefinition(BaseModel):
    """
    A named network that services can attach to.
    """
    model_config = ConfigDict(validate_assignment=True)

    name: str = ""
    driver: str = ""
    driver_opts: List[KeyValue] = []
    attachable: Optional[bool] = None
    internal: Optional[bool] = None
    enable_ipv6: Optional[bool] = None
    labels: List[KeyValue] = []
    external: bool = False
    external_name: str = ""
    ipam: IpamSettings = Field(default_factory=IpamSettings)
