"""
Models for the overall Compose document being edited.
"""
from typing import List
from pydantic import BaseModel, Field
from .service_definition import ServiceDefinition
from .network_definition import NetworkDefinition
from .volume_definition import VolumeDefinition

def _default_services() -> List[ServiceDefinition]:
    return [ServiceDefinition()]

class ComposeDocument(BaseModel):
    """
    Complete state of one editing session.
    Equivalent to a docker-compose.yml file before projection.
    """
    services: List[ServiceDefinition] = Field(default_factory=_default_services)
    networks: List[NetworkDefinition] = []
    volumes: List[VolumeDefinition] = []
