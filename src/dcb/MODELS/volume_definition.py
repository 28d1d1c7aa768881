"""
Models for top-level Compose volumes.
"""
from typing import List
from pydantic import BaseModel, ConfigDict
from .service_definition import KeyValue

class VolumeDefinition(BaseModel):
    """
    A named volume. ``type``, ``device`` and ``o`` are shortcuts for the
    matching ``driver_opts`` entries of the local driver.
    """
    model_config = ConfigDict(validate_assignment=True)

    name: str = ""
    driver: str = ""
    driver_opts: List[KeyValue] = []
    type: str = ""
    device: str = ""
    o: str = ""
    labels: List[KeyValue] = []
    external: bool = False
    external_name: str = ""
