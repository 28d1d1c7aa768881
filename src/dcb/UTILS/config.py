"""
Runtime settings, read from the environment and an optional .env file.
"""
import os
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

DEFAULT_CACHE_TTL = 3600

class Settings(BaseModel):
    """
    Settings for the template store and logging.
    """
    store_url: str = ""
    cache_dir: Path = Path.home() / ".dcb" / "cache"
    cache_ttl: int = DEFAULT_CACHE_TTL
    log_level: str = "WARNING"

    @field_validator("cache_dir")
    @classmethod
    def _expand_cache_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("cache_ttl")
    @classmethod
    def _non_negative_ttl(cls, value: int) -> int:
        if value < 0:
            raise ValueError("cache TTL must not be negative")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

def load_settings(env_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Builds the settings from DCB_* environment variables.

    :param env_file: Path to a .env file. Defaults to ./.env when present.
    :param environ: Environment to read from. Defaults to os.environ.
    :return: The resolved settings.
    """
    if environ is None:
        load_dotenv(env_file)
        environ = dict(os.environ)

    values = {}
    mapping = {
        "DCB_STORE_URL": "store_url",
        "DCB_CACHE_DIR": "cache_dir",
        "DCB_CACHE_TTL": "cache_ttl",
        "DCB_LOG_LEVEL": "log_level",
    }
    for env_key, field in mapping.items():
        if environ.get(env_key):
            values[field] = environ[env_key]
    return Settings(**values)
