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
Compose Store: example compose files fetched from a remote index.
Fetched templates are cached on disk with a time-based expiry.
"""

import json
import logging
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class TemplateStoreError(RuntimeError):
    """Raised when templates cannot be fetched or are malformed."""


def _is_connection_error(error: BaseException) -> bool:
    # HTTPError subclasses URLError; only connection failures are retried
    return isinstance(error, URLError) and not isinstance(error, HTTPError)


@dataclass
class ComposeTemplate:
    """A named compose file offered for import."""
    name: str
    content: str


class TemplateStore:
    """
    Fetches compose templates and caches them locally.
    """

    CACHE_FILE = "templates.json"

    def __init__(self, url: str, cache_dir: Optional[str] = None, ttl: int = 3600):
        """
        Initialize the template store.

        Args:
            url: Address of the JSON template index
            cache_dir: Directory for the cache file. Defaults to ~/.dcb/cache
            ttl: Seconds a fetched index stays valid
        """
        self.url = url
        if cache_dir:
            self.cache_dir = Path(cache_dir)
        else:
            self.cache_dir = Path.home() / ".dcb" / "cache"
        self.cache_file = self.cache_dir / self.CACHE_FILE
        self.ttl = ttl

    def list_templates(self) -> List[ComposeTemplate]:
        """
        List available templates, from the cache while it is fresh.

        Returns:
            Templates in index order
        """
        cached = self._load_cache()
        if cached is not None:
            return cached
        return self.refresh()

    def get_template(self, name: str) -> ComposeTemplate:
        """
        Get a template by name.

        Args:
            name: Template name

        Returns:
            The template

        Raises:
            KeyError: If no template has that name
        """
        for template in self.list_templates():
            if template.name == name:
                return template
        raise KeyError(f"No template named '{name}'")

    def refresh(self) -> List[ComposeTemplate]:
        """
        Fetch the index and rewrite the cache.

        Returns:
            The fetched templates
        """
        if not self.url:
            raise TemplateStoreError("No template store URL configured (set DCB_STORE_URL)")
        try:
            content = self._fetch(self.url)
        except (HTTPError, URLError, OSError) as e:
            raise TemplateStoreError(f"Failed to fetch templates from {self.url}: {e}") from e

        templates = self._decode(content)
        self._save_cache(templates)
        logger.info("Fetched %d templates from %s", len(templates), self.url)
        return templates

    def clear_cache(self) -> bool:
        """
        Remove the cache file.

        Returns:
            True if a cache file was removed
        """
        if self.cache_file.exists():
            self.cache_file.unlink()
            return True
        return False

    @retry(
        retry=retry_if_exception(_is_connection_error),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    def _fetch(self, url: str) -> bytes:
        """GET the index. Connection errors are retried."""
        request = Request(url)
        request.add_header("Accept", "application/json")
        with urlopen(request, timeout=30) as response:
            return response.read()

    def _decode(self, content: bytes) -> List[ComposeTemplate]:
        """Decode the index: a JSON list of {name, content} objects."""
        try:
            entries = json.loads(content.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise TemplateStoreError(f"Template index is not valid JSON: {e}") from e
        if not isinstance(entries, list):
            raise TemplateStoreError("Template index must be a JSON list")

        templates = []
        for entry in entries:
            if not isinstance(entry, dict) or "name" not in entry or "content" not in entry:
                logger.warning("Skipping malformed template entry: %r", entry)
                continue
            templates.append(ComposeTemplate(name=str(entry["name"]), content=str(entry["content"])))
        return templates

    def _load_cache(self) -> Optional[List[ComposeTemplate]]:
        """Load the cached templates, or None when missing, unreadable or expired."""
        if not self.cache_file.exists():
            return None
        try:
            with open(self.cache_file, 'r') as f:
                data: Dict[str, Any] = json.load(f)
            if data.get("url") != self.url:
                return None
            fetched_at = float(data["fetched_at"])
            templates = [ComposeTemplate(**entry) for entry in data["templates"]]
        except (json.JSONDecodeError, IOError, AttributeError, KeyError, TypeError, ValueError):
            logger.debug("Ignoring unreadable template cache %s", self.cache_file)
            return None

        if time.time() - fetched_at > self.ttl:
            logger.debug("Template cache expired")
            return None
        return templates

    def _save_cache(self, templates: List[ComposeTemplate]) -> None:
        """Save the templates with the current time."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, 'w') as f:
            json.dump({
                "url": self.url,
                "fetched_at": time.time(),
                "templates": [asdict(t) for t in templates],
            }, f, indent=2)
