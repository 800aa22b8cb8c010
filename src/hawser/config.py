"""Endpoint configuration helpers."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict

from .constants import CONFIG_FILE, ENDPOINT_ENV, HAWSER_DIR, OBJECTS_DIR
from .errors import ConfigError


class EndpointConfig(BaseModel):
    """Remote endpoint for object transfers.

    Built once before any transfer and shared read-only between them.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str
    objects_dir: Optional[Path] = None

    def object_url(self, oid: str) -> str:
        """Build the object URL for an OID.

        An empty OID yields the collection URL used for upload negotiation.
        """
        base = self.endpoint.rstrip("/") + "/objects"
        if not oid:
            return base
        return f"{base}/{oid}"


def endpoint_from_remote(remote_url: str) -> str:
    """Derive the media endpoint from a git remote URL."""
    remote_url = remote_url.rstrip("/")
    if remote_url.endswith(".git"):
        return remote_url + "/info/media"
    return remote_url + ".git/info/media"


def find_root(start: Optional[Path] = None) -> Optional[Path]:
    """Walk up directory tree to find the directory holding .hawser."""
    current = (start or Path.cwd()).resolve()

    while current != current.parent:
        if (current / HAWSER_DIR).exists():
            return current
        current = current.parent

    if (current / HAWSER_DIR).exists():
        return current
    return None


def load_endpoint_config(start: Optional[Path] = None) -> EndpointConfig:
    """Resolve the endpoint configuration.

    Resolution order: HAWSER_ENDPOINT env var, then ``endpoint`` or
    ``remote`` from .hawser/config.yaml in the nearest enclosing directory.

    Raises:
        ConfigError: If no endpoint can be determined or the config file
            can't be parsed
    """
    root = find_root(start)
    data = {}
    if root is not None:
        cfg_path = root / HAWSER_DIR / CONFIG_FILE
        if cfg_path.exists():
            try:
                data = yaml.safe_load(cfg_path.read_text()) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid configuration in {cfg_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"Invalid configuration in {cfg_path}: expected a mapping")

    objects_dir = None
    if data.get("objects_dir"):
        objects_dir = Path(data["objects_dir"]).expanduser()
        if root is not None and not objects_dir.is_absolute():
            objects_dir = root / objects_dir
    elif root is not None:
        objects_dir = root / HAWSER_DIR / OBJECTS_DIR

    endpoint = os.environ.get(ENDPOINT_ENV)
    if not endpoint:
        endpoint = data.get("endpoint")
    if not endpoint and data.get("remote"):
        endpoint = endpoint_from_remote(data["remote"])
    if not endpoint:
        raise ConfigError(
            f"No endpoint configured.\n"
            f"Set {ENDPOINT_ENV} or add 'endpoint:' (or 'remote:') to "
            f"{HAWSER_DIR}/{CONFIG_FILE}"
        )

    return EndpointConfig(endpoint=endpoint, objects_dir=objects_dir)
