"""Configuration directory and provider key files."""

from __future__ import annotations

import logging
import os
from typing import Mapping, Sequence

import yaml

from subscan.passive import ALL_SOURCES

logger = logging.getLogger(__name__)


def get_config_directory() -> str:
    """Return the configuration directory of the user, creating it if needed."""
    home = os.path.expanduser("~")
    if home == "~":
        raise OSError("could not determine the user home directory")
    directory = home + "/.config/subfinder"
    os.makedirs(directory, exist_ok=True)
    return directory


def create_provider_config_yaml(path, sources_map: Mapping[str, Sequence[str]]) -> None:
    """Write the source-to-keys mapping to a YAML file."""
    data = {name: list(keys) for name, keys in sources_map.items()}
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, default_flow_style=False, sort_keys=True)


def unmarshal_from(path) -> None:
    """Read provider keys from a YAML file and hand them to the sources that need keys.

    Keys that could be read are applied even when the file is malformed; the
    parse error is raised afterwards.
    """
    error: Exception | None = None
    with open(path, encoding="utf-8") as handle:
        try:
            loaded = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            loaded, error = None, exc

    if loaded is None:
        keys_map = {}
    elif isinstance(loaded, dict):
        keys_map = loaded
    else:
        keys_map = {}
        error = ValueError(f"provider config '{path}' is not a mapping")

    for source in ALL_SOURCES:
        source_name = source.name.lower()
        keys = keys_map.get(source_name)
        if source.needs_key and isinstance(keys, list) and keys:
            logger.debug("API key(s) found for %s.", source_name)
            source.add_api_keys([str(key) for key in keys])

    if error is not None:
        raise error