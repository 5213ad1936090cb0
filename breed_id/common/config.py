"""
Central configuration for the breed identification pipeline.

Defaults live in the module-level dictionaries below. A YAML file can
override any of them section by section via ``load_config``.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .constants import DEFAULT_INFO, IMAGE_SIZE
from .exceptions import ConfigError

# --- Classifier Configuration ---
CLASSIFIER_CONFIG = {
    "IMAGE_SIZE": IMAGE_SIZE,
    "TOP_K": 5,
}

# --- Enrichment Configuration ---
ENRICHMENT_CONFIG = {
    "MAX_TRIES": 3,  # -1 retries until success
    "WAIT_BETWEEN": 1.0,  # Seconds between attempts of the same job
    "MAX_WORKERS": 8,  # Bounded pool shared by all enrichment jobs
    "DEFAULT_INFO": DEFAULT_INFO,
    "DEFAULT_IMAGE_PATH": None,  # None = generated grey placeholder
}

# --- External API Configuration ---
API_CONFIG = {
    "WIKI_SEARCH_URL": "https://en.wikipedia.org/w/api.php",
    "WIKI_EXTRACT_URL": "https://en.wikipedia.org/w/api.php",
    "MAX_SENTENCES": 7,
    "DOG_IMAGES_URL": "https://dog.ceo/api/breed",
    "REQUEST_TIMEOUT": 10.0,
}

DEFAULT_CONFIG = {
    "classifier": CLASSIFIER_CONFIG,
    "enrichment": ENRICHMENT_CONFIG,
    "api": API_CONFIG,
}


def load_config(path: Union[str, Path, None] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load configuration, optionally overriding defaults from a YAML file.

    Args:
        path: YAML file with optional ``classifier``, ``enrichment`` and
            ``api`` sections. None returns a copy of the defaults.

    Returns:
        Dictionary of sections, each mapping upper-case keys to values.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file contains unknown sections or keys.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is None:
        return config

    with open(path) as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")

    for section, values in overrides.items():
        if section not in config:
            raise ConfigError(f"Unknown config section '{section}' in {path}")
        if not isinstance(values, dict):
            raise ConfigError(f"Section '{section}' in {path} must be a mapping")

        for key, value in values.items():
            key = str(key).upper()
            if key not in config[section]:
                raise ConfigError(f"Unknown key '{key}' in section '{section}'")
            config[section][key] = value

    max_tries = config["enrichment"]["MAX_TRIES"]
    if max_tries != -1 and max_tries < 1:
        raise ConfigError(f"MAX_TRIES must be -1 or at least 1, got {max_tries}")

    return config
