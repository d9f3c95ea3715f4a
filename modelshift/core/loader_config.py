"""Loader Config — reads per-class defaults, overrides and loader options.

Format:

    shop.models.Product:            # fully qualified target class
      defaults:
        status: draft
      overrides:
        currency: EUR

    LoadSession:                    # applied to every loader
      strict: false

    shop.loaders.ProductLoader:     # applied to that loader class only
      mandatory: [sku]

Target-class defaults/overrides are merged first, then the generic section,
then the loader-specific section, each later one taking precedence.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

GENERIC_SECTION = "LoadSession"


@dataclass
class LoaderConfig:
    defaults: dict[str, Any] = field(default_factory=dict)
    overrides: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


def qualified_name(klass: type) -> str:
    return f"{klass.__module__}.{klass.__qualname__}"


def read_config_file(path: str | Path) -> dict:
    """Load a loader config YAML file into a mapping."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Loader config not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Invalid loader config in {config_path}: expected a YAML mapping")
    return data


def _section(data: dict, key: str) -> dict:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Loader config section '{key}' must be a mapping")
    return section


def resolve_config(data: dict, target_class: type, loader_class: type) -> LoaderConfig:
    """Merge the sections that apply to ``target_class`` and ``loader_class``."""
    config = LoaderConfig()

    target = _section(data, qualified_name(target_class))
    if target:
        logger.info(f"Assigning defaults and overrides from config for {target_class.__name__}")
        config.defaults.update(target.get("defaults") or {})
        config.overrides.update(target.get("overrides") or {})

    config.options.update(_section(data, GENERIC_SECTION))

    loader_key = qualified_name(loader_class)
    if loader_key != qualified_name(target_class):
        config.options.update(_section(data, loader_key))

    return config
