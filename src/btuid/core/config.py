"""Config loading utilities for btuid."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from btuid.core.models import GeneratorConfig, PageLayout

logger = logging.getLogger(__name__)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file as a dict.

    Returns empty dict if the file doesn't exist.
    """
    if not path.exists():
        logger.debug("No config found at %s; using defaults", path)
        return {}

    logger.info("Loading config from %s", path)
    with path.open() as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        logger.warning("%s did not contain a mapping; using empty dict", path.name)
        return {}

    return data


def make_generator_config(document: dict[str, Any]) -> GeneratorConfig:
    """Build a GeneratorConfig from the ``generator`` section of *document*.

    Only fields present in the section override the defaults defined in
    :class:`GeneratorConfig`; the same applies to its ``layout`` mapping.
    """
    section = document.get("generator", {})
    if not isinstance(section, dict):
        logger.warning("'generator' key is not a mapping; ignoring")
        section = {}

    filtered = _known_fields(section, GeneratorConfig, "generator")

    layout = filtered.get("layout")
    if layout is not None:
        if isinstance(layout, dict):
            filtered["layout"] = PageLayout(**_known_fields(layout, PageLayout, "layout"))
        else:
            logger.warning("'layout' key is not a mapping; ignoring")
            del filtered["layout"]

    return GeneratorConfig(**filtered)


def _known_fields(section: dict[str, Any], model: type, label: str) -> dict[str, Any]:
    # Unknown keys would otherwise be silently ignored by the model.
    valid_fields = model.model_fields
    filtered = {k: v for k, v in section.items() if k in valid_fields}

    if dropped := set(section) - set(filtered):
        logger.warning("Ignoring unknown %s config keys: %s", label, sorted(dropped))

    return filtered
