"""Loading jarseal configuration from a JSON file.

A config file holds the same keys as :class:`~jarseal.models.SignConfig`
or :class:`~jarseal.models.VerifyConfig`. Sign and verify settings may
share one file, either flat or split into ``"sign"`` and ``"verify"``
sections whose keys override the top level::

    {
      "keystore": "release.p12",
      "storepass": "{env:RELEASE_STOREPASS}",
      "alias": "release",
      "sign": {"tsa": ["http://timestamp.digicert.com"], "max_tries": 3}
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import ValidationError

from .errors import JarsignerError
from .models import JarsignerConfig

logger = logging.getLogger("jarseal.config")

ConfigT = TypeVar("ConfigT", bound=JarsignerConfig)

SECTIONS = ("sign", "verify")


def read_config_file(path: Path, section: str) -> dict[str, Any]:
    """Read the settings that apply to one command from a JSON file.

    Args:
        path: JSON file to read.
        section: ``"sign"`` or ``"verify"``.

    Returns:
        The merged settings, keys of the section winning over the top level.

    Raises:
        JarsignerError: If the file cannot be read or is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise JarsignerError(f"Unable to read configuration {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise JarsignerError(f"Configuration {path} must contain a JSON object")

    merged = {k: v for k, v in data.items() if k not in SECTIONS}
    merged.update(data.get(section) or {})
    logger.debug("Loaded %d setting(s) for %s from %s", len(merged), section, path)
    return merged


def build_config(
    model: type[ConfigT],
    section: str,
    path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> ConfigT:
    """Build a configuration model from a file plus explicit overrides.

    Overrides whose value is None are ignored, so unset CLI options do not
    clobber values from the file.

    Args:
        model: :class:`SignConfig` or :class:`VerifyConfig`.
        section: Config file section for this command.
        path: Optional JSON config file.
        overrides: Values from the command line.

    Returns:
        The validated configuration.

    Raises:
        JarsignerError: If the file is unreadable or a value is invalid.
    """
    values: dict[str, Any] = read_config_file(path, section) if path is not None else {}
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    try:
        return model.model_validate(values)
    except ValidationError as exc:
        raise JarsignerError(f"Invalid configuration: {exc}") from exc
