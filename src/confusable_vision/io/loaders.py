"""Readers for caller-supplied JSON inputs.

Confusable pairs arrive as a JSON list of ``{"source": ..., "target": ...}``
objects, produced by an external data-preparation step. Font lists arrive as
a JSON list of font definitions.
"""

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from confusable_vision.config import FontDefinition
from confusable_vision.domain import ConfusablePair
from confusable_vision.exceptions import ConfigurationError

_FONT_LIST = TypeAdapter(list[FontDefinition])


def load_pairs(path: Path) -> list[ConfusablePair]:
    """Load confusable pairs from a JSON file.

    Accepts either a bare list or an object with a ``"pairs"`` list.

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(str(path), str(e)) from e

    if isinstance(data, dict):
        data = data.get("pairs")
    if not isinstance(data, list):
        raise ConfigurationError(str(path), "expected a list of pairs")

    try:
        return [ConfusablePair.from_dict(entry) for entry in data]
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(str(path), f"invalid pair entry: {e}") from e


def load_font_definitions(path: Path) -> list[FontDefinition]:
    """Load font definitions from a JSON file.

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    try:
        return _FONT_LIST.validate_json(path.read_bytes())
    except OSError as e:
        raise ConfigurationError(str(path), str(e)) from e
    except ValidationError as e:
        raise ConfigurationError(str(path), str(e)) from e
