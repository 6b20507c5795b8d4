"""Bundled YAML content and the helpers used to validate it."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, MutableMapping, Sequence

import yaml

__all__ = [
    "CONTENT_PATH",
    "ContentLoadError",
    "load_yaml",
    "require_mapping",
    "require_sequence",
]

CONTENT_PATH = Path(__file__).parent


class ContentLoadError(RuntimeError):
    """Raised when bundled content could not be loaded or fails validation."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        if path is not None:
            message = f"{message} (source: {path})"
        super().__init__(message)
        self.path = path


def load_yaml(name: str, *, base_path: Path = CONTENT_PATH) -> object:
    path = base_path / name
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContentLoadError("Unable to read content file", path=path) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ContentLoadError("Failed to parse content file", path=path) from exc
    return data or {}


def require_mapping(name: str, value: object) -> MutableMapping[str, object]:
    if isinstance(value, MutableMapping):
        return value
    if isinstance(value, Mapping):
        return dict(value)
    raise ContentLoadError(f"Expected mapping for {name}")


def require_sequence(name: str, value: object) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return value
    raise ContentLoadError(f"Expected sequence for {name}")
