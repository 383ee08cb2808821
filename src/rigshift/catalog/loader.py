"""Load reference data from TOML."""

from __future__ import annotations

import importlib.resources
from pathlib import Path
from typing import Any

import toml  # type: ignore[import-untyped]
from pydantic import ValidationError

from .models import Catalog

DEFAULT_CATALOG = "default_catalog.toml"


class CatalogError(Exception):
    """Raised when reference data cannot be read or fails validation."""


def _read_default() -> str:
    return (importlib.resources.files("rigshift.catalog") / DEFAULT_CATALOG).read_text(
        encoding="utf-8"
    )


def load_catalog(path: Path | None = None) -> Catalog:
    """Load the catalog from ``path``, or the bundled default when None."""
    source = str(path) if path is not None else DEFAULT_CATALOG
    try:
        if path is None:
            data: dict[str, Any] = toml.loads(_read_default())
        else:
            data = toml.load(path)
    except (toml.TomlDecodeError, OSError) as exc:
        raise CatalogError(f"Cannot read catalog {source}: {exc}") from exc

    try:
        return Catalog.model_validate(data)
    except ValidationError as exc:
        raise CatalogError(f"Invalid catalog {source}: {exc}") from exc
