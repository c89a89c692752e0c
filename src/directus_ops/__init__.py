"""Public package exports for Directus operator helpers."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .collections import CONTENT_COLLECTIONS, CollectionSpec, get_collection_spec
    from .config import DatabaseSettings, DirectusSettings, TranslatorSettings
    from .database import connect
    from .directus_client import DirectusAPIError, DirectusRESTClient
    from .schema import MigrationAborted
    from .translations import LibreTranslateClient

_EXPORTS = {
    "CONTENT_COLLECTIONS": "collections",
    "CollectionSpec": "collections",
    "get_collection_spec": "collections",
    "DatabaseSettings": "config",
    "DirectusSettings": "config",
    "TranslatorSettings": "config",
    "connect": "database",
    "DirectusAPIError": "directus_client",
    "DirectusRESTClient": "directus_client",
    "MigrationAborted": "schema",
    "LibreTranslateClient": "translations",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:  # pragma: no cover - thin import wrapper
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    module = import_module(f".{module_name}", __name__)
    return getattr(module, name)


def __dir__() -> list[str]:  # pragma: no cover - module metadata
    return sorted(
        __all__
        + [
            "audit",
            "backup",
            "cleanup",
            "collections",
            "config",
            "database",
            "directus_client",
            "fields",
            "importer",
            "permissions",
            "schema",
            "translations",
        ]
    )
