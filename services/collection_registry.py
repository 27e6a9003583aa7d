"""
Collection registry: field trees of the collections open to import.

Loaded from the JSON file named by settings.collections_config_path and
extendable in code (function-valued defaults can only be registered there).
"""

import json
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog

from config import settings
from models.schema import FieldDescriptor
from services.schema_index import SchemaIndex

logger = structlog.get_logger(__name__)

FieldTree = Iterable[Union[FieldDescriptor, dict]]


class CollectionRegistry:
    """Slug → ordered field tree."""

    def __init__(self, collections: Optional[dict[str, FieldTree]] = None):
        self._collections: dict[str, list[FieldDescriptor]] = {}
        for slug, fields in (collections or {}).items():
            self.register(slug, fields)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "CollectionRegistry":
        """
        Load collections from a JSON list of {"slug", "fields"} objects.

        A missing file yields an empty registry.
        """
        registry = cls()
        path = Path(path)
        if not path.exists():
            logger.warning("collections_config_missing", path=str(path))
            return registry

        with path.open(encoding="utf-8") as handle:
            entries = json.load(handle)

        for entry in entries:
            registry.register(entry["slug"], entry.get("fields", []))

        logger.info("collections_loaded", path=str(path), collections=registry.slugs())
        return registry

    def register(self, slug: str, fields: FieldTree) -> None:
        self._collections[slug] = [
            field if isinstance(field, FieldDescriptor) else FieldDescriptor.model_validate(field)
            for field in fields
        ]

    def slugs(self) -> list[str]:
        return list(self._collections)

    def __contains__(self, slug: str) -> bool:
        return slug in self._collections

    def get_fields(self, slug: str) -> Optional[list[FieldDescriptor]]:
        return self._collections.get(slug)

    def schema_index(self, slug: str) -> Optional[SchemaIndex]:
        fields = self._collections.get(slug)
        if fields is None:
            return None
        return SchemaIndex.build(fields)


# Singleton instance for convenience
_collection_registry: Optional[CollectionRegistry] = None


def get_collection_registry() -> CollectionRegistry:
    """Get or create the registry loaded from settings."""
    global _collection_registry
    if _collection_registry is None:
        _collection_registry = CollectionRegistry.from_file(settings.collections_config_path)
    return _collection_registry
