"""
Template service: sample import files for a collection.

Builds a CSV or JSON file whose columns are the importable fields, filled
with example values, so callers can start from a file that maps cleanly.
"""

import csv
import json
from datetime import date, timedelta
from io import StringIO
from typing import Optional

import pandas as pd
import structlog

from config import settings
from exceptions import UnknownCollectionError, ValidationError
from models.schema import CatalogField
from services.collection_registry import CollectionRegistry, get_collection_registry

logger = structlog.get_logger(__name__)

SELECT_SAMPLES = ["published", "draft", "archived"]
SAMPLE_ROWS = 3
TEMPLATE_FORMATS = ("csv", "json")


def _base_type(field: CatalogField) -> str:
    """'upload (media)' → 'upload'."""
    return field.type.split(" ", 1)[0]


def sample_value(field: CatalogField, index: int = 1, today: Optional[date] = None) -> str:
    """
    Generated value for one field of sample row `index` (1-based).

    Values vary with the index so sample rows are distinguishable.
    """
    name = field.name
    kind = _base_type(field)

    if kind == "checkbox":
        return "true" if index % 2 == 0 else "false"

    if kind == "date":
        return ((today or date.today()) + timedelta(days=index)).isoformat()

    if kind == "number":
        if "price" in name or "cost" in name:
            return str(1000 * index)
        if "quantity" in name or "stock" in name:
            return str(10 + index * 5)
        return str(index)

    if kind == "select":
        return SELECT_SAMPLES[index % len(SELECT_SAMPLES)]

    if kind == "text":
        if "title" in name or "name" in name:
            return f"Product {index}"
        if "sku" in name:
            return f"SKU-{index:03d}"
        if "email" in name:
            return f"user{index}@example.com"
        if name == settings.identity_field:
            return ""
        return f"Text value {index}"

    if kind == "textarea":
        return f"Description for item {index}"

    if kind == "richText":
        return f"First paragraph {index}\nSecond paragraph {index}"

    if kind == "relationship":
        if field.has_many:
            return f"related-id-{index},related-id-{index + 1}"
        return f"related-id-{index}"

    if kind == "upload":
        if field.has_many:
            return f"https://example.com/image{index}.jpg,https://example.com/image{index}b.jpg"
        return f"https://example.com/image{index}.jpg"

    return field.example or f"Value {index}"


class TemplateService:
    """Builds field catalogs and sample files from the collection registry."""

    def __init__(self, registry: Optional[CollectionRegistry] = None):
        self.registry = registry if registry is not None else get_collection_registry()

    def catalog(self, collection: str) -> list[CatalogField]:
        """
        Importable fields of a collection.

        Raises:
            UnknownCollectionError: If the collection is not registered
        """
        schema = self.registry.schema_index(collection)
        if schema is None:
            raise UnknownCollectionError(collection)
        return schema.describe(settings.identity_field)

    def sample_csv(self, collection: str, today: Optional[date] = None) -> str:
        """Header row, the catalog examples, then generated rows; every value quoted."""
        fields = self.catalog(collection)

        rows = [[field.example or "" for field in fields]]
        for index in range(1, SAMPLE_ROWS):
            rows.append([sample_value(field, index, today) for field in fields])

        frame = pd.DataFrame(rows, columns=[field.name for field in fields])
        buffer = StringIO()
        frame.to_csv(buffer, index=False, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")

        logger.debug("sample_csv_generated", collection=collection, columns=len(fields))
        return buffer.getvalue()

    def sample_json(self, collection: str, today: Optional[date] = None) -> str:
        fields = self.catalog(collection)
        objects = [
            {field.name: sample_value(field, index, today) for field in fields}
            for index in range(1, SAMPLE_ROWS + 1)
        ]

        logger.debug("sample_json_generated", collection=collection, columns=len(fields))
        return json.dumps(objects, indent=2, ensure_ascii=False)

    def sample(self, collection: str, fmt: str = "csv") -> str:
        """
        Raises:
            ValidationError: If the format is not csv or json
            UnknownCollectionError: If the collection is not registered
        """
        if fmt not in TEMPLATE_FORMATS:
            raise ValidationError(
                message=f"Template format must be one of {', '.join(TEMPLATE_FORMATS)}",
                code="TEMPLATE_FORMAT_INVALID",
                details={"provided": fmt, "valid": list(TEMPLATE_FORMATS)}
            )
        if fmt == "json":
            return self.sample_json(collection)
        return self.sample_csv(collection)


# Singleton instance for convenience
_template_service: Optional[TemplateService] = None


def get_template_service() -> TemplateService:
    """Get or create TemplateService instance."""
    global _template_service
    if _template_service is None:
        _template_service = TemplateService()
    return _template_service
