"""
Schema index: flattened name → field lookup for one collection.

Layout containers (row, collapsible, tabs) are transparent: their children
are indexed under the parent's prefix. Named fields with children (group,
array) get their own entry and prefix their children with "<name>.".
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import structlog

from models.schema import CatalogField, FieldDescriptor, FieldKind

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SchemaEntry:
    """One indexed field."""
    name: str
    kind: FieldKind
    descriptor: FieldDescriptor
    in_array: bool = False

    @property
    def relation_target(self) -> Optional[str]:
        return self.descriptor.relation_target

    @property
    def has_many(self) -> bool:
        return self.descriptor.has_many


class SchemaIndex:
    """
    Read-only lookup built once per import run.

    Safe to share between mapping threads: nothing mutates it after build().
    """

    def __init__(self, entries: dict[str, SchemaEntry]):
        self._entries = entries

    @classmethod
    def build(cls, fields: Iterable[FieldDescriptor]) -> "SchemaIndex":
        entries: dict[str, SchemaEntry] = {}
        cls._collect(fields, "", False, entries)
        logger.debug("schema_index_built", fields=len(entries))
        return cls(entries)

    @classmethod
    def empty(cls) -> "SchemaIndex":
        return cls({})

    @classmethod
    def _collect(
        cls,
        fields: Iterable[FieldDescriptor],
        prefix: str,
        in_array: bool,
        entries: dict[str, SchemaEntry]
    ) -> None:
        for field in fields:
            if field.is_layout:
                cls._collect(field.children(), prefix, in_array, entries)
                continue

            if not field.name:
                continue

            name = f"{prefix}.{field.name}" if prefix else field.name
            if name in entries:
                logger.warning("schema_field_duplicated", field=name)
            entries[name] = SchemaEntry(
                name=name,
                kind=field.kind,
                descriptor=field,
                in_array=in_array
            )

            nested = field.children()
            if nested:
                cls._collect(
                    nested,
                    name,
                    in_array or field.kind == FieldKind.ARRAY,
                    entries
                )

    # ===================
    # LOOKUPS
    # ===================

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SchemaEntry]:
        return iter(self._entries.values())

    def get(self, name: str) -> Optional[SchemaEntry]:
        return self._entries.get(name)

    def kind_of(self, name: str) -> Optional[FieldKind]:
        entry = self._entries.get(name)
        return entry.kind if entry else None

    def names(self) -> list[str]:
        return list(self._entries)

    def as_kind_map(self) -> dict[str, FieldKind]:
        return {name: entry.kind for name, entry in self._entries.items()}

    def required_defaults(self) -> list[SchemaEntry]:
        """Required fields that declare a default, in tree order (array items excluded)."""
        return [
            entry for entry in self._entries.values()
            if entry.descriptor.required
            and entry.descriptor.has_default
            and not entry.in_array
        ]

    # ===================
    # CATALOG
    # ===================

    def describe(self, identity_field: str = "id") -> list[CatalogField]:
        """
        Importable fields for building a mapping.

        The identity field comes first; array item fields are not offered
        since they are only reachable through the array's JSON value.
        A field counts as required only when it has no default to fall back on.
        """
        catalog = [
            CatalogField(
                name=identity_field,
                type="text",
                label=identity_field.upper(),
                example="Auto-generated record ID",
                required=False,
                has_default=True
            )
        ]

        for entry in self._entries.values():
            if entry.in_array or entry.name == identity_field:
                continue
            descriptor = entry.descriptor

            type_description = descriptor.type
            relation_to = None
            has_many = None
            if entry.kind in (FieldKind.RELATIONSHIP, FieldKind.UPLOAD) and descriptor.relation_to:
                relation_to = descriptor.relation_target
                type_description = f"{descriptor.type} ({relation_to})"
                has_many = descriptor.has_many

            catalog.append(
                CatalogField(
                    name=entry.name,
                    type=type_description,
                    label=descriptor.display_label,
                    example=field_example(descriptor),
                    required=descriptor.required and not descriptor.has_default,
                    has_default=descriptor.has_default,
                    relation_to=relation_to,
                    has_many=has_many
                )
            )

        return catalog


# ===================
# EXAMPLES
# ===================

_TEXT_EXAMPLES = {
    "title": "Product title",
    "name": "Product title",
    "slug": "product-title",
    "sku": "SKU-001",
    "email": "user@example.com",
}

_STATIC_EXAMPLES = {
    "checkbox": "true",
    "code": '{ "key": "value" }',
    "date": "2024-01-01",
    "email": "user@example.com",
    "json": '{ "data": {} }',
    "richText": "Formatted text",
    "textarea": "Long form description...",
}


def field_example(field: FieldDescriptor) -> str:
    """Sample value shown next to a field in the catalog."""
    if field.has_default:
        default = field.default_value
        if isinstance(default, bool):
            return "true" if default else "false"
        if isinstance(default, (str, int, float)):
            return str(default)
        return "[auto]"

    if field.type in _STATIC_EXAMPLES:
        return _STATIC_EXAMPLES[field.type]

    if field.type == "number":
        if field.name in ("price", "cost"):
            return "1000"
        if field.name in ("quantity", "stock"):
            return "50"
        return "123"

    if field.type in ("radio", "select"):
        if field.options:
            first = field.options[0]
            return first.get("value", "") if isinstance(first, dict) else str(first)
        return "option1"

    if field.type == "relationship":
        if field.relation_to:
            return f"Record ID from {field.relation_target}"
        return "relationship-id"

    if field.type == "text":
        return _TEXT_EXAMPLES.get(field.name or "", "Text value")

    if field.type == "upload":
        if not field.relation_to:
            return "image.jpg"
        if field.has_many:
            return "https://example.com/image1.jpg,https://example.com/image2.jpg"
        return "https://example.com/image.jpg"

    return "Value"
