"""
Collection schema models.

A collection is described by an ordered tree of field descriptors, as
delivered by the collection registry.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import Field

from models.base import BaseSchema


class FieldKind(str, Enum):
    """Closed set of field kinds the row mapper knows how to coerce."""
    TEXT = "text"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    DATE = "date"
    SELECT = "select"
    RELATIONSHIP = "relationship"
    UPLOAD = "upload"
    RICH_TEXT = "richText"
    ARRAY = "array"
    GROUP = "group"
    OTHER = "other"


# Containers that only affect admin layout; their children share the parent's prefix
LAYOUT_TYPES = frozenset({"row", "collapsible", "tabs", "tab"})


class TabDescriptor(BaseSchema):
    """One tab of a `tabs` layout container."""
    name: Optional[str] = None
    label: Optional[Union[str, dict[str, str]]] = None
    fields: list["FieldDescriptor"] = Field(default_factory=list)


class FieldDescriptor(BaseSchema):
    """
    One node of a collection field tree.

    Accepts the camelCase keys used by collection configs
    (defaultValue, relationTo, hasMany) as well as snake_case names.
    `default_value` may be a callable taking a context dict ({"user": ...}).
    """

    name: Optional[str] = None
    type: str = Field(..., min_length=1)
    label: Optional[Union[str, dict[str, str]]] = None
    required: bool = False
    default_value: Any = Field(None, alias="defaultValue")
    relation_to: Optional[Union[str, list[str]]] = Field(None, alias="relationTo")
    has_many: bool = Field(False, alias="hasMany")
    options: list[Any] = Field(default_factory=list)
    fields: list["FieldDescriptor"] = Field(default_factory=list)
    tabs: list[TabDescriptor] = Field(default_factory=list)

    @property
    def kind(self) -> FieldKind:
        try:
            return FieldKind(self.type)
        except ValueError:
            return FieldKind.OTHER

    @property
    def is_layout(self) -> bool:
        return self.type in LAYOUT_TYPES

    @property
    def has_default(self) -> bool:
        """True when the config declared a default, even an explicit null."""
        return "default_value" in self.model_fields_set

    @property
    def relation_target(self) -> Optional[str]:
        """Single target collection; polymorphic targets are joined with ' | '."""
        if isinstance(self.relation_to, list):
            return " | ".join(self.relation_to)
        return self.relation_to

    @property
    def display_label(self) -> str:
        label = self.label
        if isinstance(label, dict):
            label = label.get("en")
        if not label or not str(label).strip():
            return self.name or ""
        return label

    def children(self) -> list["FieldDescriptor"]:
        """Direct child fields, flattening tab containers."""
        if self.type == "tabs":
            nested: list[FieldDescriptor] = []
            for tab in self.tabs:
                nested.extend(tab.fields)
            return nested
        return list(self.fields)


class CatalogField(BaseSchema):
    """Importable field as offered to callers building a mapping."""
    name: str
    type: str
    label: str
    example: str = ""
    required: bool = False
    has_default: bool = False
    relation_to: Optional[str] = None
    has_many: Optional[bool] = None


class CatalogResponse(BaseSchema):
    collection: str
    fields: list[CatalogField]


TabDescriptor.model_rebuild()
FieldDescriptor.model_rebuild()
