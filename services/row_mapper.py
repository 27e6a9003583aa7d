"""
Row mapper: one source row → one target-keyed record.

Each field kind has its own coercion function; the dispatch table is checked
against FieldKind at import time so a new kind cannot be left unhandled.
"""

import copy
import json
import re
import uuid
from typing import Any, Callable, Optional

import structlog

from exceptions import RowMappingError
from models.imports import FieldMapping, ImportMode
from models.schema import FieldKind
from services.media_ingestor import MediaIngestor
from services.schema_index import SchemaEntry, SchemaIndex

logger = structlog.get_logger(__name__)

AFFIRMATIVE_TOKENS = ("available", "in stock", "yes", "true")
NEGATIVE_TOKENS = ("not available", "no", "absent", "out of stock", "false")

_NON_NUMERIC = re.compile(r"[^\d.,]")
_LEADING_FLOAT = re.compile(r"\d+(?:\.\d*)?|\.\d+")


# ===================
# RICH TEXT
# ===================

def _paragraph(children: list[dict]) -> dict:
    return {
        "type": "paragraph",
        "children": children,
        "direction": None,
        "format": "",
        "indent": 0,
        "version": 1,
    }


def _text_node(text: str) -> dict:
    return {
        "type": "text",
        "detail": 0,
        "format": 0,
        "mode": "normal",
        "style": "",
        "text": text,
        "version": 1,
    }


def to_rich_text(value: Any) -> Any:
    """
    Plain text → rich text document, one paragraph per non-empty line.

    Blank input still yields a single empty paragraph. Dicts and lists are
    taken as already-structured documents and returned unchanged.
    """
    if isinstance(value, (dict, list)):
        return value

    text = value if isinstance(value, str) else str(value)

    lines = [line.strip() for line in text.split("\n")]
    lines = [line for line in lines if line]

    if lines:
        children = [_paragraph([_text_node(line)]) for line in lines]
    else:
        children = [_paragraph([])]

    return {
        "root": {
            "type": "root",
            "children": children,
            "direction": None,
            "format": "",
            "indent": 0,
            "version": 1,
        }
    }


# ===================
# NUMBERS
# ===================

def parse_number(value: Any) -> float:
    """
    Lenient number coercion for spreadsheet cells.

    Availability words map to 1/0; other strings keep digits, commas and
    dots, read the leading decimal, and fall back to 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if not isinstance(value, str):
        return 0

    normalized = value.lower()
    if any(token in normalized for token in AFFIRMATIVE_TOKENS):
        return 1
    if any(token in normalized for token in NEGATIVE_TOKENS):
        return 0

    digits = _NON_NUMERIC.sub("", value).replace(",", ".", 1)
    match = _LEADING_FLOAT.match(digits)
    if not match:
        return 0
    return float(match.group(0))


# ===================
# RELATIONSHIPS
# ===================

def split_ids(value: Any) -> list:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def wrap_relationship(value: Any, has_many: bool) -> Any:
    if has_many:
        return [{"id": item} for item in split_ids(value)]
    return {"id": value}


class RowMapper:
    """
    Maps rows of one import run.

    Stateless apart from the injected MediaIngestor, so a single instance
    can be shared by all mapping threads.
    """

    def __init__(
        self,
        schema: SchemaIndex,
        media: Optional[MediaIngestor] = None,
        identity_field: str = "id",
        principal: Any = None,
        log=None
    ):
        self.schema = schema
        self.media = media
        self.identity_field = identity_field
        self.principal = principal
        self.log = log or logger
        self._coercers: dict[FieldKind, Callable[[SchemaEntry, Any], Any]] = {
            FieldKind.TEXT: self._passthrough,
            FieldKind.NUMBER: self._coerce_number,
            FieldKind.CHECKBOX: self._passthrough,
            FieldKind.DATE: self._passthrough,
            FieldKind.SELECT: self._passthrough,
            FieldKind.RELATIONSHIP: self._coerce_relationship,
            FieldKind.UPLOAD: self._coerce_upload,
            FieldKind.RICH_TEXT: self._coerce_rich_text,
            FieldKind.ARRAY: self._coerce_array,
            FieldKind.GROUP: self._passthrough,
            FieldKind.OTHER: self._passthrough,
        }

    def map(
        self,
        row: dict[str, Any],
        mappings: list[FieldMapping],
        mode: ImportMode,
        row_number: int = 0
    ) -> dict[str, Any]:
        """
        Build the record for one row.

        Raises:
            RowMappingError: If a value cannot be coerced
        """
        mapped: dict[str, Any] = {}

        for mapping in mappings:
            target = mapping.target_field
            value = row.get(mapping.source_field)
            if value is None or value == "":
                continue

            if target == self.identity_field:
                mapped[target] = value
                continue

            entry = self.schema.get(target)
            if entry is None:
                self.log.warning("unmapped_field_skipped", field=target, row=row_number)
                continue

            try:
                mapped[target] = self._coercers[entry.kind](entry, value)
            except Exception as e:
                raise RowMappingError(row_number, f"{target}: {e}", field=target) from e

        if mode == ImportMode.CREATE:
            self._fill_required_defaults(mapped, row_number)

        return mapped

    # ===================
    # COERCIONS
    # ===================

    def _passthrough(self, entry: SchemaEntry, value: Any) -> Any:
        return value

    def _coerce_number(self, entry: SchemaEntry, value: Any) -> Any:
        return parse_number(value)

    def _coerce_rich_text(self, entry: SchemaEntry, value: Any) -> Any:
        return to_rich_text(value)

    def _coerce_relationship(self, entry: SchemaEntry, value: Any) -> Any:
        return wrap_relationship(value, entry.has_many)

    def _coerce_upload(self, entry: SchemaEntry, value: Any) -> Any:
        if not entry.relation_target or self.media is None:
            return value
        return self.media.resolve(value, entry.relation_target, entry.has_many)

    def _coerce_array(self, entry: SchemaEntry, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                # Unparseable text stays as-is and is dropped by the list check below
                pass

        if not isinstance(value, list):
            return []

        items = []
        for index, item in enumerate(value):
            if not isinstance(item, dict):
                items.append(item)
                continue

            processed = dict(item)
            if not processed.get("id"):
                processed["id"] = f"item_{index}_{uuid.uuid4().hex[:12]}"

            for key, sub_value in list(processed.items()):
                sub_entry = self.schema.get(f"{entry.name}.{key}")
                if sub_entry is None or sub_entry.kind != FieldKind.RELATIONSHIP:
                    continue
                processed[key] = self._wrap_nested_relationship(sub_entry, sub_value)

            items.append(processed)
        return items

    def _wrap_nested_relationship(self, entry: SchemaEntry, value: Any) -> Any:
        if isinstance(value, list):
            return [{"id": item} if isinstance(item, str) else item for item in value]
        if isinstance(value, str):
            return wrap_relationship(value, entry.has_many)
        return value

    # ===================
    # DEFAULTS
    # ===================

    def _fill_required_defaults(self, mapped: dict[str, Any], row_number: int) -> None:
        for entry in self.schema.required_defaults():
            if entry.name in mapped:
                continue

            default = entry.descriptor.default_value
            if callable(default):
                try:
                    mapped[entry.name] = default({"user": self.principal})
                except Exception as e:
                    self.log.warning(
                        "default_value_failed",
                        field=entry.name,
                        row=row_number,
                        error=str(e)
                    )
            else:
                mapped[entry.name] = copy.deepcopy(default)


def _check_exhaustive() -> None:
    mapper = RowMapper(SchemaIndex.empty())
    missing = set(FieldKind) - set(mapper._coercers)
    if missing:
        raise RuntimeError(f"No coercion for field kinds: {sorted(k.value for k in missing)}")


_check_exhaustive()
