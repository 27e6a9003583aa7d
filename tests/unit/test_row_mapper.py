"""
Unit tests for RowMapper and its coercion helpers.

Run: pytest tests/unit/test_row_mapper.py -v
"""

import pytest
from unittest.mock import MagicMock

from exceptions import RowMappingError
from models.imports import FieldMapping, ImportMode
from services.row_mapper import RowMapper, parse_number, to_rich_text, wrap_relationship
from services.schema_index import SchemaIndex
from tests.factories import FieldFactory


def mappings(*pairs):
    return [FieldMapping(source_field=source, target_field=target) for source, target in pairs]


class TestParseNumber:
    """Tests for parse_number()"""

    @pytest.mark.parametrize("value,expected", [
        ("In Stock", 1),
        ("yes", 1),
        ("TRUE", 1),
        ("out of stock", 0),
        ("No", 0),
        ("absent", 0),
        ("false", 0),
    ])
    def test_availability_tokens(self, value, expected):
        """Availability words should map to 1 or 0."""
        assert parse_number(value) == expected

    def test_affirmative_checked_before_negative(self):
        """'not available' contains 'available' and is read as affirmative."""
        assert parse_number("not available") == 1

    def test_comma_decimal(self):
        """First comma should act as decimal separator."""
        assert parse_number("12,5") == 12.5

    def test_currency_and_spaces_stripped(self):
        """Non-numeric characters should be removed before parsing."""
        assert parse_number("$ 1 200.50") == 1200.5

    def test_second_separator_truncates(self):
        """Only the leading decimal should be read."""
        assert parse_number("1,234.56") == 1.234

    def test_garbage_defaults_to_zero(self):
        """Text without digits should become 0."""
        assert parse_number("n/a") == 0
        assert parse_number("") == 0

    def test_numbers_pass_through(self):
        """Native numbers should be returned unchanged."""
        assert parse_number(42) == 42
        assert parse_number(3.5) == 3.5

    def test_non_string_non_number_is_zero(self):
        """Booleans and other objects should become 0."""
        assert parse_number(True) == 0
        assert parse_number({"a": 1}) == 0


class TestToRichText:
    """Tests for to_rich_text()"""

    def test_one_paragraph_per_non_empty_line(self):
        """Blank lines should be dropped and lines trimmed."""
        doc = to_rich_text("  first \n\n second")

        paragraphs = doc["root"]["children"]
        assert [p["children"][0]["text"] for p in paragraphs] == ["first", "second"]
        assert all(p["type"] == "paragraph" for p in paragraphs)

    def test_blank_text_yields_one_empty_paragraph(self):
        """Empty input should still produce a valid document."""
        doc = to_rich_text("")

        assert doc["root"]["type"] == "root"
        assert len(doc["root"]["children"]) == 1
        assert doc["root"]["children"][0]["children"] == []

    def test_text_node_shape(self):
        """Text nodes should carry default formatting."""
        node = to_rich_text("hello")["root"]["children"][0]["children"][0]

        assert node == {
            "type": "text",
            "detail": 0,
            "format": 0,
            "mode": "normal",
            "style": "",
            "text": "hello",
            "version": 1,
        }

    @pytest.mark.parametrize("value,expected", [
        (12, "12"),
        (2.5, "2.5"),
        (True, "True"),
    ])
    def test_scalars_are_stringified(self, value, expected):
        """Numbers and booleans should be rendered as text."""
        doc = to_rich_text(value)

        assert doc["root"]["children"][0]["children"][0]["text"] == expected

    @pytest.mark.parametrize("value", [
        {"root": {"type": "root", "children": []}},
        [{"type": "paragraph", "children": []}],
    ])
    def test_structured_value_passes_through(self, value):
        """Dicts and lists are already documents and should be returned as given."""
        assert to_rich_text(value) is value



class TestWrapRelationship:
    """Tests for wrap_relationship()"""

    def test_single(self):
        assert wrap_relationship("u1", has_many=False) == {"id": "u1"}

    def test_many_splits_commas_and_drops_empty(self):
        """Comma list should be trimmed; empty fragments dropped."""
        assert wrap_relationship("a, b,,c ", has_many=True) == [{"id": "a"}, {"id": "b"}, {"id": "c"}]

    def test_many_from_list(self):
        assert wrap_relationship(["a", "b"], has_many=True) == [{"id": "a"}, {"id": "b"}]


class TestRowMapperMap:
    """Tests for RowMapper.map()"""

    def test_maps_and_coerces_declared_fields(self, post_schema):
        """Should rename source columns and coerce by kind."""
        mapper = RowMapper(post_schema)
        row = {"Title": "Chair", "Price": "1.299,00", "Author": "u-7", "Related": "p1,p2"}

        record = mapper.map(
            row,
            mappings(("Title", "title"), ("Price", "price"), ("Author", "author"), ("Related", "related")),
            ImportMode.UPDATE
        )

        assert record == {
            "title": "Chair",
            "price": 1.299,
            "author": {"id": "u-7"},
            "related": [{"id": "p1"}, {"id": "p2"}],
        }

    def test_empty_values_skipped(self, post_schema):
        """None and empty string cells should not produce keys."""
        mapper = RowMapper(post_schema)

        record = mapper.map(
            {"Title": "", "SKU": None, "Stock": 0},
            mappings(("Title", "title"), ("SKU", "sku"), ("Stock", "stock")),
            ImportMode.UPDATE
        )

        assert record == {"stock": 0}

    def test_missing_source_column_skipped(self, post_schema):
        """A mapping whose column is absent should be ignored."""
        mapper = RowMapper(post_schema)

        record = mapper.map({}, mappings(("Title", "title")), ImportMode.UPDATE)

        assert record == {}

    def test_identity_passes_through_without_schema(self, post_schema):
        """The identity field should be copied verbatim."""
        mapper = RowMapper(post_schema)

        record = mapper.map(
            {"ID": "42", "Title": "Lamp"},
            mappings(("ID", "id"), ("Title", "title")),
            ImportMode.UPSERT
        )

        assert record == {"id": "42", "title": "Lamp"}

    def test_undeclared_target_logged_and_skipped(self, post_schema):
        """Targets missing from the schema should be dropped with a warning."""
        log = MagicMock()
        mapper = RowMapper(post_schema, log=log)

        record = mapper.map({"X": "1"}, mappings(("X", "colour")), ImportMode.UPDATE, row_number=3)

        assert record == {}
        log.warning.assert_called_once_with("unmapped_field_skipped", field="colour", row=3)

    def test_dotted_group_field(self, post_schema):
        """Group children should be addressable by dotted path."""
        mapper = RowMapper(post_schema)

        record = mapper.map({"Meta": "Hi"}, mappings(("Meta", "seo.metaTitle")), ImportMode.UPDATE)

        assert record == {"seo.metaTitle": "Hi"}

    def test_rich_text_field(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"Body": "a\n\nb"}, mappings(("Body", "body")), ImportMode.UPDATE)

        assert len(record["body"]["root"]["children"]) == 2

    def test_rich_text_document_kept(self, post_schema):
        """A JSON cell holding a document should be stored unchanged."""
        mapper = RowMapper(post_schema)
        doc = {"root": {"type": "root", "children": [{"type": "paragraph", "children": []}]}}

        record = mapper.map({"Body": doc}, mappings(("Body", "body")), ImportMode.UPDATE)

        assert record["body"] == doc


    def test_other_kinds_pass_through(self, post_schema):
        """Checkbox, date and select values should be kept as given."""
        mapper = RowMapper(post_schema)

        record = mapper.map(
            {"F": "true", "D": "2024-05-01", "S": "published"},
            mappings(("F", "featured"), ("D", "publishedAt"), ("S", "status")),
            ImportMode.UPDATE
        )

        assert record == {"featured": "true", "publishedAt": "2024-05-01", "status": "published"}

    def test_coercion_failure_raises_row_mapping_error(self, post_schema):
        """A coercer exception should be wrapped with the row number."""
        media = MagicMock()
        media.resolve.side_effect = RuntimeError("boom")
        mapper = RowMapper(post_schema, media=media)

        with pytest.raises(RowMappingError) as exc_info:
            mapper.map({"Cover": "https://x.test/a.jpg"}, mappings(("Cover", "cover")), ImportMode.UPDATE, row_number=4)

        assert exc_info.value.row == 4
        assert exc_info.value.message == "cover: boom"


class TestRowMapperUploads:
    """Tests for upload field handling in RowMapper"""

    def test_upload_delegates_to_media(self, post_schema):
        """Upload values should be resolved through the media ingestor."""
        media = MagicMock()
        media.resolve.return_value = ["m1", "m2"]
        mapper = RowMapper(post_schema, media=media)

        record = mapper.map({"Pics": "u1,u2"}, mappings(("Pics", "gallery")), ImportMode.UPDATE)

        media.resolve.assert_called_once_with("u1,u2", "media", True)
        assert record == {"gallery": ["m1", "m2"]}

    def test_upload_without_media_passes_through(self, post_schema):
        """Without an ingestor the raw value is kept."""
        mapper = RowMapper(post_schema)

        record = mapper.map({"Cover": "file-id"}, mappings(("Cover", "cover")), ImportMode.UPDATE)

        assert record == {"cover": "file-id"}

    def test_upload_without_target_passes_through(self):
        """Upload fields with no target collection are not ingested."""
        schema = SchemaIndex.build([FieldFactory.upload("file", relation_to=None)])
        media = MagicMock()
        mapper = RowMapper(schema, media=media)

        record = mapper.map({"F": "raw"}, mappings(("F", "file")), ImportMode.UPDATE)

        assert record == {"file": "raw"}
        media.resolve.assert_not_called()


class TestRowMapperArrays:
    """Tests for array field handling in RowMapper"""

    def test_json_array_items_get_ids_and_wrapped_relationships(self, post_schema):
        """Dict items should get synthetic ids and wrapped nested relationships."""
        mapper = RowMapper(post_schema)
        value = '[{"attribute": "a1", "values": "v1,v2"}, {"id": "keep", "attribute": "a2"}]'

        record = mapper.map({"A": value}, mappings(("A", "array")), ImportMode.UPDATE)

        first, second = record["array"]
        assert first["id"].startswith("item_0_")
        assert first["attribute"] == {"id": "a1"}
        assert first["values"] == [{"id": "v1"}, {"id": "v2"}]
        assert second["id"] == "keep"
        assert second["attribute"] == {"id": "a2"}

    def test_list_of_ids_in_nested_relationship(self, post_schema):
        """String items of a nested list should be wrapped; objects kept."""
        mapper = RowMapper(post_schema)
        value = [{"values": ["v1", {"id": "v2"}]}]

        record = mapper.map({"A": value}, mappings(("A", "array")), ImportMode.UPDATE)

        assert record["array"][0]["values"] == [{"id": "v1"}, {"id": "v2"}]

    def test_unparseable_json_becomes_empty_list(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"A": "not-json"}, mappings(("A", "array")), ImportMode.UPDATE)

        assert record == {"array": []}

    def test_scalar_items_kept_without_ids(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"A": "[1,2]"}, mappings(("A", "array")), ImportMode.UPDATE)

        assert record == {"array": [1, 2]}

    def test_non_list_json_becomes_empty_list(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"A": '{"a": 1}'}, mappings(("A", "array")), ImportMode.UPDATE)

        assert record == {"array": []}

    def test_unknown_item_keys_untouched(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"A": [{"id": "x", "extra": "e"}]}, mappings(("A", "array")), ImportMode.UPDATE)

        assert record == {"array": [{"id": "x", "extra": "e"}]}


class TestRowMapperDefaults:
    """Tests for required-default filling in create mode"""

    def test_create_fills_missing_required_defaults(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"Title": "T"}, mappings(("Title", "title")), ImportMode.CREATE)

        assert record == {"title": "T", "status": "draft", "featured": False}

    def test_create_keeps_mapped_values(self, post_schema):
        mapper = RowMapper(post_schema)

        record = mapper.map({"S": "published"}, mappings(("S", "status")), ImportMode.CREATE)

        assert record["status"] == "published"

    def test_update_and_upsert_do_not_fill_defaults(self, post_schema):
        mapper = RowMapper(post_schema)

        for mode in (ImportMode.UPDATE, ImportMode.UPSERT):
            record = mapper.map({"Title": "T"}, mappings(("Title", "title")), mode)
            assert record == {"title": "T"}

    def test_callable_default_receives_principal(self):
        """Function defaults should be called with {'user': principal}."""
        schema = SchemaIndex.build([
            FieldFactory.create("owner", required=True, default_value=lambda ctx: ctx["user"]["id"]),
        ])
        mapper = RowMapper(schema, principal={"id": "u-1"})

        record = mapper.map({}, [], ImportMode.CREATE)

        assert record == {"owner": "u-1"}

    def test_failing_callable_default_is_skipped(self):
        """A raising default should be logged and left unset."""
        log = MagicMock()
        schema = SchemaIndex.build([
            FieldFactory.create("owner", required=True, default_value=lambda ctx: ctx["user"]["id"]),
        ])
        mapper = RowMapper(schema, principal=None, log=log)

        record = mapper.map({}, [], ImportMode.CREATE, row_number=2)

        assert record == {}
        assert log.warning.call_args.args[0] == "default_value_failed"

    def test_mutable_default_is_copied(self):
        """Each record should get its own copy of a mutable default."""
        schema = SchemaIndex.build([
            FieldFactory.create("tags", "json", required=True, default_value=[]),
        ])
        mapper = RowMapper(schema)

        first = mapper.map({}, [], ImportMode.CREATE)
        first["tags"].append("x")
        second = mapper.map({}, [], ImportMode.CREATE)

        assert second["tags"] == []
