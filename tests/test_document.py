"""Tests for the search document."""

import pytest

from shared.models.errors import (
    DocumentWithoutLinkError,
    InvalidArgumentError,
    InvalidTypeError,
    MissingRequiredFieldError,
    SchemaViolationError,
    UnknownFieldError,
)
from shared.search.document.Document import Document


def full_document(**overrides) -> Document:
    doc = Document(7, "mod_forum")
    fields = {"title": "Title", "content": "Content", "contentformat": 1, "contextid": 501, "type": 1, "courseid": 5, "modified": 200}
    fields.update(overrides)
    for field, value in fields.items():
        if value is not None:
            doc.set(field, value)
    return doc


class TestDocument:
    def test_identity(self) -> None:
        doc = Document("12", "mod_url")

        assert doc.get("id") == "mod_url-12"
        assert doc.get("itemid") == 12
        assert doc.get("component") == "mod_url"

    def test_itemid_must_be_numeric(self) -> None:
        with pytest.raises(InvalidArgumentError):
            Document("abc", "mod_forum")

    def test_set_coerces_values(self) -> None:
        """Numeric fields become integers, strings lose surrounding line breaks."""
        doc = Document(1, "mod_forum")

        assert doc.set("contextid", "501") == 501
        assert doc.set("modified", 1451642400.7) == 1451642400
        assert doc.set("title", "\r\nTitle\n") == "Title"
        assert doc.set("intro", None) == ""

    def test_unknown_field(self) -> None:
        with pytest.raises(UnknownFieldError):
            Document(1, "mod_forum").set("colour", "red")

    def test_invalid_numeric_value(self) -> None:
        with pytest.raises(InvalidTypeError):
            Document(1, "mod_forum").set("courseid", "five")

    def test_extras_are_not_exported(self) -> None:
        doc = full_document()
        doc.set_extra("coursefullname", "Physics 101")

        assert doc.get("coursefullname") == "Physics 101"
        assert doc.is_set("coursefullname") is True
        assert "coursefullname" not in doc.export_for_engine()


class TestExport:
    def test_missing_required_field(self) -> None:
        with pytest.raises(MissingRequiredFieldError):
            full_document(contextid=None).export_for_engine()

    def test_modified_falls_back_to_created(self) -> None:
        doc = full_document(modified=None, created=150)

        assert doc.export_for_engine()["modified"] == 150

    def test_no_time_at_all(self) -> None:
        with pytest.raises(MissingRequiredFieldError):
            full_document(modified=None).export_for_engine()

    def test_export_and_engine_data_agree(self) -> None:
        exported = full_document(userfullname="Ada Lovelace").export_for_engine()
        doc = Document(exported["itemid"], exported["component"])

        doc.set_data_from_engine(exported)

        assert doc.export_for_engine() == exported

    def test_multivalued_engine_field(self) -> None:
        doc = Document(7, "mod_forum")

        with pytest.raises(SchemaViolationError) as e:
            doc.set_data_from_engine({"title": ["a", "b"]})
        assert e.value.field == "title"


class TestLinks:
    def test_links_are_required(self) -> None:
        doc = Document(1, "mod_forum")

        with pytest.raises(DocumentWithoutLinkError):
            doc.get_doc_url()
        with pytest.raises(DocumentWithoutLinkError):
            doc.get_context_url()

        doc.set_doc_url("https://lms.example.org/mod/forum/discuss.php?d=1")
        assert doc.get_doc_url().endswith("d=1")

    def test_field_definitions(self) -> None:
        fields = Document.get_default_fields_definition()

        assert list(fields)[:2] == ["id", "itemid"]
        assert fields["modified"].type == "tdate"
        assert Document.get_field_definition("userfullname").indexed is True
        assert Document.get_field_definition("colour") is None
