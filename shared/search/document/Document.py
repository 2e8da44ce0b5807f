"""Search document representation.

A Document is the unit a search source hands to the search engine. Every field
has a declared type and stored/indexed flags which are also used to build the
backend schema. Engine clients may ship a Document subclass overriding the
format_* / import_* hooks (see EngineClientInterface.get_document_class()).
"""

import math
from typing import Any

from pydantic import BaseModel

from shared.models.errors import (
    DocumentWithoutLinkError,
    InvalidArgumentError,
    InvalidTypeError,
    MissingRequiredFieldError,
    SchemaViolationError,
    UnknownFieldError,
)


class FieldDefinition(BaseModel):
    """Type and storage flags of one document field.

    Attributes:
        type:    "string", "int" or "tdate".
        stored:  Whether the backend stores the raw value.
        indexed: Whether the backend indexes the value for searching.
    """

    type: str
    stored: bool
    indexed: bool


def is_numeric(value: Any) -> bool:
    """Whether the value is a finite number or a numeric string."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


def to_int(value: Any) -> int:
    """Coerce a value accepted by is_numeric() to an integer, truncating decimals."""
    if isinstance(value, str):
        value = value.strip()
        try:
            return int(value)
        except ValueError:
            return int(float(value))
    return int(value)


class Document:
    """Represents a document to index."""

    # All required fields any document should contain.
    REQUIRED_FIELDS: dict[str, FieldDefinition] = {
        "id": FieldDefinition(type="string", stored=True, indexed=False),
        "itemid": FieldDefinition(type="int", stored=True, indexed=True),
        "title": FieldDefinition(type="string", stored=True, indexed=True),
        "content": FieldDefinition(type="string", stored=True, indexed=True),
        "contentformat": FieldDefinition(type="int", stored=True, indexed=False),
        "contextid": FieldDefinition(type="int", stored=True, indexed=True),
        "component": FieldDefinition(type="string", stored=True, indexed=True),
        "type": FieldDefinition(type="int", stored=True, indexed=True),
        "courseid": FieldDefinition(type="int", stored=True, indexed=False),
        "modified": FieldDefinition(type="tdate", stored=True, indexed=True),
    }

    # Fields a source may set, exported when present.
    OPTIONAL_FIELDS: dict[str, FieldDefinition] = {
        "userid": FieldDefinition(type="int", stored=True, indexed=False),
        "userfullname": FieldDefinition(type="string", stored=True, indexed=True),
        "name": FieldDefinition(type="string", stored=True, indexed=True),
        "intro": FieldDefinition(type="string", stored=True, indexed=True),
        "introformat": FieldDefinition(type="int", stored=True, indexed=False),
        "created": FieldDefinition(type="tdate", stored=True, indexed=True),
    }

    def __init__(self, itemid: int | str, component: str):
        if not is_numeric(itemid):
            raise InvalidArgumentError("The itemid should be an integer")

        self._data: dict[str, Any] = {}
        # render-time annotations, never exported to the engine
        self._extradata: dict[str, Any] = {}
        self._docurl: str | None = None
        self._contexturl: str | None = None
        self._filearea: str | None = None

        self._data["id"] = f"{component}-{to_int(itemid)}"
        self._data["component"] = component
        self._data["itemid"] = to_int(itemid)

    ##########################################
    ################ SCHEMA ##################
    ##########################################

    @classmethod
    def get_default_fields_definition(cls) -> dict[str, FieldDefinition]:
        """Returns the required and the optional field definitions, required first."""
        return {**cls.REQUIRED_FIELDS, **cls.OPTIONAL_FIELDS}

    @classmethod
    def get_field_definition(cls, fieldname: str) -> FieldDefinition | None:
        if fieldname in cls.REQUIRED_FIELDS:
            return cls.REQUIRED_FIELDS[fieldname]
        return cls.OPTIONAL_FIELDS.get(fieldname)

    ##########################################
    ################ ACCESS ##################
    ##########################################

    def set(self, fieldname: str, value: Any) -> Any:
        """Sets a field value, coercing it to the field type.

        Args:
            fieldname (str): A required or optional field name.
            value (Any): The value, numeric for "int" and "tdate" fields.

        Returns:
            Any: The stored value.

        Raises:
            UnknownFieldError: If the field is not part of the schema.
            InvalidTypeError: If an int/tdate value is not numeric.
        """
        definition = self.get_field_definition(fieldname)
        if definition is None:
            raise UnknownFieldError(f'"{fieldname}" field does not exist.')

        if definition.type in ("int", "tdate"):
            if not is_numeric(value):
                raise InvalidTypeError(f'"{fieldname}" value should be an integer and its value is "{value}"')
            self._data[fieldname] = to_int(value)
        else:
            self._data[fieldname] = ("" if value is None else str(value)).strip("\r\n")

        return self._data[fieldname]

    def set_extra(self, fieldname: str, value: Any) -> None:
        """Sets data that is needed to display the document but is not part of the schema."""
        self._extradata[fieldname] = value

    def get(self, fieldname: str) -> Any:
        if self._data.get(fieldname) is not None:
            return self._data[fieldname]
        return self._extradata.get(fieldname)

    def is_set(self, fieldname: str) -> bool:
        return self._data.get(fieldname) is not None or self._extradata.get(fieldname) is not None

    ################ LINKS ##################
    def set_doc_url(self, url: str) -> None:
        self._docurl = url

    def get_doc_url(self) -> str:
        if not self._docurl:
            raise DocumentWithoutLinkError(f'Document "{self._data["id"]}" has no link to its content.')
        return self._docurl

    def set_context_url(self, url: str) -> None:
        self._contexturl = url

    def get_context_url(self) -> str:
        if not self._contexturl:
            raise DocumentWithoutLinkError(f'Document "{self._data["id"]}" has no link to its context.')
        return self._contexturl

    def set_filearea(self, filearea: str | None) -> None:
        self._filearea = filearea

    def get_filearea(self) -> str | None:
        return self._filearea

    ##########################################
    ########### ENGINE FORMATTING ############
    ##########################################

    @classmethod
    def format_time_for_engine(cls, timestamp: int) -> Any:
        """Hook to format a unix timestamp for the engine. Identity by default."""
        return timestamp

    @classmethod
    def format_string_for_engine(cls, string: str) -> Any:
        """Hook to format a string for the engine. Identity by default."""
        return string

    @classmethod
    def import_time_from_engine(cls, time: Any) -> int:
        """Inverse of format_time_for_engine()."""
        return time

    def export_for_engine(self) -> dict[str, Any]:
        """Returns the document data as a flat map the engine can store.

        The modified time falls back to the created time.

        Returns:
            dict[str, Any]: Field name to engine formatted value.

        Raises:
            MissingRequiredFieldError: If a required field is not set.
        """
        if not self._data.get("modified"):
            if not self._data.get("created"):
                raise MissingRequiredFieldError(f'Missing created field in document with id "{self._data["id"]}"')
            self._data["modified"] = self._data["created"]

        data = dict(self._data)
        for fieldname in self.REQUIRED_FIELDS:
            if data.get(fieldname) is None:
                raise MissingRequiredFieldError(f'Missing "{fieldname}" field in document with id "{self._data["id"]}"')

        for fieldname, field in self.get_default_fields_definition().items():
            if data.get(fieldname) is None:
                continue
            if field.type == "tdate":
                data[fieldname] = self.format_time_for_engine(data[fieldname])
            elif field.type == "string":
                data[fieldname] = self.format_string_for_engine(data[fieldname])

        return data

    def set_data_from_engine(self, docdata: dict[str, Any]) -> None:
        """Sets the document data from a result returned by the engine.

        Args:
            docdata (dict[str, Any]): Flat field map as stored in the engine.

        Raises:
            SchemaViolationError: If a field comes back multi-valued.
        """
        for fieldname, field in self.get_default_fields_definition().items():
            value = docdata.get(fieldname)
            if value is None or value == "":
                continue
            if isinstance(value, (list, tuple)):
                raise SchemaViolationError(fieldname)

            if field.type == "tdate":
                self.set(fieldname, self.import_time_from_engine(value))
            else:
                self.set(fieldname, value)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self._data.get('id')}>"
