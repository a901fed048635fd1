"""Schema validation for documents.

A :class:`SchemaValidator` wraps a compiled W3C XML Schema or RELAX NG
grammar. Loading is fallible and reported through :class:`SchemaLoadResult`
rather than an exception, so a caller can degrade to "no schema" explicitly.
Validators pickle as their locator and are recompiled when unpickled.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from lxml import etree

from xml_document_model.errors import SchemaLoadError
from xml_document_model.shared import DiagnosticEntry, get_logger

_RELAXNG_SUFFIXES = (".rng",)

SchemaLocator = Union[str, Path]


@dataclass
class SchemaLoadResult:
    """Outcome of loading a schema: a validator or the error that prevented it."""

    locator: str
    validator: Optional["SchemaValidator"] = None
    error: Optional[SchemaLoadError] = None

    @property
    def success(self) -> bool:
        """True when a validator was built."""
        return self.validator is not None


class SchemaValidator:
    """Validates lxml trees against a compiled schema."""

    def __init__(self, locator: SchemaLocator) -> None:
        """Compile the schema at ``locator``.

        Args:
            locator: File path or URL of an XSD (``.xsd``) or RELAX NG
                (``.rng``) schema

        Raises:
            SchemaLoadError: If the locator is empty or the schema cannot be
                read or compiled
        """
        self.locator = str(locator)
        self.logger = get_logger(__name__, component="schema_validator")
        self._schema = self._compile(self.locator)
        self._last_errors: List[DiagnosticEntry] = []

    @classmethod
    def load(cls, locator: SchemaLocator) -> SchemaLoadResult:
        """Build a validator, capturing failure in the returned result."""
        try:
            return SchemaLoadResult(locator=str(locator), validator=cls(locator))
        except SchemaLoadError as e:
            return SchemaLoadResult(locator=str(locator), error=e)

    @property
    def kind(self) -> str:
        """``"relaxng"`` or ``"xsd"``."""
        return "relaxng" if isinstance(self._schema, etree.RelaxNG) else "xsd"

    def _compile(self, locator: str) -> Union[etree.XMLSchema, etree.RelaxNG]:
        if not locator:
            raise SchemaLoadError("Schema locator cannot be empty", locator)
        try:
            schema_doc = etree.parse(locator)
            if locator.lower().endswith(_RELAXNG_SUFFIXES):
                return etree.RelaxNG(schema_doc)
            return etree.XMLSchema(schema_doc)
        except (OSError, etree.XMLSyntaxError, etree.XMLSchemaParseError,
                etree.RelaxNGParseError) as e:
            raise SchemaLoadError(
                f"Unable to load schema from {locator}: {e}", locator
            ) from e

    def validate(self, tree: Union[etree._ElementTree, etree._Element]) -> bool:
        """Return True if ``tree`` conforms to the schema."""
        verdict = bool(self._schema.validate(tree))
        self._last_errors = [
            DiagnosticEntry.from_libxml(entry, "schema_validator")
            for entry in self._schema.error_log
        ]
        self.logger.debug(
            "Schema validation finished",
            extra={"valid": verdict, "error_count": len(self._last_errors)},
        )
        return verdict

    @property
    def errors(self) -> List[DiagnosticEntry]:
        """Entries reported by the most recent :meth:`validate` call."""
        return list(self._last_errors)

    def __getstate__(self) -> Dict[str, Any]:
        return {"locator": self.locator}

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self.__init__(state["locator"])

    def __repr__(self) -> str:
        return f"SchemaValidator({self.locator!r}, kind={self.kind!r})"
