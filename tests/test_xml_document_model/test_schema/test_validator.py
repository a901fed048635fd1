"""Tests for schema loading and validation."""

import pickle
from pathlib import Path

import pytest
from lxml import etree

from xml_document_model.errors import SchemaLoadError
from xml_document_model.schema import SchemaLoadResult, SchemaValidator

META_NS = "urn:example:meta"

XSD = f"""<?xml version="1.0"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           targetNamespace="{META_NS}"
           xmlns="{META_NS}"
           elementFormDefault="qualified">
  <xs:element name="metadata">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="title" type="xs:string"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""

RNG = f"""<?xml version="1.0"?>
<element name="metadata" ns="{META_NS}" xmlns="http://relaxng.org/ns/structure/1.0">
  <element name="title"><text/></element>
</element>
"""

VALID = f'<metadata xmlns="{META_NS}"><title>Report</title></metadata>'
INVALID = f'<metadata xmlns="{META_NS}"><author>Nobody</author></metadata>'


@pytest.fixture
def xsd_path(tmp_path: Path) -> Path:
    path = tmp_path / "metadata.xsd"
    path.write_text(XSD)
    return path


@pytest.fixture
def rng_path(tmp_path: Path) -> Path:
    path = tmp_path / "metadata.rng"
    path.write_text(RNG)
    return path


class TestSchemaValidator:
    """Test compiled schema validators."""

    def test_xsd_validation(self, xsd_path: Path) -> None:
        """Test validating conforming and non-conforming trees."""
        validator = SchemaValidator(xsd_path)

        assert validator.kind == "xsd"
        assert validator.validate(etree.fromstring(VALID).getroottree()) is True
        assert validator.errors == []
        assert validator.validate(etree.fromstring(INVALID).getroottree()) is False
        assert validator.errors
        assert validator.errors[0].component == "schema_validator"

    def test_relaxng_validation(self, rng_path: Path) -> None:
        """Test that .rng locators compile as RELAX NG."""
        validator = SchemaValidator(str(rng_path))

        assert validator.kind == "relaxng"
        assert validator.validate(etree.fromstring(VALID)) is True
        assert validator.validate(etree.fromstring(INVALID)) is False

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Test that an unreadable locator raises SchemaLoadError."""
        missing = tmp_path / "missing.xsd"

        with pytest.raises(SchemaLoadError) as exc_info:
            SchemaValidator(missing)

        assert exc_info.value.locator == str(missing)

    def test_non_schema_document_raises(self, tmp_path: Path) -> None:
        """Test that a well-formed document that is not a schema is rejected."""
        path = tmp_path / "plain.xsd"
        path.write_text("<notASchema/>")

        with pytest.raises(SchemaLoadError, match="Unable to load schema"):
            SchemaValidator(path)

    def test_empty_locator_raises(self) -> None:
        """Test that an empty locator is rejected."""
        with pytest.raises(SchemaLoadError, match="cannot be empty"):
            SchemaValidator("")

    def test_pickle_recompiles(self, xsd_path: Path) -> None:
        """Test that a validator survives pickling by its locator."""
        validator = SchemaValidator(xsd_path)

        copy = pickle.loads(pickle.dumps(validator))

        assert copy.locator == str(xsd_path)
        assert copy.validate(etree.fromstring(VALID)) is True


class TestSchemaLoadResult:
    """Test fallible schema construction."""

    def test_load_success(self, xsd_path: Path) -> None:
        """Test that a good locator yields a validator."""
        result = SchemaValidator.load(xsd_path)

        assert isinstance(result, SchemaLoadResult)
        assert result.success
        assert result.error is None
        assert isinstance(result.validator, SchemaValidator)

    def test_load_failure(self, tmp_path: Path) -> None:
        """Test that a bad locator yields an error instead of raising."""
        result = SchemaValidator.load(tmp_path / "missing.xsd")

        assert not result.success
        assert result.validator is None
        assert isinstance(result.error, SchemaLoadError)
