"""Test module for xml_document_model package initialization."""


def test_package_import() -> None:
    """Test that the package can be imported successfully."""
    # Arrange & Act
    import xml_document_model

    # Assert
    assert xml_document_model is not None


def test_package_has_version() -> None:
    """Test that the package has a version attribute."""
    import xml_document_model

    assert isinstance(xml_document_model.__version__, str)
    assert xml_document_model.__version__ == "0.1.0"


def test_package_has_author() -> None:
    """Test that the package has an author attribute."""
    import xml_document_model

    assert xml_document_model.__author__ == "XML Document Model Team"


def test_package_exports_document_api() -> None:
    """Test that __all__ exposes the document model entry points."""
    import xml_document_model

    for name in ["Document", "NamespaceRegistry", "NodeRegistry",
                 "SchemaValidator", "QueryError", "DormantDocument"]:
        assert name in xml_document_model.__all__
        assert hasattr(xml_document_model, name)
