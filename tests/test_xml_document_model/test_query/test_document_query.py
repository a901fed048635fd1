"""Tests for XPath queries and their failure detection."""

import pytest
from lxml import etree

from xml_document_model import (
    NO_RESULT,
    DiagnosticLog,
    DiagnosticSeverity,
    Document,
    DocumentConfig,
    NamespaceRegistry,
    QueryError,
)
from xml_document_model.document import MALFORMED_EXPRESSION_MESSAGE, NOT_A_NODE_SET_MESSAGE
from xml_document_model.shared import QueryConfig

META_NS = "urn:example:meta"
DC_NS = "http://purl.org/dc/elements/1.1/"

SOURCE = (
    f'<metadata xmlns="{META_NS}" xmlns:dc="{DC_NS}">'
    "<dc:title>Report</dc:title>"
    '<item id="a">one</item><item id="b">two</item><item id="c">three</item>'
    "</metadata>"
)


@pytest.fixture
def log() -> DiagnosticLog:
    return DiagnosticLog()


@pytest.fixture
def document(log: DiagnosticLog) -> Document:
    return Document(
        "metadata",
        NamespaceRegistry(META_NS, {"dc": DC_NS}),
        xml=SOURCE,
        config=DocumentConfig(query=QueryConfig(default_prefix="m")),
        diagnostic_log=log,
    )


class TestSuccessfulQueries:
    """Test queries that match or legitimately match nothing."""

    def test_empty_result_is_not_an_error(self, log: DiagnosticLog) -> None:
        """Test that an unmatched expression returns an empty list."""
        document = Document("metadata", NamespaceRegistry(META_NS), diagnostic_log=log)

        assert document.query("//nonexistent") == []

    def test_matches_in_document_order(self, document: Document) -> None:
        """Test that matched nodes keep document order."""
        items = document.query("//m:item")

        assert [item.text for item in items] == ["one", "two", "three"]

    def test_prefixed_namespace(self, document: Document) -> None:
        """Test that registry prefixes are available to expressions."""
        titles = document.query("//dc:title")

        assert len(titles) == 1
        assert titles[0].text == "Report"

    def test_context_node(self, document: Document) -> None:
        """Test evaluating relative to a context element."""
        second = document.query("//m:item[@id='b']")[0]

        following = document.query("following-sibling::m:item", second)

        assert [item.get("id") for item in following] == ["c"]

    def test_attribute_values(self, document: Document) -> None:
        """Test that attribute selections return their values."""
        assert document.query("//m:item/@id") == ["a", "b", "c"]

    def test_try_query_success(self, document: Document) -> None:
        """Test the explicit result type on success."""
        result = document.try_query("//m:item")

        assert result.success
        assert len(result) == 3
        assert result.path == "//m:item"

    def test_evaluate_scalar(self, document: Document) -> None:
        """Test that evaluate allows non node-set results."""
        assert document.evaluate("count(//m:item)") == 3.0
        assert document.evaluate("string(//dc:title)") == "Report"
        assert document.evaluate("boolean(//m:missing)") is False


class TestFailedQueries:
    """Test detection and reporting of failed queries."""

    def test_malformed_expression(self, log: DiagnosticLog) -> None:
        """Test that a malformed expression raises with the expression text."""
        document = Document("metadata", NamespaceRegistry(META_NS), diagnostic_log=log)

        with pytest.raises(QueryError) as exc_info:
            document.query("//[")

        assert "//[" in str(exc_info.value)
        assert exc_info.value.expression == "//["
        assert exc_info.value.context_tag is None
        assert "<metadata" in exc_info.value.document_text

    def test_undefined_prefix(self, document: Document) -> None:
        """Test that an unregistered prefix is a failure."""
        with pytest.raises(QueryError) as exc_info:
            document.query("//nope:item")

        assert "//nope:item" in str(exc_info.value)

    def test_failure_includes_context_tag(self, document: Document) -> None:
        """Test that the context element's tag is reported."""
        item = document.query("//m:item")[0]

        with pytest.raises(QueryError) as exc_info:
            document.query("][", item)

        assert exc_info.value.context_tag == f"{{{META_NS}}}item"
        assert f"Context node: {{{META_NS}}}item" in str(exc_info.value)

    def test_foreign_context_node(self, document: Document, log: DiagnosticLog) -> None:
        """Test that a context node from another tree is rejected."""
        foreign = etree.Element("item")

        with pytest.raises(QueryError) as exc_info:
            document.query("self::item", foreign)

        assert exc_info.value.reason == "Context node does not belong to this document"

    def test_detached_context_node(self, document: Document) -> None:
        """Test that an element removed from the tree is not a valid context."""
        item = document.query("//m:item")[0]
        document.root.remove(item)

        with pytest.raises(QueryError, match="does not belong"):
            document.query(".", item)

    def test_scalar_result_is_not_a_node_set(self, document: Document) -> None:
        """Test that query refuses expressions that yield scalars."""
        with pytest.raises(QueryError) as exc_info:
            document.query("count(//m:item)")

        assert exc_info.value.reason == NOT_A_NODE_SET_MESSAGE

    def test_try_query_failure(self, document: Document) -> None:
        """Test that try_query returns the error instead of raising."""
        result = document.try_query("//[")

        assert not result.success
        assert isinstance(result.error, QueryError)
        with pytest.raises(QueryError):
            result.unwrap()

    def test_expression_length_limit(self, log: DiagnosticLog) -> None:
        """Test that overly long expressions are refused."""
        config = DocumentConfig().override(query__max_path_length=10)
        document = Document("metadata", NamespaceRegistry(META_NS),
                            config=config, diagnostic_log=log)

        with pytest.raises(QueryError, match="exceeds 10 characters"):
            document.query("//" + "a/" * 10)


class TestDualSignalDetection:
    """Test both failure channels independently."""

    def test_new_log_entry_without_sentinel(self, document: Document, log: DiagnosticLog,
                                            monkeypatch) -> None:
        """Test that a log entry alone marks the query as failed."""
        engine = document.query_engine

        def evaluate_with_warning(path, context=None):
            log.record(DiagnosticSeverity.WARNING, "XPath warning", "query_engine")
            return []

        monkeypatch.setattr(engine, "evaluate", evaluate_with_warning)

        with pytest.raises(QueryError) as exc_info:
            document.query("//m:item")

        assert exc_info.value.reason == "XPath warning"

    def test_sentinel_without_log_entry(self, document: Document, monkeypatch) -> None:
        """Test that a sentinel alone yields the generic message."""
        monkeypatch.setattr(document.query_engine, "evaluate",
                            lambda path, context=None: NO_RESULT)

        with pytest.raises(QueryError) as exc_info:
            document.query("//m:item")

        assert exc_info.value.reason == MALFORMED_EXPRESSION_MESSAGE
        assert "//m:item" in str(exc_info.value)

    def test_older_entries_do_not_fail_queries(self, document: Document,
                                               log: DiagnosticLog) -> None:
        """Test that only entries added during the call count."""
        with log.capture():
            log.record(DiagnosticSeverity.ERROR, "earlier failure", "elsewhere")

        assert len(document.query("//m:item")) == 3


class TestCaptureScope:
    """Test that queries leave the capture mode as they found it."""

    def test_mode_restored_after_success(self, document: Document, log: DiagnosticLog) -> None:
        """Test restoration after a successful query."""
        document.query("//m:item")

        assert log.capture_enabled is False

    def test_mode_restored_after_failure(self, document: Document, log: DiagnosticLog) -> None:
        """Test restoration after a failed query."""
        with pytest.raises(QueryError):
            document.query("//[")

        assert log.capture_enabled is False

    def test_enclosing_capture_preserved(self, document: Document, log: DiagnosticLog) -> None:
        """Test that an enclosing capture stays active and keeps its entries."""
        with log.capture():
            log.record(DiagnosticSeverity.ERROR, "host error", "host")
            document.query("//nonexistent")

            assert log.capture_enabled is True
            assert any(entry.message == "host error" for entry in log.entries)


class TestSuppliedLog:
    """Test that a caller's diagnostic log receives query errors."""

    def test_empty_log_is_used(self) -> None:
        """Test that a fresh, empty log is not replaced by the process-wide one."""
        log = DiagnosticLog()

        document = Document("metadata", NamespaceRegistry(META_NS), diagnostic_log=log)

        assert document.query_engine._log is log

    def test_failed_query_recorded_in_supplied_log(self) -> None:
        """Test that errors of a failed query land in the caller's log."""
        log = DiagnosticLog()
        document = Document("metadata", NamespaceRegistry(META_NS), diagnostic_log=log)

        with log.capture():
            with pytest.raises(QueryError):
                document.query("//[")

            assert log.count > 0
            assert all(entry.component == "query_engine" for entry in log.entries)
