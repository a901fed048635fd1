"""Document model: an lxml tree with namespaces, optional schema and bindings.

A :class:`Document` is either ``LIVE`` (tree and query engine in memory) or
``ASLEEP`` (only its text snapshot and persistable collaborators remain).
:meth:`Document.sleep` and :meth:`Document.wake` move between the two states;
pickling a document goes through the same transitions.
"""

import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Union

from lxml import etree

from xml_document_model.diagnostics import DiagnosticLog, get_diagnostic_log
from xml_document_model.errors import (
    DocumentParseError,
    DocumentStateError,
    QueryError,
    RegistryError,
    RestoreError,
)
from xml_document_model.namespaces import NamespaceRegistry
from xml_document_model.query import NO_RESULT, QueryEngine
from xml_document_model.registry import NodeRegistry, element_in_tree
from xml_document_model.schema import SchemaLocator, SchemaValidator
from xml_document_model.shared import (
    DiagnosticEntry,
    DiagnosticSeverity,
    DocumentConfig,
    QueryResult,
    get_logger,
)

MALFORMED_EXPRESSION_MESSAGE = "Malformed XPath expression or invalid context node"
NOT_A_NODE_SET_MESSAGE = "Expression does not evaluate to a node-set"

XMLInput = Union[str, bytes]


class DocumentState(Enum):
    """Lifecycle states of a document."""

    LIVE = auto()     # Tree and query engine in memory
    ASLEEP = auto()   # Only the serialized form and persisted fields remain


@dataclass
class DormantDocument:
    """Persistable state of a sleeping document."""

    namespaces: NamespaceRegistry
    schema: Optional[SchemaValidator]
    registry: NodeRegistry
    serialized_form: str

    PERSISTED_FIELDS = ("namespaces", "schema", "registry", "serialized_form")

    def to_state(self) -> Dict[str, Any]:
        """Mapping of the persisted fields, as stored by pickle."""
        return {name: getattr(self, name) for name in self.PERSISTED_FIELDS}

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "DormantDocument":
        """Rebuild from a :meth:`to_state` mapping.

        Raises:
            RestoreError: If a persisted field is missing
        """
        missing = [name for name in cls.PERSISTED_FIELDS if name not in state]
        if missing:
            raise RestoreError(f"Dormant document is missing fields: {missing}")
        return cls(**{name: state[name] for name in cls.PERSISTED_FIELDS})


class Document:
    """XML document with namespace-aware construction, validation and queries."""

    def __init__(
        self,
        root_name: str,
        namespaces: NamespaceRegistry,
        schema_locator: Optional[SchemaLocator] = None,
        xml: Optional[XMLInput] = None,
        *,
        config: Optional[DocumentConfig] = None,
        diagnostic_log: Optional[DiagnosticLog] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Load ``xml`` or synthesize a root element named ``root_name``.

        Args:
            root_name: Local name of the document element to synthesize
            namespaces: Namespace registry shared with the caller
            schema_locator: Path or URL of a schema; empty or None disables
                validation
            xml: Serialized XML to load instead of synthesizing a root
            config: Document configuration
            diagnostic_log: Diagnostic log to use instead of the process-wide one
            correlation_id: Optional correlation ID for request tracking

        Raises:
            ValueError: If ``root_name`` is empty
            DocumentParseError: If ``xml`` is not well-formed
        """
        if not root_name:
            raise ValueError("Root element name cannot be empty")

        self.root_name = root_name
        self.namespaces = namespaces
        self.config = config or DocumentConfig()
        self.correlation_id = _tracked(correlation_id, self.config)
        self.logger = get_logger(__name__, self.correlation_id, "document")
        self.diagnostics: List[DiagnosticEntry] = []
        self.serialized_form: Optional[str] = None
        self._log = diagnostic_log if diagnostic_log is not None else get_diagnostic_log()
        self._pretty_print = self.config.output.pretty_print
        self._state = DocumentState.LIVE

        start_time = time.time()
        if xml is not None:
            self._tree = self._parse(xml, self.config.parsing.parser_options())
            self.namespaces.stamp_declarations_on(self._tree.getroot())
            origin = "loaded"
        else:
            self._tree = self._synthesize_root(root_name)
            origin = "synthesized"

        self._engine = self._build_engine(self._tree)
        self.registry = NodeRegistry()
        self.schema = self._load_schema(schema_locator)

        self.logger.info(
            "Document created",
            extra={
                "origin": origin,
                "root": self._tree.getroot().tag,
                "has_schema": self.schema is not None,
                "processing_time_ms": (time.time() - start_time) * 1000,
            },
        )

    # Construction helpers

    def _synthesize_root(self, root_name: str) -> etree._ElementTree:
        default_uri = self.namespaces.default_uri
        if default_uri is not None:
            root = etree.Element(
                etree.QName(default_uri, root_name), nsmap={None: default_uri}
            )
        else:
            root = etree.Element(root_name)
        self.namespaces.stamp_declarations_on(root)
        return etree.ElementTree(root)

    def _parse(self, xml: XMLInput, options: Dict[str, Any]) -> etree._ElementTree:
        if isinstance(xml, str):
            # lxml rejects str input that carries an encoding declaration
            data = xml.encode("utf-8")
            parser = etree.XMLParser(encoding="utf-8", **options)
        else:
            data = xml
            parser = etree.XMLParser(**options)
        try:
            root = etree.fromstring(data, parser)
        except etree.XMLSyntaxError as e:
            self._log.extend_from_libxml(e.error_log, "parser", self.correlation_id)
            raise DocumentParseError(
                f"Unable to parse document XML: {e}",
                messages=[entry.message for entry in e.error_log],
            ) from e
        return root.getroottree()

    def _build_engine(self, tree: etree._ElementTree) -> QueryEngine:
        return QueryEngine(
            tree,
            self.namespaces.xpath_namespaces(self.config.query.default_prefix),
            self._log,
            config=self.config.query,
            correlation_id=self.correlation_id,
        )

    def _load_schema(
        self, schema_locator: Optional[SchemaLocator]
    ) -> Optional[SchemaValidator]:
        if not schema_locator:
            return None
        outcome = SchemaValidator.load(schema_locator)
        if outcome.success:
            return outcome.validator
        self.add_diagnostic(
            DiagnosticSeverity.WARNING,
            f"Schema disabled: {outcome.error}",
            "schema_validator",
            details={"locator": outcome.locator},
        )
        self.logger.warning(
            "Schema could not be loaded; document will not be validated",
            extra={"locator": outcome.locator, "error": str(outcome.error)},
        )
        return None

    # State

    @property
    def state(self) -> DocumentState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is DocumentState.LIVE

    @property
    def tree(self) -> etree._ElementTree:
        """The live tree.

        Raises:
            DocumentStateError: If the document is asleep
        """
        self._require_live("access the tree")
        return self._tree

    @property
    def root(self) -> etree._Element:
        """The document element."""
        return self.tree.getroot()

    @property
    def query_engine(self) -> QueryEngine:
        self._require_live("access the query engine")
        return self._engine

    def _require_live(self, action: str) -> None:
        if self._state is not DocumentState.LIVE:
            raise DocumentStateError(f"Cannot {action} while the document is asleep")

    def add_diagnostic(
        self,
        severity: DiagnosticSeverity,
        message: str,
        component: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record a diagnostic entry on this document."""
        self.diagnostics.append(
            DiagnosticEntry(
                severity=severity,
                message=message,
                component=component,
                details=details,
                correlation_id=self.correlation_id,
            )
        )

    # Namespaces

    def get_namespace_uri(self, prefix: Optional[str] = None) -> Optional[str]:
        """URI bound to ``prefix``, falling back to the default namespace URI."""
        uri = self.namespaces.uri_for(prefix)
        if uri is not None:
            return uri
        return self.namespaces.default_uri

    # Validation

    def valid(self) -> bool:
        """Validate against the schema; always True without one."""
        self._require_live("validate")
        if self.schema is None:
            return True
        return self.schema.validate(self._tree)

    def validation_errors(self) -> List[DiagnosticEntry]:
        """Errors reported by the most recent validation."""
        if self.schema is None:
            return []
        return self.schema.errors

    # Queries

    def query(self, path: str, context: Optional[etree._Element] = None) -> List[Any]:
        """Return the nodes matched by ``path``.

        Args:
            path: XPath expression
            context: Element to evaluate relative to; the whole document if None

        Returns:
            Matched nodes in document order; possibly empty

        Raises:
            QueryError: If the expression is malformed, the context node is
                invalid, or the expression does not select nodes
        """
        return self.try_query(path, context).unwrap()

    def try_query(
        self, path: str, context: Optional[etree._Element] = None
    ) -> QueryResult:
        """Like :meth:`query` but return the failure instead of raising it."""
        return self._run(path, context, node_set_only=True)

    def evaluate(self, path: str, context: Optional[etree._Element] = None) -> Any:
        """Evaluate ``path`` and return its value, which may be a scalar.

        Raises:
            QueryError: If the expression is malformed or the context node is
                invalid
        """
        result = self._run(path, context, node_set_only=False)
        if result.error is not None:
            raise result.error
        return result.value

    def _run(
        self, path: str, context: Optional[etree._Element], node_set_only: bool
    ) -> QueryResult:
        self._require_live("query")
        with self._log.capture() as log:
            before = log.count
            raw = self._engine.evaluate(path, context)
            if node_set_only and raw is not NO_RESULT and not isinstance(raw, list):
                log.record(
                    DiagnosticSeverity.ERROR,
                    NOT_A_NODE_SET_MESSAGE,
                    QueryEngine.component,
                    details={"path": path, "value": repr(raw)},
                    correlation_id=self.correlation_id,
                )
            after = log.count
            latest = log.last

        if raw is NO_RESULT or after > before:
            if after > before and latest is not None:
                reason = latest.message
            else:
                reason = MALFORMED_EXPRESSION_MESSAGE
            error = QueryError(
                reason,
                path,
                context_tag=_tag_of(context),
                document_text=self.save_xml(),
            )
            self.logger.info(
                "Query failed",
                extra={"path": path, "reason": reason, "log_entries": after - before},
            )
            return QueryResult(path=path, error=error)

        nodes = raw if isinstance(raw, list) else []
        return QueryResult(path=path, nodes=nodes, value=raw)

    # Export

    def save_xml(self, node: Optional[etree._Element] = None) -> str:
        """Flatten the tree, or ``node`` alone, to text."""
        self._require_live("export")
        target = self._tree if node is None else node
        return etree.tostring(
            target,
            encoding="unicode",
            pretty_print=self._pretty_print,
            with_tail=self.config.output.with_tail,
        )

    # Node bindings

    def bind(self, key: str, node: etree._Element) -> str:
        """Bind ``key`` to an element of this document."""
        self._require_live("bind nodes")
        if (
            isinstance(node, etree._Element)
            and not element_in_tree(node, self._tree)
        ):
            raise RegistryError(f"Cannot bind '{key}': node is not part of this document")
        return self.registry.bind(key, node)

    def resolve(self, key: str) -> etree._Element:
        """Element bound to ``key``."""
        self._require_live("resolve bindings")
        return self.registry.resolve(key)

    def unbind(self, key: str) -> None:
        self.registry.unbind(key)

    # Lifecycle

    def sleep(self) -> DormantDocument:
        """Flatten the tree to text and release it.

        Returns:
            The persistable state of the document

        Raises:
            DocumentStateError: If the document is already asleep
        """
        self._require_live("sleep")
        self.registry.capture(self._tree)
        dormant = self._dormant(self.save_xml(), self.registry)
        self.serialized_form = dormant.serialized_form
        self._engine.invalidate()
        self._engine = None
        self._tree = None
        self._state = DocumentState.ASLEEP
        self.logger.debug(
            "Document asleep", extra={"serialized_length": len(dormant.serialized_form)}
        )
        return dormant

    def wake(self) -> None:
        """Rebuild the tree from the serialized form and restore bindings.

        Raises:
            DocumentStateError: If the document is already live
            RestoreError: If the text cannot be parsed or a binding cannot be
                restored; the document stays asleep
        """
        if self._state is DocumentState.LIVE:
            raise DocumentStateError("Cannot wake a document that is already live")
        if self.serialized_form is None:
            raise RestoreError("Document has no serialized form to restore from")

        parse_options = dict(self.config.parsing.parser_options(), remove_blank_text=True)
        try:
            tree = self._parse(self.serialized_form, parse_options)
        except DocumentParseError as e:
            raise RestoreError(f"Unable to restore document: {e}") from e
        engine = self._build_engine(tree)
        self.registry.restore(tree)

        self._tree = tree
        self._engine = engine
        self._pretty_print = True
        self._state = DocumentState.LIVE
        self.serialized_form = None
        if not self.root_name:
            self.root_name = etree.QName(tree.getroot()).localname
        self.logger.debug("Document woken", extra={"bindings": len(self.registry)})

    @classmethod
    def from_dormant(
        cls,
        dormant: DormantDocument,
        *,
        config: Optional[DocumentConfig] = None,
        diagnostic_log: Optional[DiagnosticLog] = None,
        correlation_id: Optional[str] = None
    ) -> "Document":
        """Create a live document from persisted state."""
        document = cls.__new__(cls)
        document._init_dormant(dormant, config, diagnostic_log, correlation_id)
        document.wake()
        return document

    def _init_dormant(
        self,
        dormant: DormantDocument,
        config: Optional[DocumentConfig],
        diagnostic_log: Optional[DiagnosticLog],
        correlation_id: Optional[str]
    ) -> None:
        self.namespaces = dormant.namespaces
        self.schema = dormant.schema
        self.registry = dormant.registry
        self.serialized_form = dormant.serialized_form
        self.config = config or DocumentConfig()
        self.correlation_id = _tracked(correlation_id, self.config)
        self.logger = get_logger(__name__, self.correlation_id, "document")
        self.diagnostics = []
        self._log = diagnostic_log if diagnostic_log is not None else get_diagnostic_log()
        self._pretty_print = self.config.output.pretty_print
        self._tree = None
        self._engine = None
        self._state = DocumentState.ASLEEP
        self.root_name = ""

    def _dormant(self, serialized_form: str, registry: NodeRegistry) -> DormantDocument:
        return DormantDocument(
            namespaces=self.namespaces,
            schema=self.schema,
            registry=registry,
            serialized_form=serialized_form,
        )

    def __getstate__(self) -> Dict[str, Any]:
        """Persisted fields of the document, in either state.

        A live document is left unchanged: its registry paths are recorded
        on a copy of the registry.
        """
        if self._state is DocumentState.ASLEEP:
            return self._dormant(self.serialized_form, self.registry).to_state()
        snapshot = self._dormant(self.save_xml(), self.registry.captured(self._tree))
        return snapshot.to_state()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self._init_dormant(DormantDocument.from_state(state), None, None, None)
        self.wake()

    def __repr__(self) -> str:
        if self._state is DocumentState.LIVE:
            return f"Document(root={self._tree.getroot().tag!r}, state=LIVE)"
        return "Document(state=ASLEEP)"


def _tracked(correlation_id: Optional[str], config: DocumentConfig) -> Optional[str]:
    return correlation_id if config.global_.enable_correlation_tracking else None


def _tag_of(context: Any) -> Optional[str]:
    if context is None:
        return None
    return str(getattr(context, "tag", type(context).__name__))
