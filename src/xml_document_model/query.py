"""XPath query engine bound to a single document tree.

The engine reports failure on two channels: it returns the :data:`NO_RESULT`
sentinel, and it appends libxml2 messages to a :class:`DiagnosticLog`.
Neither channel is reliable on its own. An lxml ``XPathError`` yields both a
sentinel and log entries. A successful evaluation may still leave entries
behind. Callers must check both, as :class:`~xml_document_model.document.Document`
does.
"""

from typing import Any, Dict, Optional

from lxml import etree

from xml_document_model.diagnostics import DiagnosticLog
from xml_document_model.errors import DocumentStateError
from xml_document_model.registry import element_in_tree
from xml_document_model.shared import DiagnosticSeverity, QueryConfig, get_logger


class _NoResult:
    """Sentinel type for a failed evaluation."""

    _instance = None

    def __new__(cls) -> "_NoResult":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_RESULT"


NO_RESULT = _NoResult()


class QueryEngine:
    """Evaluates XPath expressions against one tree."""

    component = "query_engine"

    def __init__(
        self,
        tree: etree._ElementTree,
        namespaces: Dict[str, str],
        log: DiagnosticLog,
        config: Optional[QueryConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Bind a new engine to ``tree``.

        Args:
            tree: Tree the engine evaluates against
            namespaces: Prefix mapping available to expressions
            log: Diagnostic log that receives evaluation errors
            config: Query configuration
            correlation_id: Optional correlation ID for request tracking
        """
        self.config = config or QueryConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, self.component)
        self._tree: Optional[etree._ElementTree] = tree
        self._namespaces = dict(namespaces)
        self._log = log
        self._evaluator: Optional[etree.XPathDocumentEvaluator] = etree.XPathDocumentEvaluator(
            tree,
            namespaces=self._namespaces,
            smart_strings=self.config.smart_strings,
        )

    @property
    def tree(self) -> etree._ElementTree:
        """The bound tree.

        Raises:
            DocumentStateError: If the engine has been invalidated
        """
        if self._tree is None:
            raise DocumentStateError("Query engine is no longer bound to a tree")
        return self._tree

    @property
    def is_bound(self) -> bool:
        return self._tree is not None

    def invalidate(self) -> None:
        """Release the tree; further evaluations raise ``DocumentStateError``."""
        self._tree = None
        self._evaluator = None

    def evaluate(self, path: str, context: Optional[Any] = None) -> Any:
        """Evaluate ``path`` against the whole tree or against ``context``.

        Returns the raw XPath value (node list, string, number or boolean),
        or :data:`NO_RESULT` when evaluation failed.
        """
        tree = self.tree
        if len(path) > self.config.max_path_length:
            self._report(
                f"Expression exceeds {self.config.max_path_length} characters",
                path,
            )
            return NO_RESULT

        if context is None:
            evaluator = self._evaluator
        else:
            if not self._belongs_to(context, tree):
                self._report("Context node does not belong to this document", path)
                return NO_RESULT
            evaluator = etree.XPathElementEvaluator(
                context,
                namespaces=self._namespaces,
                smart_strings=self.config.smart_strings,
            )

        try:
            result = evaluator(path)
        except etree.XPathError as e:
            copied = self._log.extend_from_libxml(
                e.error_log, self.component, self.correlation_id
            )
            self.logger.debug(
                "XPath evaluation failed",
                extra={"path": path, "error": str(e), "log_entries": copied},
            )
            return NO_RESULT

        self._log.extend_from_libxml(
            evaluator.error_log, self.component, self.correlation_id
        )
        return result

    @staticmethod
    def _belongs_to(context: Any, tree: etree._ElementTree) -> bool:
        if not isinstance(context, etree._Element) or not isinstance(context.tag, str):
            return False
        return element_in_tree(context, tree)

    def _report(self, message: str, path: str) -> None:
        self._log.record(
            DiagnosticSeverity.ERROR,
            message,
            self.component,
            details={"path": path},
            correlation_id=self.correlation_id,
        )
