"""XML Document Model.

An lxml-backed document model that builds namespace-correct documents,
validates them against an optional schema, runs XPath queries with reliable
error detection, and survives being flattened to text and rebuilt.

Progressive API Disclosure:
- Level 1: Document - construct, query(), valid(), save_xml()
- Level 2: Explicit results - try_query(), evaluate(), SchemaValidator.load()
- Level 3: Lifecycle - sleep(), wake(), Document.from_dormant(), pickle
"""

__version__ = "0.1.0"
__author__ = "XML Document Model Team"

from .diagnostics import DiagnosticLog, get_diagnostic_log
from .document import Document, DocumentState, DormantDocument
from .errors import (
    DocumentError,
    DocumentParseError,
    DocumentStateError,
    QueryError,
    RegistryError,
    RestoreError,
    SchemaLoadError,
)
from .namespaces import NamespaceRegistry
from .query import NO_RESULT, QueryEngine
from .registry import NodeRegistry
from .schema import SchemaLoadResult, SchemaValidator
from .shared.config import DocumentConfig
from .shared.result import DiagnosticEntry, DiagnosticSeverity, QueryResult

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Document model
    "Document",
    "DocumentState",
    "DormantDocument",

    # Collaborators
    "NamespaceRegistry",
    "NodeRegistry",
    "SchemaValidator",
    "SchemaLoadResult",
    "QueryEngine",
    "NO_RESULT",
    "DiagnosticLog",
    "get_diagnostic_log",

    # Results and configuration
    "QueryResult",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "DocumentConfig",

    # Errors
    "DocumentError",
    "DocumentParseError",
    "DocumentStateError",
    "QueryError",
    "RegistryError",
    "RestoreError",
    "SchemaLoadError",
]
