"""Result objects and diagnostic types for the XML document model.

This module defines the diagnostic entries recorded by the diagnostic log and
by documents, and the explicit result type returned by fallible queries.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from xml_document_model.errors import QueryError

# libxml2 error levels as exposed by lxml.etree.ErrorLevels
_LIBXML_WARNING = 1
_LIBXML_ERROR = 2
_LIBXML_FATAL = 3


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    DEBUG = auto()      # Debug-level information
    INFO = auto()       # Informational messages
    WARNING = auto()    # Warnings about potential issues
    ERROR = auto()      # Error conditions
    CRITICAL = auto()   # Fatal toolkit errors

    @classmethod
    def from_libxml_level(cls, level: int) -> "DiagnosticSeverity":
        """Map a libxml2 error level onto a diagnostic severity."""
        if level >= _LIBXML_FATAL:
            return cls.CRITICAL
        if level == _LIBXML_ERROR:
            return cls.ERROR
        if level == _LIBXML_WARNING:
            return cls.WARNING
        return cls.INFO


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    position: Optional[Dict[str, int]] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")

    @classmethod
    def from_libxml(
        cls,
        log_entry: Any,
        component: str,
        correlation_id: Optional[str] = None
    ) -> "DiagnosticEntry":
        """Build a diagnostic entry from an ``lxml.etree._LogEntry``."""
        position = None
        if log_entry.line:
            position = {"line": log_entry.line, "column": log_entry.column}
        return cls(
            severity=DiagnosticSeverity.from_libxml_level(log_entry.level),
            message=(log_entry.message or "").strip() or "Unknown libxml2 error",
            component=component,
            position=position,
            details={
                "domain": log_entry.domain_name,
                "type": log_entry.type_name,
                "filename": log_entry.filename,
            },
            correlation_id=correlation_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the entry to a JSON-friendly dictionary."""
        return {
            "severity": self.severity.name,
            "message": self.message,
            "component": self.component,
            "position": self.position,
            "details": self.details,
        }


@dataclass
class QueryResult:
    """Outcome of a single XPath query.

    Exactly one of ``nodes`` (on success) or ``error`` (on failure) is
    meaningful. An empty ``nodes`` list is a successful result.
    """

    path: str
    nodes: List[Any] = field(default_factory=list)
    error: Optional[QueryError] = None
    value: Any = None

    @property
    def success(self) -> bool:
        """True when the query completed without a detected failure."""
        return self.error is None

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def unwrap(self) -> List[Any]:
        """Return the matched nodes or raise the recorded ``QueryError``."""
        if self.error is not None:
            raise self.error
        return self.nodes
