"""Shared utilities for the XML document model.

This module provides shared data structures, configuration objects, result
types and logging helpers used across the document model components.
"""

from .config import (
    ConfigError,
    ConfigValidationError,
    DocumentConfig,
    GlobalConfig,
    OutputConfig,
    ParsingConfig,
    QueryConfig,
)
from .logging import (
    CorrelationLogger,
    configure_logging,
    get_logger,
)
from .result import (
    DiagnosticEntry,
    DiagnosticSeverity,
    QueryResult,
)

__all__ = [
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "QueryResult",
    "ConfigError",
    "ConfigValidationError",
    "DocumentConfig",
    "GlobalConfig",
    "OutputConfig",
    "ParsingConfig",
    "QueryConfig",
    "CorrelationLogger",
    "configure_logging",
    "get_logger",
]
