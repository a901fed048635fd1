"""Command-line interface for the XML document model.

Provides the ``xml-document`` tool for querying, validating and exporting
XML files.
"""

from .main import main

__all__ = ["main"]
