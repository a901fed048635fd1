"""Exception hierarchy for the XML document model."""

from typing import Any, List, Optional


class DocumentError(Exception):
    """Base exception for document model errors."""


class DocumentParseError(DocumentError):
    """Raised when XML text handed to a document cannot be parsed."""

    def __init__(self, message: str, messages: Optional[List[str]] = None):
        super().__init__(message)
        self.messages = messages or []


class SchemaLoadError(DocumentError):
    """Raised when a schema locator cannot be turned into a validator."""

    def __init__(self, message: str, locator: str):
        super().__init__(message)
        self.locator = locator


class QueryError(DocumentError):
    """Raised when an XPath query fails.

    The message carries the failure reason, the literal expression, the
    context node's tag (when a context node was given) and a copy of the
    document text for debugging.
    """

    def __init__(
        self,
        reason: str,
        expression: str,
        context_tag: Optional[str] = None,
        document_text: Optional[str] = None
    ):
        self.reason = reason
        self.expression = expression
        self.context_tag = context_tag
        self.document_text = document_text
        super().__init__(self._compose())

    def _compose(self) -> str:
        parts = [self.reason, f"Query: {self.expression}"]
        if self.context_tag is not None:
            parts.append(f"Context node: {self.context_tag}")
        if self.document_text is not None:
            parts.append(f"Document:\n{self.document_text}")
        return "\n".join(parts)

    def __reduce__(self) -> Any:
        return (
            self.__class__,
            (self.reason, self.expression, self.context_tag, self.document_text),
        )


class RestoreError(DocumentError):
    """Raised when a dormant document cannot be woken."""


class RegistryError(DocumentError):
    """Raised for invalid node bindings or unknown binding keys."""


class DocumentStateError(DocumentError):
    """Raised when an operation is not allowed in the document's current state."""
