"""Namespace registry: prefix to URI mapping for documents.

A registry knows the default namespace URI of a document family and any
number of prefixed namespaces. It can stamp its declarations onto an lxml
element and provides the prefix mapping used by XPath evaluation.
"""

from typing import Dict, Mapping, Optional

from lxml import etree


class NamespaceRegistry:
    """Maps namespace prefixes to URIs."""

    def __init__(
        self,
        default_uri: Optional[str] = None,
        prefixes: Optional[Mapping[str, str]] = None
    ) -> None:
        """Initialize the registry.

        Args:
            default_uri: URI of the default (unprefixed) namespace, if any
            prefixes: Mapping of prefix to namespace URI

        Raises:
            ValueError: If a prefix or URI is empty
        """
        if default_uri is not None and not default_uri:
            raise ValueError("default_uri must be a non-empty string or None")
        self._default_uri = default_uri
        self._prefixes: Dict[str, str] = {}
        for prefix, uri in (prefixes or {}).items():
            self.register(prefix, uri)

    @property
    def default_uri(self) -> Optional[str]:
        """URI of the default namespace."""
        return self._default_uri

    @property
    def prefixes(self) -> Dict[str, str]:
        """Copy of the prefixed namespaces."""
        return dict(self._prefixes)

    @property
    def nsmap(self) -> Dict[Optional[str], str]:
        """lxml-style namespace map including the default namespace under None."""
        mapping: Dict[Optional[str], str] = {}
        if self._default_uri is not None:
            mapping[None] = self._default_uri
        mapping.update(self._prefixes)
        return mapping

    def register(self, prefix: str, uri: str) -> None:
        """Bind ``prefix`` to ``uri``, replacing any earlier binding."""
        if not prefix:
            raise ValueError("Namespace prefix cannot be empty")
        if not uri:
            raise ValueError(f"Namespace URI for prefix '{prefix}' cannot be empty")
        self._prefixes[prefix] = uri

    def uri_for(self, prefix: Optional[str]) -> Optional[str]:
        """Return the URI bound to ``prefix``; None means the default namespace.

        An unknown prefix yields None.
        """
        if prefix is None:
            return self._default_uri
        return self._prefixes.get(prefix)

    def xpath_namespaces(self, default_prefix: Optional[str] = None) -> Dict[str, str]:
        """Prefix mapping for XPath evaluation.

        XPath 1.0 has no default namespace, so the default URI is only
        reachable when it is exposed under ``default_prefix``.
        """
        mapping = dict(self._prefixes)
        if default_prefix is not None and self._default_uri is not None:
            mapping.setdefault(default_prefix, self._default_uri)
        return mapping

    def stamp_declarations_on(self, element: etree._Element) -> None:
        """Declare every registered namespace on ``element``.

        Declarations already present with the same prefix and URI are left
        untouched. Unused declarations elsewhere in the subtree are kept. The
        default namespace is only declared when every element of the subtree
        has a namespace.

        Raises:
            ValueError: If ``element`` already binds a registered prefix to a
                different URI
        """
        current = element.nsmap
        conflicts = sorted(
            "the default namespace" if prefix is None else f"prefix '{prefix}'"
            for prefix, uri in self.nsmap.items()
            if prefix in current and current[prefix] != uri
        )
        if conflicts:
            raise ValueError(
                f"Element <{element.tag}> already binds {', '.join(conflicts)} "
                "to a different namespace URI"
            )

        declared = {
            prefix
            for node in element.iter(etree.Element)
            for prefix in node.nsmap
            if prefix is not None
        }
        declared.update(self._prefixes)
        top_nsmap = self.nsmap
        if any(etree.QName(node).namespace is None for node in element.iter(etree.Element)):
            top_nsmap.pop(None, None)
        etree.cleanup_namespaces(
            element,
            top_nsmap=top_nsmap,
            keep_ns_prefixes=sorted(declared),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NamespaceRegistry):
            return NotImplemented
        return self.nsmap == other.nsmap

    def __repr__(self) -> str:
        return (
            f"NamespaceRegistry(default_uri={self._default_uri!r}, "
            f"prefixes={self._prefixes!r})"
        )
