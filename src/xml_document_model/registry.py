"""Node registry: opaque keys bound to elements of a document tree.

Bindings hold live element references while the tree is in memory. Before a
document goes to sleep the registry records an ElementPath expression for
every bound element (:meth:`NodeRegistry.capture`); only those paths survive
pickling. After the tree has been rebuilt, :meth:`NodeRegistry.restore` looks
each path up again and rebinds the key to the corresponding element.
"""

from typing import Dict, Iterator, List, Optional

from lxml import etree

from xml_document_model.errors import RegistryError, RestoreError
from xml_document_model.shared import get_logger

_ROOT_PATH = "."


def element_in_tree(node: etree._Element, tree: etree._ElementTree) -> bool:
    """True if ``node`` is the root of ``tree`` or one of its descendants.

    A removed element still reports its old document through
    ``getroottree()``, so ancestry is checked explicitly.
    """
    root = tree.getroot()
    if node is root:
        return True
    return any(ancestor is root for ancestor in node.iterancestors())


def _top_ancestor(node: etree._Element) -> etree._Element:
    top = node
    parent = top.getparent()
    while parent is not None:
        top, parent = parent, parent.getparent()
    return top


def _element_path(tree: etree._ElementTree, node: etree._Element) -> str:
    return tree.getelementpath(node) or _ROOT_PATH


class NodeRegistry:
    """Associates opaque string keys with tree elements."""

    def __init__(self) -> None:
        self._nodes: Dict[str, etree._Element] = {}
        self._paths: Dict[str, str] = {}
        self.logger = get_logger(__name__, component="node_registry")

    def bind(self, key: str, node: etree._Element) -> str:
        """Associate ``key`` with ``node`` and return the node's current path.

        Raises:
            RegistryError: If the key is empty or the node is not an element
        """
        if not key:
            raise RegistryError("Binding key cannot be empty")
        if not isinstance(node, etree._Element) or not isinstance(node.tag, str):
            raise RegistryError(f"Only elements can be bound, got {type(node).__name__}")
        path = _element_path(etree.ElementTree(_top_ancestor(node)), node)
        self._nodes[key] = node
        self._paths[key] = path
        return path

    def resolve(self, key: str) -> etree._Element:
        """Return the element bound to ``key``.

        Raises:
            RegistryError: If the key is unknown or not restored yet
        """
        try:
            return self._nodes[key]
        except KeyError:
            if key in self._paths:
                raise RegistryError(
                    f"Binding '{key}' has not been restored against a tree"
                ) from None
            raise RegistryError(f"Unknown binding key: {key}") from None

    def unbind(self, key: str) -> None:
        """Remove ``key``; unknown keys are ignored."""
        self._nodes.pop(key, None)
        self._paths.pop(key, None)

    def path_of(self, key: str) -> Optional[str]:
        """Last recorded path of ``key``'s element, or None for an unknown key."""
        return self._paths.get(key)

    def keys(self) -> List[str]:
        """Bound keys in insertion order."""
        return list(self._paths)

    def capture(self, tree: etree._ElementTree) -> None:
        """Record the current path of every bound element within ``tree``.

        Elements that have since been removed from ``tree`` cannot be found
        again after a rebuild; their bindings are dropped with a warning.
        """
        for key, node in list(self._nodes.items()):
            if not element_in_tree(node, tree):
                self.logger.warning(
                    "Dropping binding to an element detached from the document",
                    extra={"key": key, "tag": node.tag},
                )
                self.unbind(key)
                continue
            self._paths[key] = _element_path(tree, node)

    def captured(self, tree: etree._ElementTree) -> "NodeRegistry":
        """Copy of this registry with paths recorded against ``tree``.

        Like :meth:`capture`, but this registry keeps its bindings and paths.
        """
        copy = NodeRegistry()
        copy._nodes = dict(self._nodes)
        copy._paths = dict(self._paths)
        copy.capture(tree)
        return copy

    def restore(self, tree: etree._ElementTree) -> None:
        """Rebind every key to the element at its recorded path in ``tree``.

        Raises:
            RestoreError: If a recorded path no longer matches an element
        """
        root = tree.getroot()
        restored: Dict[str, etree._Element] = {}
        for key, path in self._paths.items():
            node = root if path == _ROOT_PATH else tree.find(path)
            if node is None:
                raise RestoreError(
                    f"Binding '{key}' could not be restored: no element at {path}"
                )
            restored[key] = node
        self._nodes = restored
        self.logger.debug("Node registry restored", extra={"bindings": len(restored)})

    def __contains__(self, key: object) -> bool:
        return key in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __getstate__(self) -> Dict[str, Dict[str, str]]:
        return {"paths": dict(self._paths)}

    def __setstate__(self, state: Dict[str, Dict[str, str]]) -> None:
        self.__init__()
        self._paths = dict(state["paths"])
