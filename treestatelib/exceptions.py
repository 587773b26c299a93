"""Exceptions raised by treestatelib.

Load-time failures are normally delivered through the ``data.loaderror`` /
``children.loaderror`` events and a failed future rather than raised, so
most of these only escape synchronously from construction or from direct
structural calls.
"""


class TreeStateError(Exception):
    """Base exception for treestatelib errors."""
    pass


class ConfigurationError(TreeStateError):
    """Raised when a tree configuration can't be satisfied."""
    pass


class LoaderError(TreeStateError):
    """Raised (or used as a rejection) when a data loader can't be resolved."""
    pass


class InvalidStateError(TreeStateError, KeyError):
    """Raised for an unknown node state flag."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown node state: {self.name!r}"


class DuplicateNodeError(TreeStateError):
    """Raised when a node id is already used elsewhere in the tree."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Duplicate node id: {node_id!r}")


class CyclicHierarchyError(TreeStateError):
    """Raised when a node would become its own ancestor."""
    pass


class DetachedNodeError(TreeStateError):
    """Raised for structural queries on a node outside any collection."""
    pass
