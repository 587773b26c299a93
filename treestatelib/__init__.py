"""treestatelib - State management for interactive tree widgets.

treestatelib turns nested records into an addressable node graph and keeps
per-node state (selection, expansion, visibility, soft removal) consistent
as it changes. Rendering is left to an optional renderer object; the
library itself is headless.

Quick start:
━━━━━━━━━━━━
    from treestatelib import Tree

    tree = Tree(data=[{'id': 1, 'text': 'A', 'children': [{'id': 2, 'text': 'B'}]}])
    tree.node(2).select()
    tree.node(1).indeterminate()   # True
━━━━━━━━━━━━

Lazy children come from a callable loader, ``loader(node, resolve, reject)``.
Coroutine counterparts (``load_async``, ``expand_async``, ...) cover asyncio code.
"""

__version__ = "0.1.0"

from .config import (
    DEFAULT_STATE,
    STATE_NAMES,
    NodesConfig,
    SelectionConfig,
    SelectionMode,
    TreeConfig,
)
from .core import STOP, NodeCopy, TreeNode, TreeNodes
from .error_policies import (
    CollectErrorsPolicy,
    ContinueOnErrorsPolicy,
    ErrorPolicy,
    FailFastPolicy,
    ThresholdPolicy,
)
from .events import EventNotifier
from .exceptions import (
    ConfigurationError,
    CyclicHierarchyError,
    DetachedNodeError,
    DuplicateNodeError,
    InvalidStateError,
    LoaderError,
    TreeStateError,
)
from .renderer import RendererProxy
from .tree import Tree, TreeStatus

__all__ = [
    "__version__",
    # Tree
    "Tree",
    "TreeStatus",
    "TreeNode",
    "TreeNodes",
    "NodeCopy",
    "STOP",
    # Configuration
    "TreeConfig",
    "SelectionConfig",
    "SelectionMode",
    "NodesConfig",
    "STATE_NAMES",
    "DEFAULT_STATE",
    # Collaborators
    "EventNotifier",
    "RendererProxy",
    # Error policies
    "ErrorPolicy",
    "FailFastPolicy",
    "ContinueOnErrorsPolicy",
    "CollectErrorsPolicy",
    "ThresholdPolicy",
    # Exceptions
    "TreeStateError",
    "ConfigurationError",
    "LoaderError",
    "InvalidStateError",
    "DuplicateNodeError",
    "CyclicHierarchyError",
    "DetachedNodeError",
]
