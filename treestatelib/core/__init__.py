"""Node graph: nodes, collections and the model builder."""

from .builder import build_state, collection_to_model, generate_id, object_to_node
from .node import STOP, NodeCopy, NodeMeta, TreeNode
from .nodes import TreeNodes, resolve_predicate, sort_key

__all__ = [
    'STOP',
    'NodeCopy',
    'NodeMeta',
    'TreeNode',
    'TreeNodes',
    'build_state',
    'collection_to_model',
    'generate_id',
    'object_to_node',
    'resolve_predicate',
    'sort_key',
]
