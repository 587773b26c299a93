"""
Model building: raw records to linked TreeNode objects.

Records are plain mappings::

    {'id': '1', 'text': 'A', 'children': [...],
     'itree': {'icon': 'folder', 'li': {'attributes': {}},
               'a': {'attributes': {}}, 'state': {'selected': True}}}

Any other keys are kept as the node's payload. The caller's records are
never mutated.
"""

import copy
import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional, Set, Tuple

from ..config import STATE_NAMES
from ..exceptions import DuplicateNodeError, InvalidStateError, LoaderError
from .node import NodeMeta, TreeNode
from .nodes import TreeNodes, sort_key


logger = logging.getLogger(__name__)

LoadEvents = List[Tuple[str, TreeNode]]


def generate_id(tree) -> str:
    """New node id from the tree's ``id_factory``, or a random hex string."""
    factory = tree.config.id_factory
    if factory is not None:
        return str(factory())
    return uuid.uuid4().hex


def build_state(tree, overrides: Optional[Mapping[str, Any]] = None,
                parent: Optional[TreeNode] = None) -> Dict[str, bool]:
    """
    Tree default state with a record's overrides applied.

    Under cascading selection a child of a selected parent starts selected
    unless its record says otherwise.

    Raises:
        InvalidStateError: For an unknown state name in ``overrides``
    """
    state = dict(tree.default_state)
    overrides = overrides or {}

    for name, value in overrides.items():
        if name not in STATE_NAMES:
            raise InvalidStateError(name)
        state[name] = bool(value)

    if (tree.config.selection.auto_select_children and parent is not None
            and parent.selected() and 'selected' not in overrides):
        state['selected'] = True

    return state


def _attributes(section: Any) -> Dict[str, Any]:
    if not isinstance(section, Mapping):
        return {}
    return copy.deepcopy(dict(section.get('attributes') or {}))


def object_to_node(tree, record: Any, parent: Optional[TreeNode] = None,
                   seen_ids: Optional[Set[str]] = None,
                   load_events: Optional[LoadEvents] = None) -> TreeNode:
    """
    Parse one raw record (and its children) into a TreeNode.

    Args:
        tree: Tree the node will belong to
        record: Raw record mapping, or a TreeNode to copy
        parent: Node the result will be placed under
        seen_ids: Ids already used; new ids are added to it
        load_events: Collects ``(event, node)`` pairs for states listed in
            ``allow_load_events``

    Raises:
        LoaderError: If the record isn't a mapping
        DuplicateNodeError: If the id is already in ``seen_ids``
        InvalidStateError: For unknown state names
    """
    if isinstance(record, TreeNode):
        record = record.to_object(include_state=True)
    if not isinstance(record, Mapping):
        raise LoaderError(f"Invalid node record: {type(record).__name__}")

    data = dict(record)
    node_id = data.pop('id', None)
    if node_id is None or node_id == '':
        node_id = generate_id(tree)
    else:
        node_id = str(node_id)

    if seen_ids is not None:
        if node_id in seen_ids:
            raise DuplicateNodeError(node_id)
        seen_ids.add(node_id)

    text = data.pop('text', None)
    children = data.pop('children', None)
    itree = data.pop('itree', None) or {}
    if not isinstance(itree, Mapping):
        raise LoaderError(f"Invalid itree entry for node {node_id!r}")

    node = TreeNode(tree, node_id, text=copy.deepcopy(text), payload=copy.deepcopy(data))
    node.meta = NodeMeta(
        icon=itree.get('icon'),
        li_attributes=_attributes(itree.get('li')),
        a_attributes=_attributes(itree.get('a')),
    )
    node._state = build_state(tree, itree.get('state'), parent)

    if load_events is not None:
        for name in tree.config.allow_load_events:
            if node._state[name]:
                load_events.append((f"node.{name}", node))

    if children is True:
        node._dynamic = True
    elif children:
        node.children = collection_to_model(tree, children, parent=node,
                                            seen_ids=seen_ids, load_events=load_events)
    elif children is not None and children is not False:
        node.children = TreeNodes(tree, context=node, owner=True)

    return node


def collection_to_model(tree, records: Any, parent: Optional[TreeNode] = None,
                        seen_ids: Optional[Set[str]] = None,
                        load_events: Optional[LoadEvents] = None) -> TreeNodes:
    """
    Parse a sequence of raw records into an owning TreeNodes collection.

    Ids must be unique across the whole parse (and against ``seen_ids``).
    The result is sorted when the tree has a sort configured.

    Raises:
        LoaderError: If ``records`` isn't a sequence of records
    """
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
        raise LoaderError(f"Loader must resolve to a sequence of records, not {type(records).__name__}")

    if seen_ids is None:
        seen_ids = set()

    nodes = TreeNodes(tree, context=parent, owner=True)
    for record in records:
        nodes.append(object_to_node(tree, record, parent=parent,
                                    seen_ids=seen_ids, load_events=load_events))

    if tree.config.sort is not None:
        nodes._nodes.sort(key=sort_key(tree.config.sort))

    logger.debug("Built %d nodes under %r", len(nodes), parent)
    return nodes