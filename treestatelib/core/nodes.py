"""
TreeNodes: ordered node collections and the query engine over them.

A collection either owns its nodes (a tree's root model, a node's
children, a detached clone) or is a view over nodes owned elsewhere
(query results). Inserting into an owning collection links the node's
parent and context; views never touch the nodes they hold.
"""

import bisect
import logging
import weakref
from collections.abc import MutableSequence
from typing import Any, Callable, Iterable, List, Optional, Union

from ..config import STATE_NAMES
from ..exceptions import CyclicHierarchyError, DuplicateNodeError, InvalidStateError
from .node import STOP, NodeCopy, TreeNode


logger = logging.getLogger(__name__)

Predicate = Union[str, Callable[[TreeNode], bool]]

# Names answered by a TreeNode method rather than a stored flag
DERIVED_PREDICATES = ('available', 'visible', 'expanded')

# Node methods fanned out by TreeNodes.<name>() and TreeNodes.<name>_deep()
INVOKABLE_VERBS = (
    'blur',
    'clean',
    'collapse',
    'deselect',
    'expand',
    'expand_parents',
    'hide',
    'restore',
    'select',
    'show',
    'soft_remove',
)


def resolve_predicate(predicate: Predicate) -> Callable[[TreeNode], bool]:
    """
    Turn a state name or callable into a node predicate.

    Raises:
        InvalidStateError: For an unknown state name
        TypeError: For anything that is neither a name nor callable
    """
    if isinstance(predicate, str):
        if predicate in STATE_NAMES:
            return lambda node: node.state(predicate)
        if predicate in DERIVED_PREDICATES:
            return lambda node: getattr(node, predicate)()
        raise InvalidStateError(predicate)
    if callable(predicate):
        return predicate
    raise TypeError(f"Predicate must be a state name or callable, not {type(predicate).__name__}")


def sort_key(sorter: Union[str, Callable[[TreeNode], Any]]) -> Callable[[TreeNode], Any]:
    """
    Build a sort key from a key callable or a node property name.

    Property names resolve to ``id``/``text`` attributes, then payload keys.
    Missing values sort last.
    """
    if callable(sorter):
        getter = sorter
    else:
        def getter(node):
            if sorter in ('id', 'text'):
                return getattr(node, sorter)
            return node.payload.get(sorter)

    def key(node):
        value = getter(node)
        return (value is None, value if value is not None else '')

    return key


def _invoker(method: str, deep: bool = False):
    def invoke(self):
        return self.invoke(method, deep=deep)

    invoke.__name__ = f"{method}_deep" if deep else method
    invoke.__doc__ = (
        f"Call ``{method}()`` on every node{' and descendant' if deep else ''}."
    )
    return invoke


class TreeNodes(MutableSequence):
    """
    An ordered collection of TreeNode objects.

    Args:
        tree: Owning tree
        nodes: Initial nodes
        context: Node whose children this collection holds
        owner: Whether inserting links nodes into this collection
    """

    def __init__(self, tree, nodes: Optional[Iterable[TreeNode]] = None,
                 context: Optional[TreeNode] = None, owner: bool = False):
        self._tree = tree
        self._nodes: List[TreeNode] = []
        self._context_ref = weakref.ref(context) if context is not None else None
        self._owner = owner or context is not None
        for node in nodes or ():
            self.append(node)

    def __repr__(self) -> str:
        return f"<TreeNodes {[node.id for node in self._nodes]!r}>"

    @property
    def tree(self):
        return self._tree

    @property
    def context(self) -> Optional[TreeNode]:
        return self._context_ref() if self._context_ref is not None else None

    # Sequence protocol

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self):
        return iter(list(self._nodes))

    def __getitem__(self, index):
        if isinstance(index, slice):
            return TreeNodes(self._tree, self._nodes[index])
        return self._nodes[index]

    def __setitem__(self, index, node):
        if isinstance(index, slice):
            raise TypeError("TreeNodes does not support slice assignment")
        old = self._nodes[index]
        self._nodes[index] = node
        if old is not node and old not in self:
            self._detach(old)
        self._attach(node)

    def __delitem__(self, index):
        if isinstance(index, slice):
            for node in self._nodes[index]:
                self._detach(node)
        else:
            self._detach(self._nodes[index])
        del self._nodes[index]

    def insert(self, index: int, node: TreeNode) -> None:
        """Low-level insert. Links the node but emits nothing."""
        if not isinstance(node, TreeNode):
            raise TypeError(f"TreeNodes holds TreeNode objects, not {type(node).__name__}")
        self._nodes.insert(index, node)
        self._attach(node)

    def index(self, node, start: int = 0, stop: Optional[int] = None) -> int:
        stop = len(self._nodes) if stop is None else stop
        for position in range(start, stop):
            if self._nodes[position] is node:
                return position
        raise ValueError(f"{node!r} is not in this collection")

    def __contains__(self, node) -> bool:
        return any(member is node for member in self._nodes)

    def _attach(self, node: TreeNode) -> None:
        if not self._owner:
            return
        previous = node.context
        if previous is not None and previous is not self:
            previous._nodes = [member for member in previous._nodes if member is not node]
        node._tree = self._tree
        node._context_ref = weakref.ref(self)
        context = self.context
        node._parent_ref = weakref.ref(context) if context is not None else None

    def _detach(self, node: TreeNode) -> None:
        if not self._owner or node.context is not self:
            return
        node._context_ref = None
        node._parent_ref = None

    def get(self, index: int) -> Optional[TreeNode]:
        """Node at ``index``, or None when out of range."""
        try:
            return self._nodes[index]
        except IndexError:
            return None

    def to_list(self) -> List[TreeNode]:
        return list(self._nodes)

    def concat(self, other: Iterable[TreeNode]) -> 'TreeNodes':
        """New view holding this collection's nodes followed by ``other``."""
        return TreeNodes(self._tree, list(self._nodes) + list(other))

    # Lookup

    def node(self, node_id: Any) -> Optional[TreeNode]:
        """Find a node by id anywhere below this collection."""
        node_id = str(node_id)
        found = []

        def match(node):
            if node.id == node_id:
                found.append(node)
                return STOP

        self.recurse_down(match)
        return found[0] if found else None

    def nodes(self, ids: Optional[Iterable[Any]] = None) -> 'TreeNodes':
        """Nodes with the given ids, in traversal order. All top-level nodes when omitted."""
        if ids is None:
            return self
        wanted = {str(node_id) for node_id in ids}
        return self.flatten(lambda node: node.id in wanted)

    def deepest(self) -> 'TreeNodes':
        """Leaf nodes, in traversal order."""
        return self.flatten(lambda node: not node.has_children())

    def _ids(self) -> set:
        ids = set()
        self.recurse_down(lambda node: ids.add(node.id))
        return ids

    # Traversal and queries

    def recurse_down(self, iteratee: Callable[[TreeNode], Any]) -> 'TreeNodes':
        """
        Depth-first pre-order walk.

        Returning STOP from ``iteratee`` halts the whole walk. Children are
        read after the iteratee runs, so children it loads are visited.
        """
        self._walk(iteratee)
        return self

    def _walk(self, iteratee) -> bool:
        for node in list(self._nodes):
            if iteratee(node) is STOP:
                return False
            if node.has_children() and not node.children._walk(iteratee):
                return False
        return True

    def filter(self, predicate: Predicate) -> 'TreeNodes':
        """
        Nodes of this collection that match, or have a matching descendant.

        The result is a view of live nodes; their children are untouched.
        """
        test = resolve_predicate(predicate)

        def matches(node):
            if test(node):
                return True
            return node.has_children() and any(matches(child) for child in node.children)

        return TreeNodes(self._tree, [node for node in self._nodes if matches(node)])

    def flatten(self, predicate: Predicate) -> 'TreeNodes':
        """All matching nodes at any depth, in traversal order."""
        test = resolve_predicate(predicate)
        found = TreeNodes(self._tree)
        self.recurse_down(lambda node: found._nodes.append(node) if test(node) else None)
        return found

    def extract(self, predicate: Predicate) -> 'TreeNodes':
        """
        Cloned hierarchy of every match plus its ancestors.

        Matches are cloned without their children; ancestors shared by
        several matches appear once. Nothing in the result is live.
        """
        result = TreeNodes(self._tree, owner=True)
        context = self.context

        for match in self.flatten(predicate):
            chain = []
            node = match.parent
            while node is not None and node is not context:
                chain.append(node)
                node = node.parent
            chain.reverse()
            chain.append(match)

            level = result
            for original in chain:
                clone = next((member for member in level if member.id == original.id), None)
                if clone is None:
                    clone = original.clone(include_children=False)
                    level.append(clone)
                if original is match:
                    break
                if clone.children is None:
                    clone.children = TreeNodes(self._tree, context=clone, owner=True)
                    clone._dynamic = False
                level = clone.children

        return result

    def _query(self, name: str, full: bool) -> 'TreeNodes':
        test = resolve_predicate(name)
        if name != 'removed':
            base = test
            test = lambda node: not node.removed() and base(node)  # noqa: E731
        return self.extract(test) if full else self.flatten(test)

    def available(self, full: bool = False) -> 'TreeNodes':
        return self._query('available', full)

    def collapsed(self, full: bool = False) -> 'TreeNodes':
        return self._query('collapsed', full)

    def expanded(self, full: bool = False) -> 'TreeNodes':
        return self._query('expanded', full)

    def focused(self, full: bool = False) -> 'TreeNodes':
        return self._query('focused', full)

    def hidden(self, full: bool = False) -> 'TreeNodes':
        return self._query('hidden', full)

    def indeterminate(self, full: bool = False) -> 'TreeNodes':
        return self._query('indeterminate', full)

    def loading(self, full: bool = False) -> 'TreeNodes':
        return self._query('loading', full)

    def removed(self, full: bool = False) -> 'TreeNodes':
        return self._query('removed', full)

    def selectable(self, full: bool = False) -> 'TreeNodes':
        return self._query('selectable', full)

    def selected(self, full: bool = False) -> 'TreeNodes':
        return self._query('selected', full)

    def visible(self, full: bool = False) -> 'TreeNodes':
        return self._query('visible', full)

    # State

    def state(self, name: str, value: Optional[bool] = None):
        """Read a flag on each node (list of values) or set it on each node."""
        if value is None:
            return [node.state(name) for node in self._nodes]
        with self._tree.renderer.batched():
            for node in list(self._nodes):
                node.state(name, value)
        return self

    def state_deep(self, name: str, value: Optional[bool] = None):
        """Like ``state`` but over every descendant as well."""
        if value is None:
            values = []
            self.recurse_down(lambda node: values.append(node.state(name)))
            return values
        with self._tree.renderer.batched():
            self.recurse_down(lambda node: node.state(name, value))
        return self

    def invoke(self, methods: Union[str, List[str]], deep: bool = False) -> 'TreeNodes':
        """
        Call node methods on every member, in one render batch.

        Args:
            methods: Method name or list of names
            deep: Also call them on every descendant

        Raises:
            ValueError: For names that aren't public TreeNode methods
        """
        names = [methods] if isinstance(methods, str) else list(methods)
        for name in names:
            if name.startswith('_') or not callable(getattr(TreeNode, name, None)):
                raise ValueError(f"Unknown node method: {name!r}")

        def call(node):
            for name in names:
                getattr(node, name)()

        with self._tree.renderer.batched():
            if deep:
                self.recurse_down(call)
            else:
                for node in list(self._nodes):
                    call(node)
        return self

    def invoke_deep(self, methods: Union[str, List[str]]) -> 'TreeNodes':
        return self.invoke(methods, deep=True)

    async def expand_deep_async(self) -> 'TreeNodes':
        """Expand every node, waiting for dynamic children as they load."""
        for node in list(self._nodes):
            await node.expand_async()
            if node.has_children():
                await node.children.expand_deep_async()
        return self

    # Ordering and insertion

    def sort(self, sorter: Optional[Union[str, Callable[[TreeNode], Any]]] = None) -> 'TreeNodes':
        """
        Stable in-place sort of this collection only.

        Args:
            sorter: Key callable or node property name. Defaults to the
                tree's configured sort; without one this is a no-op.
        """
        sorter = sorter if sorter is not None else self._tree.config.sort
        if sorter is None:
            return self
        self._nodes.sort(key=sort_key(sorter))
        context = self.context
        if context is not None:
            context.mark_dirty()
        self._tree.renderer.apply_changes()
        return self

    def add_node(self, record: Any) -> TreeNode:
        return self.insert_at(len(self._nodes), record)

    def insert_at(self, index: int, record: Any) -> TreeNode:
        """
        Insert a raw record or a TreeNode.

        With a configured sort the position comes from the sort key and
        ``index`` is ignored. A record whose id already exists in the tree
        is merged into the existing node instead: that node is restored,
        shown, and receives the record's children.

        Returns:
            The inserted (or merged-into) node

        Raises:
            DuplicateNodeError: If a new descendant's id is already used
            CyclicHierarchyError: If a node would be inserted below itself
        """
        from .builder import object_to_node

        tree = self._tree
        if isinstance(record, TreeNode):
            node_id = record.id
        else:
            node_id = record.get('id') if hasattr(record, 'get') else None
            node_id = None if node_id is None or node_id == '' else str(node_id)

        existing = tree.node(node_id) if node_id is not None else None

        if existing is not None and existing is not record:
            return self._merge(existing, record)

        if isinstance(record, TreeNode):
            node = self._prepare_node(record)
        else:
            node = object_to_node(tree, record, parent=self.context, seen_ids=tree._all_ids())

        if tree.config.sort is not None:
            key = sort_key(tree.config.sort)
            index = bisect.bisect_right([key(member) for member in self._nodes], key(node))
        index = max(0, min(index, len(self._nodes)))

        with tree.renderer.batched():
            self.insert(index, node)
            if node.has_children():
                node.children._derive_subtree()
                node._derive_selection()
            context = self.context
            if context is not None:
                context._dynamic = False
                context.refresh_indeterminate_state()
            tree.emit('node.added', node)
            node.mark_dirty()
            tree.renderer.apply_changes()

        return node

    def _prepare_node(self, node: TreeNode) -> TreeNode:
        context = self.context
        if context is not None and (context is node or context.has_ancestor(node)):
            raise CyclicHierarchyError(f"Cannot insert {node!r} below itself")

        tree = self._tree
        if node.tree is not tree:
            from .builder import object_to_node
            return object_to_node(tree, node.to_object(include_state=True),
                                  parent=context, seen_ids=tree._all_ids())

        incoming = node._subtree_ids()
        taken = tree._all_ids()
        live = tree.node(node.id) is node
        if live:
            taken -= incoming
        incoming.discard(node.id)
        for node_id in incoming:
            if node_id in taken:
                raise DuplicateNodeError(node_id)

        old_context = node.context
        if old_context is not None:
            old_parent = node.parent
            old_context.remove(node)
            if old_parent is not None:
                old_parent.refresh_indeterminate_state()
        return node

    def _merge(self, existing: TreeNode, record: Any) -> TreeNode:
        if isinstance(record, TreeNode):
            children = list(record.children) if record.children is not None else []
        else:
            children = record.get('children')
            children = children if isinstance(children, list) else []

        with self._tree.renderer.batched():
            existing.restore()
            existing.show()
            for child in children:
                existing.add_child(child)
            existing.mark_dirty()
            self._tree.renderer.apply_changes()

        logger.debug("Merged record into existing %r", existing)
        return existing

    # Copies and export

    def clone(self) -> 'TreeNodes':
        """Deep copy of every node, detached from any parent."""
        return TreeNodes(self._tree, [node.clone() for node in self._nodes], owner=True)

    def copy(self, hierarchy: bool = False) -> NodeCopy:
        """Prepare copies of every node, see ``NodeCopy.to``."""
        return NodeCopy(self._nodes, hierarchy=hierarchy, single=False)

    def export(self, include_ids: bool = True, include_state: bool = False) -> List[dict]:
        """Plain records for every node, suitable for serialization."""
        return [node.to_object(include_ids=include_ids, include_state=include_state)
                for node in self._nodes]

    def _derive_subtree(self) -> None:
        """Recompute derived selection flags bottom-up."""
        for node in self._nodes:
            if node.has_children():
                node.children._derive_subtree()
                node._derive_selection()


for _verb in INVOKABLE_VERBS:
    setattr(TreeNodes, _verb, _invoker(_verb))
    setattr(TreeNodes, f"{_verb}_deep", _invoker(_verb, deep=True))
del _verb
