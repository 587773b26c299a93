"""
TreeNode: a single entity in the tree.

A node carries the caller's payload, a fixed set of boolean state flags
and its structural links. Every state verb (select, expand, hide, ...)
funnels through ``Tree._change_state`` so each mutation emits its
``node.<verb>`` event, marks the node dirty and requests one render pass.

Parent and context links are weak. A node is owned by the collection
holding it; the parent pointer never keeps a node alive.
"""

import copy
import logging
import weakref
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..aio.loader import await_future, failed_future, resolve_loader
from ..exceptions import (
    DetachedNodeError,
    InvalidStateError,
    LoaderError,
)


logger = logging.getLogger(__name__)


class _Stop:
    """Sentinel returned by an iteratee to halt a recursive walk."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'STOP'

    def __bool__(self) -> bool:
        return False


STOP = _Stop()


@dataclass
class NodeMeta:
    """Display hints carried in a record's ``itree`` entry."""

    icon: Optional[str] = None
    li_attributes: Dict[str, Any] = field(default_factory=dict)
    a_attributes: Dict[str, Any] = field(default_factory=dict)

    def to_itree(self) -> Dict[str, Any]:
        itree: Dict[str, Any] = {}
        if self.icon is not None:
            itree['icon'] = self.icon
        if self.li_attributes:
            itree['li'] = {'attributes': copy.deepcopy(self.li_attributes)}
        if self.a_attributes:
            itree['a'] = {'attributes': copy.deepcopy(self.a_attributes)}
        return itree


class NodeCopy:
    """
    Pending copy of one or more nodes, completed by ``to()``.

    Example:
        >>> source.node('1').copy(hierarchy=True).to(destination_tree)
    """

    def __init__(self, nodes: List['TreeNode'], hierarchy: bool = False, single: bool = True):
        self._nodes = list(nodes)
        self._hierarchy = hierarchy
        self._single = single

    def to(self, destination: Any):
        """
        Add the copied records to a Tree, TreeNodes or TreeNode.

        Returns:
            The new node (single copy) or a list of new nodes
        """
        if isinstance(destination, TreeNode):
            add = destination.add_child
        elif callable(getattr(destination, 'add_node', None)):
            add = destination.add_node
        else:
            raise TypeError(f"Cannot copy nodes into {type(destination).__name__}")

        added = []
        for node in self._nodes:
            source = node.copy_hierarchy() if self._hierarchy else node
            added.append(add(source.to_object()))

        if self._single:
            return added[0] if added else None
        return added


class TreeNode:
    """A node in a Tree."""

    def __init__(self, tree, node_id: str, text: Any = None,
                 payload: Optional[Dict[str, Any]] = None):
        self._tree = tree
        self.id = node_id
        self.text = text
        self.payload: Dict[str, Any] = payload if payload is not None else {}
        self.meta = NodeMeta()
        self.children = None
        self._state: Dict[str, bool] = dict(tree.default_state)
        self._dynamic = False
        self._dirty = False
        self._parent_ref: Optional[weakref.ref] = None
        self._context_ref: Optional[weakref.ref] = None
        self._load_generation = 0
        self._pending_load: Optional[Future] = None

    def __repr__(self) -> str:
        return f"<TreeNode id={self.id!r} text={self.text!r}>"

    # Structure

    @property
    def tree(self):
        return self._tree

    @property
    def parent(self) -> Optional['TreeNode']:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def context(self):
        """The collection holding this node, or None when detached."""
        return self._context_ref() if self._context_ref is not None else None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get_parent(self) -> Optional['TreeNode']:
        return self.parent

    def has_parent(self) -> bool:
        return self.parent is not None

    def get_parents(self):
        """Ancestors, closest first."""
        from .nodes import TreeNodes

        parents = []
        node = self.parent
        while node is not None:
            parents.append(node)
            node = node.parent
        return TreeNodes(self._tree, parents)

    def has_ancestor(self, ancestor: 'TreeNode') -> bool:
        node = self.parent
        while node is not None:
            if node is ancestor:
                return True
            node = node.parent
        return False

    def get_textual_hierarchy(self) -> List[Any]:
        """Texts of this node's ancestors and itself, root first."""
        texts = []
        self.recurse_up(lambda node: texts.insert(0, node.text))
        return texts

    def has_children(self) -> bool:
        return self.children is not None and len(self.children) > 0

    def has_or_will_have_children(self) -> bool:
        return self.has_children() or (self._dynamic and self._tree.is_dynamic)

    def has_visible_children(self) -> bool:
        if not self.has_children():
            return False
        return any(not child.hidden() and not child.removed() for child in self.children)

    def get_children(self):
        """Children collection, or an empty view when none are loaded."""
        from .nodes import TreeNodes

        if self.children is None:
            return TreeNodes(self._tree)
        return self.children

    def index_path(self) -> str:
        """
        Dot-joined positions from the root collection down to this node.

        Raises:
            DetachedNodeError: If this node or an ancestor is not in a collection
        """
        indices = []
        node = self
        while node is not None:
            context = node.context
            if context is None:
                raise DetachedNodeError(f"{node!r} is not part of a collection")
            indices.append(str(context.index(node)))
            node = node.parent
        return '.'.join(reversed(indices))

    def recurse_up(self, iteratee: Callable[['TreeNode'], Any]) -> 'TreeNode':
        """Call ``iteratee`` on this node and each ancestor until it returns STOP."""
        node = self
        while node is not None:
            if iteratee(node) is STOP:
                break
            node = node.parent
        return self

    def recurse_down(self, iteratee: Callable[['TreeNode'], Any]) -> 'TreeNode':
        """Depth-first pre-order walk over this node and its descendants."""
        from .nodes import TreeNodes

        TreeNodes(self._tree, [self]).recurse_down(iteratee)
        return self

    # State

    def state(self, name: str, value: Optional[bool] = None):
        """
        Get or set a state flag.

        Args:
            name: State flag name
            value: New value, or None to read

        Returns:
            The current value when reading, otherwise this node

        Raises:
            InvalidStateError: For an unknown flag name
        """
        if name not in self._state:
            raise InvalidStateError(name)

        if value is None:
            return self._state[name]

        value = bool(value)
        old = self._state[name]
        if old != value:
            self._state[name] = value
            self.mark_dirty()
            self._tree.emit('node.state.changed', self, name, old, value)
        return self

    def states(self, names: List[str], value: Optional[bool] = None):
        """Read several flags (True if all are set) or set them all."""
        if value is None:
            return all(self.state(name) for name in names)
        for name in names:
            self.state(name, value)
        return self

    def available(self) -> bool:
        return not self.removed()

    def collapsed(self) -> bool:
        return self._state['collapsed']

    def expanded(self) -> bool:
        return not self._state['collapsed']

    def focused(self) -> bool:
        return self._state['focused']

    def hidden(self) -> bool:
        return self._state['hidden']

    def indeterminate(self) -> bool:
        return self._state['indeterminate']

    def loading(self) -> bool:
        return self._state['loading']

    def removed(self) -> bool:
        return self._state['removed']

    def selected(self) -> bool:
        return self._state['selected']

    def selectable(self) -> bool:
        """Selectable flag, further restricted by ``selection.allow``."""
        if not self._state['selectable']:
            return False
        allow = self._tree.config.selection.allow
        return allow is None or bool(allow(self))

    def visible(self) -> bool:
        """Not hidden, not removed, and no collapsed ancestor."""
        if self.hidden() or self.removed():
            return False
        parent = self.parent
        while parent is not None:
            if parent.collapsed():
                return False
            parent = parent.parent
        return True

    def mark_dirty(self) -> 'TreeNode':
        """Flag this node and its ancestors for the next render flush."""
        node = self
        while node is not None and not node._dirty:
            node._dirty = True
            node = node.parent
        return self

    # State verbs

    def select(self) -> 'TreeNode':
        tree = self._tree
        if self.selected() or self.removed() or not self.selectable():
            return self

        with tree.renderer.batched():
            if tree._should_auto_deselect():
                with tree._suspend_require():
                    tree.deselect_deep()

            tree._change_state(self, 'selected', True, 'selected')
            tree._last_selected = weakref.ref(self)

            if tree.config.selection.auto_select_children and self.has_children():
                self._cascade_selection(True)

            self.refresh_indeterminate_state()

        return self

    def deselect(self, skip_parent_indeterminate: bool = False) -> 'TreeNode':
        """
        Deselect this node.

        With ``selection.require`` the last selected node stays selected.
        """
        tree = self._tree
        if not self.selected():
            return self
        if tree._requires_selection() and len(tree.selected()) <= 1:
            return self

        with tree.renderer.batched():
            tree._change_state(self, 'selected', False, 'deselected')

            if tree.config.selection.auto_select_children and self.has_children():
                self._cascade_selection(False)

            if skip_parent_indeterminate:
                self._derive_selection()
            else:
                self.refresh_indeterminate_state()

        return self

    def deselect_direct(self) -> 'TreeNode':
        """Deselection from a direct user action."""
        if self._tree.config.selection.disable_direct_deselection:
            return self
        return self.deselect()

    def toggle_select(self) -> 'TreeNode':
        return self.deselect() if self.selected() else self.select()

    def _cascade_selection(self, value: bool) -> None:
        tree = self._tree
        verb = 'selected' if value else 'deselected'

        def apply(node):
            tree._change_state(node, 'selected', value, verb)
            node.state('indeterminate', False)

        self.children.recurse_down(apply)

    def _derive_selection(self) -> None:
        """Recompute this node's selected/indeterminate flags from its children."""
        tree = self._tree
        old = self.indeterminate()

        if not self.has_children():
            indeterminate = False
        else:
            children = list(self.children)
            selected = sum(1 for child in children if child.selected())
            partial = any(child.indeterminate() for child in children)

            if tree.config.selection.auto_select_children:
                if selected == len(children):
                    tree._change_state(self, 'selected', True, 'selected')
                    indeterminate = False
                else:
                    tree._change_state(self, 'selected', False, 'deselected')
                    indeterminate = partial or selected > 0
            else:
                indeterminate = not self.selected() and (partial or selected > 0)

        self.state('indeterminate', indeterminate)
        if old != indeterminate:
            tree.emit('node.indeterminate', self)

    def refresh_indeterminate_state(self) -> 'TreeNode':
        """Recompute derived selection state from this node up to the root."""
        self.recurse_up(lambda node: node._derive_selection())
        return self

    def collapse(self) -> 'TreeNode':
        self._tree._change_state(self, 'collapsed', True, 'collapsed')
        return self

    def expand(self) -> 'TreeNode':
        """
        Expand this node, starting a child load when one is pending.

        Expanding also unhides the node.
        """
        tree = self._tree
        pending = self._dynamic and tree.is_dynamic and self.children is None
        if not (self.has_children() or pending):
            return self
        if not (self.collapsed() or self.hidden()):
            return self

        with tree.renderer.batched():
            tree._change_state(self, 'collapsed', False, 'expanded')
            self.state('hidden', False)

        if pending and not self.loading():
            self.load_children()
        return self

    async def expand_async(self):
        """Expand and wait for any pending child load. Returns the children."""
        before = self._pending_load
        self.expand()
        if self._pending_load is not before:
            await await_future(self._pending_load)
        return self.get_children()

    def toggle_collapse(self) -> 'TreeNode':
        return self.expand() if self.collapsed() else self.collapse()

    def expand_parents(self) -> 'TreeNode':
        parent = self.parent
        if parent is not None:
            parent.recurse_up(lambda node: node.expand())
        return self

    def show(self) -> 'TreeNode':
        self._tree._change_state(self, 'hidden', False, 'shown')
        return self

    def hide(self) -> 'TreeNode':
        self._tree._change_state(self, 'hidden', True, 'hidden')
        return self

    def clean(self) -> 'TreeNode':
        """Hide every ancestor left without visible children."""
        def hide_empty_parent(node):
            parent = node.parent
            if parent is not None and not parent.has_visible_children():
                parent.hide()

        self.recurse_up(hide_empty_parent)
        return self

    def focus(self) -> 'TreeNode':
        tree = self._tree
        if self.focused():
            return self
        with tree.renderer.batched():
            tree.blur_deep()
            tree._change_state(self, 'focused', True, 'focused')
        return self

    def blur(self) -> 'TreeNode':
        self._tree._change_state(self, 'focused', False, 'blurred')
        return self

    def soft_remove(self) -> 'TreeNode':
        """Flag this node and its descendants as removed."""
        tree = self._tree
        with tree.renderer.batched():
            tree._change_state(self, 'removed', True, 'removed', deep='soft_remove')
            parent = self.parent
            if parent is not None:
                parent.refresh_indeterminate_state()
        return self

    def restore(self) -> 'TreeNode':
        tree = self._tree
        with tree.renderer.batched():
            tree._change_state(self, 'removed', False, 'restored', deep='restore')
            parent = self.parent
            if parent is not None:
                parent.refresh_indeterminate_state()
        return self

    def set_loading(self, loading: bool) -> 'TreeNode':
        verb = 'loading' if loading else 'loaded'
        self._tree._change_state(self, 'loading', loading, verb)
        return self

    # Children

    def add_child(self, record: Any) -> 'TreeNode':
        from .nodes import TreeNodes

        if self.children is None:
            self.children = TreeNodes(self._tree, context=self, owner=True)
            self._dynamic = False
        return self.children.add_node(record)

    def add_children(self, records: List[Any]):
        from .nodes import TreeNodes

        with self._tree.renderer.batched():
            added = [self.add_child(record) for record in records]
        return TreeNodes(self._tree, added)

    def load_children(self) -> Future:
        """
        Load this node's children through the tree's dynamic loader.

        Only valid when the tree's ``data`` is a callable and this node's
        children aren't loaded. A later call supersedes a pending one.

        Returns:
            Future resolving to the new children collection. Failures are
            reported through ``children.loaderror`` and fail the future.
        """
        tree = self._tree

        if not tree.is_dynamic or self.children is not None:
            error = LoaderError(f"{self!r} has no pending dynamic children")
            tree.emit('children.loaderror', self, error)
            return failed_future(error)

        self._load_generation += 1
        generation = self._load_generation
        previous = self._pending_load
        if previous is not None and not previous.done():
            logger.debug("Child load for %r superseded", self)
            previous.cancel()

        result: Future = Future()
        self._pending_load = result
        self.set_loading(True)

        source = resolve_loader(tree.config.data, self)
        source.add_done_callback(
            lambda done: self._complete_child_load(done, result, generation)
        )
        return result

    def _complete_child_load(self, done: Future, result: Future, generation: int) -> None:
        from .builder import collection_to_model

        if generation != self._load_generation or result.cancelled():
            logger.debug("Ignoring stale child load for %r", self)
            return

        tree = self._tree
        if done.cancelled():
            error = LoaderError("Child loader was cancelled")
        else:
            error = done.exception()

        if error is None:
            try:
                load_events: list = []
                seen_ids = tree._all_ids() - self._subtree_ids()
                children = collection_to_model(
                    tree, done.result(), parent=self, seen_ids=seen_ids, load_events=load_events
                )
            except Exception as exc:
                error = exc

        if error is not None:
            logger.warning("Failed to load children of %r: %s", self, error)
            self.set_loading(False)
            tree.emit('children.loaderror', self, error)
            if not result.done():
                result.set_exception(error)
            return

        with tree.renderer.batched():
            self.set_loading(False)
            self.children = children
            self._dynamic = False
            children._derive_subtree()
            self._derive_selection()
            self.mark_dirty()
            tree.renderer.apply_changes()

        logger.debug("Loaded %d children for %r", len(children), self)
        for event, node in load_events:
            tree.emit(event, node)
        if not result.done():
            result.set_result(children)
        tree.emit('children.loaded', self)

    async def load_children_async(self):
        return await await_future(self.load_children())

    def unload_children(self) -> 'TreeNode':
        """Drop loaded children so the next expand loads them again."""
        if self.children is not None:
            for child in list(self.children):
                self.children._detach(child)
        self.children = None
        self._dynamic = True
        self.mark_dirty()
        self._tree.renderer.apply_changes()
        return self

    def reload_children(self) -> Future:
        self.unload_children()
        return self.load_children()

    def _subtree_ids(self) -> set:
        ids = set()
        self.recurse_down(lambda node: ids.add(node.id))
        return ids

    # Removal, copying and export

    def remove(self, include_state: bool = False) -> Dict[str, Any]:
        """
        Remove this node from its collection for good.

        Returns:
            The exported record of the removed node

        Raises:
            DetachedNodeError: If the node isn't in a collection
        """
        context = self.context
        if context is None:
            raise DetachedNodeError(f"{self!r} is not part of a collection")

        tree = self._tree
        exported = self.to_object(include_state=include_state)
        parent = self.parent

        with tree.renderer.batched():
            context.remove(self)
            if parent is not None:
                parent.mark_dirty()
                parent.refresh_indeterminate_state()
            tree.emit('node.deleted', exported)
            tree.renderer.apply_changes()

        return exported

    def clone(self, include_children: bool = True) -> 'TreeNode':
        """Deep copy preserving state, detached from any collection."""
        from .nodes import TreeNodes

        node = TreeNode(self._tree, self.id, copy.deepcopy(self.text), copy.deepcopy(self.payload))
        node.meta = copy.deepcopy(self.meta)
        node._state = dict(self._state)
        node._dynamic = self._dynamic

        if include_children and self.children is not None:
            node.children = TreeNodes(self._tree, context=node, owner=True)
            for child in self.children:
                node.children.append(child.clone())
        return node

    def copy(self, hierarchy: bool = False) -> NodeCopy:
        """Prepare a copy of this node for another tree, see ``NodeCopy.to``."""
        return NodeCopy([self], hierarchy=hierarchy)

    def copy_hierarchy(self, exclude_node: bool = False, include_children: bool = True) -> 'TreeNode':
        """
        Clone this node under shallow clones of its ancestors.

        Returns:
            The top of the cloned chain
        """
        from .nodes import TreeNodes

        chain = [parent.clone(include_children=False) for parent in reversed(self.get_parents())]
        if not exclude_node or not chain:
            chain.append(self.clone(include_children=include_children))

        for parent, child in zip(chain, chain[1:]):
            parent.children = TreeNodes(self._tree, context=parent, owner=True)
            parent._dynamic = False
            parent.children.append(child)
        return chain[0]

    def to_object(self, include_ids: bool = True, include_state: bool = False) -> Dict[str, Any]:
        """Plain record of this node and its descendants."""
        record: Dict[str, Any] = {}
        if include_ids:
            record['id'] = self.id
        record['text'] = copy.deepcopy(self.text)
        record.update(copy.deepcopy(self.payload))

        itree = self.meta.to_itree()
        if include_state:
            itree['state'] = dict(self._state)
        if itree:
            record['itree'] = itree

        if self.children is not None:
            record['children'] = [
                child.to_object(include_ids=include_ids, include_state=include_state)
                for child in self.children
            ]
        elif self._dynamic:
            record['children'] = True
        return record

    def export(self, include_ids: bool = True, include_state: bool = False) -> Dict[str, Any]:
        return self.to_object(include_ids=include_ids, include_state=include_state)

    # Visible-order navigation

    def _siblings(self):
        context = self.context
        if context is None:
            raise DetachedNodeError(f"{self!r} is not part of a collection")
        return context

    def next_visible_child_node(self) -> Optional['TreeNode']:
        if not self.has_children():
            return None
        return next((child for child in self.children if child.visible()), None)

    def next_visible_sibling_node(self) -> Optional['TreeNode']:
        siblings = self._siblings()
        start = siblings.index(self) + 1
        return next((node for node in siblings[start:] if node.visible()), None)

    def previous_visible_sibling_node(self) -> Optional['TreeNode']:
        siblings = self._siblings()
        end = siblings.index(self)
        return next((node for node in reversed(siblings[:end]) if node.visible()), None)

    def next_visible_ancestral_sibling_node(self) -> Optional['TreeNode']:
        node = self
        while node is not None:
            sibling = node.next_visible_sibling_node()
            if sibling is not None:
                return sibling
            node = node.parent
        return None

    def next_visible_node(self) -> Optional['TreeNode']:
        """Next visible node in document order, children before siblings."""
        if self.expanded() and self.has_visible_children():
            child = self.next_visible_child_node()
            if child is not None:
                return child

        sibling = self.next_visible_sibling_node()
        if sibling is not None:
            return sibling

        parent = self.parent
        if parent is not None:
            return parent.next_visible_ancestral_sibling_node()
        return None

    def last_deepest_visible_child(self) -> Optional['TreeNode']:
        if not (self.expanded() and self.has_children()):
            return None
        visible = [child for child in self.children if child.visible()]
        if not visible:
            return None
        last = visible[-1]
        return last.last_deepest_visible_child() or last

    def previous_visible_node(self) -> Optional['TreeNode']:
        sibling = self.previous_visible_sibling_node()
        if sibling is not None:
            return sibling.last_deepest_visible_child() or sibling

        parent = self.parent
        if parent is not None and parent.visible():
            return parent
        return None
