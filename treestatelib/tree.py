"""
Tree orchestrator.

A Tree owns one root TreeNodes collection (the model), the configuration,
the event notifier and the renderer proxy. It parses loader output into
the model, applies the selection policy and coordinates render batches so
each logical operation reaches the renderer as one paint pass.
"""

import logging
import re
import weakref
from collections.abc import Mapping
from concurrent.futures import Future
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Union

from .aio.loader import await_future, resolve_loader
from .config import DEFAULT_STATE, TreeConfig
from .core.builder import collection_to_model
from .core.node import TreeNode
from .core.nodes import TreeNodes
from .error_policies import ErrorPolicy
from .events import EventNotifier
from .exceptions import ConfigurationError, LoaderError
from .renderer import RendererProxy


logger = logging.getLogger(__name__)

# Collection operations answered by the root model
_MODEL_METHODS = frozenset({
    'available', 'blur', 'blur_deep', 'clean', 'clean_deep', 'clone', 'collapse',
    'collapse_deep', 'collapsed', 'concat', 'copy', 'deepest', 'deselect',
    'deselect_deep', 'expand', 'expand_deep', 'expand_deep_async', 'expand_parents',
    'expand_parents_deep', 'expanded', 'export', 'extract', 'filter', 'flatten',
    'focused', 'get', 'hidden', 'hide', 'hide_deep', 'indeterminate', 'insert_at',
    'invoke', 'invoke_deep', 'loading', 'recurse_down', 'removed', 'restore',
    'restore_deep', 'select', 'select_deep', 'selectable', 'selected', 'show',
    'show_deep', 'soft_remove', 'soft_remove_deep', 'sort', 'state', 'state_deep',
    'to_list', 'visible',
})


class TreeStatus(Enum):
    """Tree lifecycle."""
    CONSTRUCTED = "constructed"
    LOADING = "loading"
    READY = "ready"


class Tree:
    """
    Hierarchical state model.

    Args:
        config: TreeConfig, or a mapping of options
        listener_error_policy: Policy for exceptions raised by listeners
        renderer_error_policy: Policy for exceptions raised by the renderer
        **options: TreeConfig fields, as an alternative to ``config``

    Raises:
        ConfigurationError: If the configuration is invalid

    Example:
        >>> tree = Tree(data=[{'id': 1, 'text': 'A', 'children': [{'id': 2, 'text': 'B'}]}])
        >>> tree.node(2).select()
        >>> tree.node(1).indeterminate()
        True
    """

    def __init__(self, config: Union[TreeConfig, Mapping, None] = None, *,
                 listener_error_policy: Optional[ErrorPolicy] = None,
                 renderer_error_policy: Optional[ErrorPolicy] = None,
                 **options):
        if config is None:
            config = TreeConfig.from_dict(options)
        elif isinstance(config, Mapping):
            config = TreeConfig.from_dict({**config, **options})
        elif options:
            raise ConfigurationError("Pass either a TreeConfig or keyword options, not both")

        errors = config.validate()
        if errors:
            raise ConfigurationError(f"Invalid tree configuration: {'; '.join(errors)}")

        self.config = config.normalized()
        self.default_state = dict(DEFAULT_STATE)
        self.prevent_deselection = False
        self.initialized = False
        self.status = TreeStatus.CONSTRUCTED

        self.events = EventNotifier(listener_error_policy)
        self.model = TreeNodes(self, owner=True)

        self._last_selected: Optional[weakref.ref] = None
        self._has_loaded = False
        self._load_generation = 0
        self._pending_load: Optional[Future] = None
        self._require_suspended = 0
        self._range_selecting = 0

        renderer = self.config.renderer(self) if self.config.renderer is not None else None
        self.renderer = RendererProxy(renderer, renderer_error_policy)
        if renderer is not None:
            self.renderer.attach(self.config.target)

        self.load(self.config.data)
        self.initialized = True

    def __repr__(self) -> str:
        return f"<Tree status={self.status.value} nodes={len(self.model)}>"

    def __getattr__(self, name: str) -> Any:
        if name in _MODEL_METHODS:
            return getattr(self.model, name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute {name!r}")

    def __len__(self) -> int:
        return len(self.model)

    def __iter__(self):
        return iter(self.model)

    @property
    def is_dynamic(self) -> bool:
        return self.config.is_dynamic

    @property
    def last_load(self) -> Optional[Future]:
        """Future of the most recent load."""
        return self._pending_load

    # Events

    def on(self, event: str, listener: Optional[Callable] = None):
        return self.events.on(event, listener)

    def once(self, event: str, listener: Callable):
        return self.events.once(event, listener)

    def off(self, event: Optional[str] = None, listener: Optional[Callable] = None) -> int:
        return self.events.off(event, listener)

    def emit(self, event: str, *args) -> bool:
        return self.events.emit(event, *args)

    def mute(self, events: Optional[Union[str, Iterable[str]]] = None) -> 'Tree':
        self.events.mute(events)
        return self

    def unmute(self, events: Optional[Union[str, Iterable[str]]] = None) -> 'Tree':
        self.events.unmute(events)
        return self

    def muted(self):
        return self.events.muted()

    def _emit_load_event(self, event: str, *args) -> None:
        # Loads that finish during construction are delivered a tick later
        if self.initialized:
            self.events.emit(event, *args)
        else:
            self.events.defer(event, *args)

    # Loading

    def load(self, loader: Any) -> Future:
        """
        Replace the model with the records produced by ``loader``.

        A later load supersedes a pending one: the earlier future is
        cancelled and its completion ignored.

        Returns:
            Future resolving to the new model. On failure ``data.loaderror``
            is emitted, the future fails and the current model is kept.
        """
        self._load_generation += 1
        generation = self._load_generation

        previous = self._pending_load
        if previous is not None and not previous.done():
            logger.debug("Pending load superseded by generation %d", generation)
            previous.cancel()

        self.events.clear_pending()
        result: Future = Future()
        self._pending_load = result
        self.status = TreeStatus.LOADING

        source = resolve_loader(loader, None)
        source.add_done_callback(lambda done: self._complete_load(done, result, generation))
        return result

    async def load_async(self, loader: Any) -> TreeNodes:
        return await await_future(self.load(loader))

    def reload(self) -> Future:
        """Load the configured ``data`` again."""
        return self.load(self.config.data)

    async def reload_async(self) -> TreeNodes:
        return await await_future(self.reload())

    def _complete_load(self, done: Future, result: Future, generation: int) -> None:
        if generation != self._load_generation:
            logger.debug("Ignoring stale load completion (generation %d)", generation)
            return
        if result.cancelled():
            self._settle_status()
            return

        if done.cancelled():
            error = LoaderError("Data loader was cancelled")
        else:
            error = done.exception()

        if error is None:
            records = done.result()
            self._emit_load_event('data.loaded', records)
            try:
                load_events: list = []
                model = collection_to_model(self, records, load_events=load_events)
            except Exception as exc:
                error = exc

        if error is not None:
            self._fail_load(error, result)
            return

        with self.renderer.batched():
            self._replace_model(model)
            model._derive_subtree()
            self._has_loaded = True
            self.status = TreeStatus.READY

            if self.config.selection.require and not self.selected():
                self.select_first_available_node()

        logger.debug("Loaded %d root nodes", len(model))
        for event, node in load_events:
            self._emit_load_event(event, node)
        self._emit_load_event('model.loaded', self.model)

        if not result.done():
            result.set_result(self.model)
        self.renderer.scroll_selected_into_view()

    def _fail_load(self, error: BaseException, result: Future) -> None:
        logger.warning("Data load failed: %s", error)
        self._settle_status()
        self._emit_load_event('data.loaderror', error)
        if not result.done():
            result.set_exception(error)

    def _settle_status(self) -> None:
        self.status = TreeStatus.READY if self._has_loaded else TreeStatus.CONSTRUCTED

    def _replace_model(self, model: TreeNodes) -> None:
        for node in list(self.model):
            self.model._detach(node)
        self.model = model
        self._last_selected = None

    def remove_all(self) -> 'Tree':
        """Discard every node."""
        with self.renderer.batched():
            self._replace_model(TreeNodes(self, owner=True))
            self.renderer.apply_changes()
        return self

    def add_node(self, record: Any) -> TreeNode:
        return self.model.add_node(record)

    def add_nodes(self, records: Iterable[Any]) -> TreeNodes:
        with self.renderer.batched():
            added = [self.model.add_node(record) for record in records]
        return TreeNodes(self, added)

    # Lookup

    def node(self, node_id: Any) -> Optional[TreeNode]:
        return self.model.node(node_id)

    def nodes(self, ids: Optional[Iterable[Any]] = None) -> TreeNodes:
        return self.model.nodes(ids)

    def is_node(self, obj: Any) -> bool:
        return isinstance(obj, TreeNode)

    def _all_ids(self) -> set:
        return self.model._ids()

    def flush_dirty(self) -> TreeNodes:
        """Return the nodes marked dirty and clear their markers."""
        dirty = self.model.flatten(lambda node: node.dirty)
        for node in dirty:
            node._dirty = False
        return dirty

    # State changes

    def _change_state(self, node: TreeNode, name: str, value: bool, verb: str,
                      deep: Optional[str] = None) -> TreeNode:
        """
        Shared path for every state verb.

        No-op when the flag already has ``value``. Otherwise: reset state on
        restore (if configured), set the flag, emit ``node.<verb>``,
        cascade ``deep`` to the children, mark dirty and request a render.
        """
        if node.state(name) == value:
            return node

        with self.renderer.batched():
            if verb == 'restored' and self.config.nodes.reset_state_on_restore:
                self.reset_state(node)
            node.state(name, value)
            self.emit(f"node.{verb}", node)
            if deep is not None and node.has_children():
                node.children.invoke(deep)
            node.mark_dirty()
            self.renderer.apply_changes()
        return node

    def reset_state(self, node: TreeNode) -> TreeNode:
        """Set every state flag on ``node`` back to the tree defaults."""
        was_selected = node.selected()
        for name, value in self.default_state.items():
            node.state(name, value)

        if self._last_selected is not None and self._last_selected() is node:
            self._last_selected = None
        if was_selected and not node.selected():
            self.emit("node.deselected", node)
        return node

    # Selection

    def last_selected_node(self) -> Optional[TreeNode]:
        node = self._last_selected() if self._last_selected is not None else None
        if node is None or node.context is None:
            return None
        return node

    def can_auto_deselect(self) -> bool:
        return self.config.selection.auto_deselect and not self.prevent_deselection

    def _should_auto_deselect(self) -> bool:
        if self._range_selecting:
            return False
        return not self.config.selection.multiple or self.can_auto_deselect()

    def _requires_selection(self) -> bool:
        return self.config.selection.require and not self._require_suspended

    @contextmanager
    def _suspend_require(self):
        self._require_suspended += 1
        try:
            yield
        finally:
            self._require_suspended -= 1

    @contextmanager
    def _range_selection(self):
        self._range_selecting += 1
        try:
            yield
        finally:
            self._range_selecting -= 1

    def disable_deselection(self) -> 'Tree':
        """Keep existing selections when selecting (multiple selection only)."""
        if self.config.selection.multiple:
            self.prevent_deselection = True
        return self

    def enable_deselection(self) -> 'Tree':
        self.prevent_deselection = False
        return self

    def select_first_available_node(self) -> Optional[TreeNode]:
        node = next((node for node in self.model if node.available()), None)
        if node is not None:
            node.select()
        return node

    def bounding_nodes(self, *nodes: Union[TreeNode, Iterable[TreeNode]]) -> List[TreeNode]:
        """
        First and last of ``nodes`` in document order.

        Raises:
            ValueError: If no nodes are given
        """
        if len(nodes) == 1 and not isinstance(nodes[0], TreeNode):
            nodes = tuple(nodes[0])
        if not nodes:
            raise ValueError("bounding_nodes() needs at least one node")

        def order(node):
            return tuple(int(part) for part in node.index_path().split('.'))

        ordered = sorted(nodes, key=order)
        return [ordered[0], ordered[-1]]

    def select_between(self, start: TreeNode, end: TreeNode) -> 'Tree':
        """
        Select every visible node after ``start`` up to and including ``end``.

        ``start`` must precede ``end`` in document order, see ``bounding_nodes``.
        """
        if start is end:
            end.select()
            return self

        with self.renderer.batched(), self._range_selection():
            node = start.next_visible_node()
            while node is not None and node is not end:
                node.select()
                node = node.next_visible_node()
            end.select()
        return self

    # Search

    def search(self, query: Any) -> Future:
        """
        Show only nodes matching ``query`` and the ancestors leading to them.

        Args:
            query: String (case-insensitive pattern over node text), compiled
                pattern, or predicate. None or a blank string clears the search.

        Returns:
            Future resolving to the matched nodes. Built-in searches complete
            immediately; a configured custom search completes when it calls
            its resolver.

        Raises:
            TypeError: For an unsupported query type
        """
        result: Future = Future()

        if self.config.search is not None:
            return self._custom_search(query, result)

        if query is None or (isinstance(query, str) and not query.strip()):
            self.clear_search()
            result.set_result(TreeNodes(self))
            return result

        if isinstance(query, str):
            try:
                pattern = re.compile(query, re.IGNORECASE)
            except re.error:
                pattern = re.compile(re.escape(query), re.IGNORECASE)
            predicate = lambda node: bool(pattern.search(str(node.text or '')))  # noqa: E731
        elif isinstance(query, re.Pattern):
            predicate = lambda node: bool(query.search(str(node.text or '')))  # noqa: E731
        elif callable(query):
            predicate = query
        else:
            raise TypeError(f"Unsupported search query: {type(query).__name__}")

        matches = TreeNodes(self)

        def visit(node):
            if node.removed():
                return
            is_match = bool(predicate(node))
            node.state('hidden', not is_match)
            if is_match:
                node.expand_parents()
                matches.append(node)

        with self.renderer.batched():
            self.model.recurse_down(visit)
            self.renderer.apply_changes()

        result.set_result(matches)
        return result

    async def search_async(self, query: Any) -> TreeNodes:
        return await await_future(self.search(query))

    def _custom_search(self, query: Any, result: Future) -> Future:
        def resolve(records):
            with self.renderer.batched():
                self.hide_deep()
                found = [self.add_node(record) for record in records]
                for node in found:
                    node.expand_parents()
            if not result.done():
                result.set_result(TreeNodes(self, found))

        def reject(error):
            self.emit('tree.loaderror', error)
            if not result.done():
                result.set_exception(error if isinstance(error, BaseException) else LoaderError(str(error)))

        try:
            self.config.search(query, resolve, reject)
        except Exception as error:
            reject(error)
        return result

    def clear_search(self) -> 'Tree':
        """Show every node and collapse everything."""
        with self.renderer.batched():
            self.show_deep()
            self.collapse_deep()
        return self
