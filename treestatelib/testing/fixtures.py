"""Test fixtures for treestatelib consumers.

These helpers record what a tree tells the outside world (renderer calls
and emitted events) so tests can assert on batching and event order
without a real UI.
"""

from typing import Any, List, Optional, Tuple


class RecordingRenderer:
    """Renderer that records every contract call.

    Example:
        renderer = RecordingRenderer()
        tree = Tree(data=records, renderer=lambda tree: renderer, target='host')
        tree.node(1).select()
        assert renderer.paint_passes == 1
    """

    def __init__(self):
        self.calls: List[Tuple[str, tuple]] = []
        self.target: Any = None

    def attach(self, target: Any):
        self.target = target
        self.calls.append(('attach', (target,)))

    def batch(self):
        self.calls.append(('batch', ()))

    def end(self):
        self.calls.append(('end', ()))

    def apply_changes(self):
        self.calls.append(('apply_changes', ()))

    def scroll_selected_into_view(self):
        self.calls.append(('scroll_selected_into_view', ()))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    @property
    def paint_passes(self) -> int:
        """Number of ``end`` and ``apply_changes`` calls."""
        return sum(1 for name in self.names if name in ('end', 'apply_changes'))

    def reset(self):
        self.calls.clear()


class EventRecorder:
    """Listener that records every event emitted by a tree.

    Example:
        recorder = EventRecorder(tree)
        tree.node(1).select()
        assert 'node.selected' in recorder.names
    """

    def __init__(self, tree: Optional[Any] = None):
        self.events: List[Tuple[str, tuple]] = []
        if tree is not None:
            self.attach(tree)

    def attach(self, tree: Any) -> 'EventRecorder':
        tree.events.on_any(self)
        return self

    def __call__(self, event: str, *args):
        self.events.append((event, args))

    @property
    def names(self) -> List[str]:
        return [event for event, _ in self.events]

    def payloads(self, event: str) -> List[tuple]:
        return [args for name, args in self.events if name == event]

    def count(self, event: str) -> int:
        return sum(1 for name in self.names if name == event)

    def clear(self):
        self.events.clear()


def node_ids(nodes) -> List[str]:
    """Ids of a node collection, in order."""
    return [node.id for node in nodes]
