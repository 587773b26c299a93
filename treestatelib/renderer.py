"""
Renderer proxy.

The core never paints anything. It talks to an optional renderer object
through a narrow contract (``attach``, ``batch``, ``end``,
``apply_changes``, ``scroll_selected_into_view``). RendererProxy wraps
whatever was configured so headless trees work unchanged and nested
batches reach the renderer as one paint pass.
"""

import functools
import logging
from contextlib import contextmanager
from typing import Any, Optional

from .error_policies import ContinueOnErrorsPolicy, ErrorPolicy


logger = logging.getLogger(__name__)

RENDERER_METHODS = (
    'attach',
    'batch',
    'end',
    'apply_changes',
    'scroll_selected_into_view',
)


class RendererProxy:
    """
    Proxy in front of the configured renderer.

    - Contract methods missing on the renderer (or with no renderer at all)
      are no-ops.
    - ``batch()``/``end()`` nest; only the outermost pair is forwarded.
    - ``apply_changes()`` inside a batch is deferred to the closing ``end()``,
      which is itself the paint pass.
    - Any other attribute is passed through to the renderer.
    """

    def __init__(self, renderer: Any = None, policy: Optional[ErrorPolicy] = None):
        self._renderer = renderer
        self._policy = policy or ContinueOnErrorsPolicy()
        self._depth = 0

    @property
    def renderer(self) -> Any:
        return self._renderer

    @property
    def batching(self) -> bool:
        return self._depth > 0

    def get_policy(self) -> ErrorPolicy:
        return self._policy

    def set_policy(self, policy: ErrorPolicy):
        self._policy = policy

    def _invoke(self, name: str, *args) -> Any:
        method = getattr(self._renderer, name, None)
        if method is None:
            return None
        try:
            return method(*args)
        except Exception as error:
            return self._policy.handle(error, f"renderer.{name}", self._renderer)

    def attach(self, target: Any) -> Any:
        return self._invoke('attach', target)

    def batch(self) -> None:
        """Open a coalescing window."""
        self._depth += 1
        if self._depth == 1:
            self._invoke('batch')

    def end(self) -> None:
        """Close a window; the outermost close triggers one paint pass."""
        if self._depth == 0:
            logger.debug("Unbalanced renderer end() ignored")
            return
        self._depth -= 1
        if self._depth == 0:
            self._invoke('end')

    def apply_changes(self) -> None:
        if self._depth:
            return
        self._invoke('apply_changes')

    def scroll_selected_into_view(self) -> None:
        self._invoke('scroll_selected_into_view')

    @contextmanager
    def batched(self):
        """Context manager form of ``batch()``/``end()``."""
        self.batch()
        try:
            yield self
        finally:
            self.end()

    def __getattr__(self, name: str) -> Any:
        """
        Pass other attributes through to the renderer.

        Callables are wrapped so their failures also go through the policy.
        """
        if name.startswith('_'):
            raise AttributeError(name)

        attr = getattr(self._renderer, name)
        if not callable(attr):
            return attr

        @functools.wraps(attr)
        def wrapper(*args, **kwargs):
            try:
                return attr(*args, **kwargs)
            except Exception as error:
                return self._policy.handle(error, f"renderer.{name}", self._renderer)

        return wrapper
