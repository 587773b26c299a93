"""
Asynchronous loading support for treestatelib.

The tree's core is synchronous. Everything that can suspend (data
loaders, lazy child loads) completes through a
``concurrent.futures.Future`` produced here, with coroutine wrappers on
Tree, TreeNode and TreeNodes for asyncio callers.
"""

from .loader import (
    LoaderKind,
    await_future,
    classify_loader,
    failed_future,
    resolve_loader,
)

__all__ = [
    'LoaderKind',
    'await_future',
    'classify_loader',
    'failed_future',
    'resolve_loader',
]
