"""
Loader adapter.

A tree's ``data`` option may be a sequence of records, a callback
``loader(node, resolve, reject)``, an awaitable, a
``concurrent.futures.Future`` or any object with a ``then`` method.
``resolve_loader`` classifies the source once and returns a single
``concurrent.futures.Future`` so the rest of the tree handles exactly one
completion shape.

A concurrent future is used rather than an asyncio one because it can be
settled without an event loop: sequence and callback loaders complete
synchronously in headless code, while ``await_future`` bridges into
asyncio when a loop is running.
"""

import asyncio
import inspect
import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import Future
from enum import Enum
from typing import Any, Optional

from ..exceptions import LoaderError


logger = logging.getLogger(__name__)


class LoaderKind(Enum):
    """Shapes a data loader can take."""
    SEQUENCE = "sequence"
    CALLBACK = "callback"
    AWAITABLE = "awaitable"
    FUTURE = "future"
    THENABLE = "thenable"


def classify_loader(source: Any) -> LoaderKind:
    """
    Determine the shape of a data loader.

    Raises:
        LoaderError: If the source isn't a recognized loader shape
    """
    if isinstance(source, (str, bytes, Mapping)):
        raise LoaderError(f"Invalid data loader: {type(source).__name__}")
    if isinstance(source, Future):
        return LoaderKind.FUTURE
    if inspect.isawaitable(source):
        return LoaderKind.AWAITABLE
    if callable(getattr(source, 'then', None)):
        return LoaderKind.THENABLE
    if callable(source):
        return LoaderKind.CALLBACK
    if isinstance(source, Iterable):
        return LoaderKind.SEQUENCE
    raise LoaderError(f"Invalid data loader: {type(source).__name__}")


def _as_exception(error: Any) -> BaseException:
    if isinstance(error, BaseException):
        return error
    return LoaderError(str(error))


def _copy_outcome(source: Any, future: Future) -> None:
    """Settle ``future`` from a finished concurrent or asyncio future."""
    if future.done():
        return
    if source.cancelled():
        future.cancel()
        return
    error = source.exception()
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(source.result())


def resolve_loader(source: Any, context: Any = None) -> Future:
    """
    Normalize any loader shape into one pending completion.

    Args:
        source: The data loader
        context: Node whose children are being loaded, or None for the root

    Returns:
        A concurrent future resolving to the raw records. Failures,
        including unrecognized shapes, fail the future rather than raise.
    """
    future: Future = Future()

    def resolve(records: Any = None) -> None:
        if not future.done():
            future.set_result(records)

    def reject(error: Any = None) -> None:
        if not future.done():
            future.set_exception(_as_exception(error))

    _chain(source, context, future, resolve, reject, allow_callback=True)
    return future


def _chain(source, context, future, resolve, reject, allow_callback):
    try:
        kind = classify_loader(source)
    except LoaderError as error:
        reject(error)
        return

    if kind is LoaderKind.CALLBACK and not allow_callback:
        reject(LoaderError("Data loader callback returned another callback"))
        return

    logger.debug("Resolving %s data loader", kind.value)

    try:
        if kind is LoaderKind.SEQUENCE:
            resolve(list(source))

        elif kind is LoaderKind.FUTURE:
            source.add_done_callback(lambda done: _copy_outcome(done, future))

        elif kind is LoaderKind.AWAITABLE:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                if inspect.iscoroutine(source):
                    source.close()
                reject(LoaderError("Awaitable data loader requires a running event loop"))
                return
            task = asyncio.ensure_future(source)
            task.add_done_callback(lambda done: _copy_outcome(done, future))

        elif kind is LoaderKind.THENABLE:
            source.then(resolve)
            hook = getattr(source, 'error', None)
            if not callable(hook):
                hook = getattr(source, 'catch', None)
            if callable(hook):
                hook(reject)

        else:
            returned = source(context, resolve, reject)
            if returned is not None and not future.done():
                _chain(returned, context, future, resolve, reject, allow_callback=False)

    except Exception as error:
        reject(error)


async def await_future(future: Future) -> Any:
    """Await a loader completion from asyncio code."""
    return await asyncio.wrap_future(future)


def failed_future(error: BaseException) -> Future:
    """A future that has already failed with ``error``."""
    future: Future = Future()
    future.set_exception(error)
    return future
