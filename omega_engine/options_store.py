"""
Options store: the persisted options document.

The document is always written whole. The storage primitive has no multi-key
transaction, so `OptionsStore.replace` is a two-step protocol:

1. ``clear()`` removes every key of the previous document.
2. ``set(new_document)`` writes every key of the new one.

After both steps the persisted state equals the new document exactly, and no
key of an older document survives.

Risk window
-----------
If step 1 succeeds and step 2 fails (quota, rate limit, I/O), the area is left
empty. That state is not masked: the error propagates unchanged, and the next
`read` raises NoOptionsError so the caller can re-initialize deliberately.

Concurrency
-----------
There is no locking. Callers are expected to await one `replace` before issuing
the next. Watch notifications are delivered asynchronously and may arrive after
`replace` has returned, so a writer treats its own write as already applied.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Mapping

from .errors import NoOptionsError
from .profiles import SCHEMA_VERSION_KEY, default_options, validate_document
from .storage.api import StorageArea, StorageChange

logger = logging.getLogger(__name__)

WatchCallback = Callable[[frozenset[str]], object]


class OptionsStore:
    """
    Read, atomically replace and watch the options document.

    Parameters
    ----------
    area:
        Storage primitive holding the document. Several stores may share one
        area; each sees the others' writes through `watch`.
    """

    def __init__(self, area: StorageArea) -> None:
        self._area = area
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def area(self) -> StorageArea:
        return self._area

    async def read(self) -> dict[str, Any]:
        """
        Return the persisted document.

        Returns
        -------
        dict[str, Any]
            A private copy of every persisted key.

        Raises
        ------
        NoOptionsError
            If nothing (or nothing versioned) is persisted.
        StorageUnavailableError
            If the primitive cannot be reached.
        """
        document = await self._area.get(None)
        if not document:
            raise NoOptionsError("No options document is persisted.")
        if SCHEMA_VERSION_KEY not in document:
            raise NoOptionsError(f"Persisted options have no {SCHEMA_VERSION_KEY}.")
        return document

    async def replace(self, new_document: Mapping[str, Any]) -> None:
        """
        Replace the persisted document with `new_document`.

        The document is validated before anything is cleared, so an invalid
        document leaves storage untouched.

        Raises
        ------
        InvalidOptionsError
            If `new_document` violates the document invariants.
        QuotaExceededError
            If the new document does not fit the storage quota.
        RateLimitExceededError
            If the primitive throttles either write step.
        StorageUnavailableError
            If the primitive fails.
        """
        validate_document(new_document)
        document = dict(new_document)
        logger.debug("Replacing options document (%d keys)", len(document))

        await self._area.clear()
        try:
            await self._area.set(document)
        except Exception:
            logger.error("Options were cleared but the new document was not written; storage is empty")
            raise
        logger.debug("Options document replaced")

    def watch(self, callback: WatchCallback) -> Callable[[], None]:
        """
        Register `callback` for change notifications.

        Parameters
        ----------
        callback:
            Called with the frozenset of changed keys for every change event,
            including changes written through other stores sharing the area.
            A coroutine function is scheduled as a task.

        Returns
        -------
        Callable[[], None]
            Unregisters the callback when called. Calling it twice is harmless.
        """

        def _listener(changes: Mapping[str, StorageChange]) -> None:
            result = callback(frozenset(changes))
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_watch_task_done)

        self._area.add_listener(_listener)

        def _unwatch() -> None:
            self._area.remove_listener(_listener)

        return _unwatch

    def _on_watch_task_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Options watcher failed", exc_info=exc)

    async def load_or_initialize(self, defaults: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """
        Return the persisted document, writing a default one if none exists.

        Parameters
        ----------
        defaults:
            Document to write when storage is empty. Defaults to
            `omega_engine.profiles.default_options()`.
        """
        try:
            return await self.read()
        except NoOptionsError:
            logger.info("No options persisted; writing default document")
        document = dict(defaults) if defaults is not None else default_options()
        await self.replace(document)
        return document
