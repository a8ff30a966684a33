"""
Mutation-driven refresh of the application list.

MutationVersions keeps one counter per mutation kind (create, delete,
update). Its key, the tuple of the three counters, is the cache key of the
application list: RefreshController fetches the list again whenever the key
changes and only then.

Bumps that happen during the same event loop tick are coalesced into one
fetch. Each fetch is tagged with the request generation it belongs to; a
result arriving for an older generation is discarded, so a slow fetch that
finishes late never replaces a newer list (last fetch wins).
"""

import asyncio
import threading
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, NamedTuple, Optional

import structlog

from soulcrush.models.errors import InternalError, TrackerError
from soulcrush.models.status import Status
from soulcrush.services.application_query import ApplicationResponse

logger = structlog.get_logger()

FetchApplications = Callable[[], Awaitable[list[ApplicationResponse]]]


class MutationKind(str, Enum):
    CREATE = "create"
    DELETE = "delete"
    UPDATE = "update"


class VersionKey(NamedTuple):
    """Cache key of the application list."""

    create: int
    delete: int
    update: int


class MutationVersions:
    """
    Per-kind monotonic counters of successfully completed mutations.

    Increments are applied under a lock and the key is snapshotted under the
    same lock, so an observed key never goes backward.
    """

    def __init__(self):
        self._counts = {kind: 0 for kind in MutationKind}
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[VersionKey], None]] = []

    def version(self, kind: MutationKind) -> int:
        with self._lock:
            return self._counts[kind]

    @property
    def key(self) -> VersionKey:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> VersionKey:
        return VersionKey(
            create=self._counts[MutationKind.CREATE],
            delete=self._counts[MutationKind.DELETE],
            update=self._counts[MutationKind.UPDATE],
        )

    def bump(self, kind: MutationKind) -> VersionKey:
        """
        Record one completed mutation and notify subscribers.

        Call only after the mutation has committed.

        Returns:
            The key after the increment.
        """
        with self._lock:
            self._counts[kind] += 1
            key = self._snapshot()
            subscribers = list(self._subscribers)

        logger.debug("Mutation version bumped", kind=kind.value, key=list(key))
        for callback in subscribers:
            callback(key)
        return key

    def subscribe(self, callback: Callable[[VersionKey], None]) -> Callable[[], None]:
        """
        Call ``callback`` with the new key after every bump.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe


class ListStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ListState:
    """
    State of the application list: loading, ready or error.

    An empty READY list means there are no applications; a failed fetch is
    always ERROR, never an empty list.
    """

    status: ListStatus
    applications: tuple[ApplicationResponse, ...] = ()
    error: Optional[TrackerError] = None
    key: Optional[VersionKey] = None

    @classmethod
    def loading(cls) -> "ListState":
        return cls(status=ListStatus.LOADING)

    @classmethod
    def ready(cls, applications, key: VersionKey) -> "ListState":
        return cls(status=ListStatus.READY, applications=tuple(applications), key=key)

    @classmethod
    def failed(cls, error: TrackerError, key: VersionKey) -> "ListState":
        return cls(status=ListStatus.ERROR, error=error, key=key)


class RefreshController:
    """
    Keeps the application list in step with MutationVersions.

    The controller is constructed with the fetch coroutine function and the
    versions object it watches, and must be started inside a running event
    loop. It never retries a failed fetch on its own; call ``reload`` to try
    again.

    Usage:
        async with RefreshController(service.list_applications, service.versions) as refresh:
            state = await refresh.settled()
    """

    def __init__(self, fetch: FetchApplications, versions: MutationVersions):
        self._fetch = fetch
        self.versions = versions
        self.logger = logger.bind(component="refresh_controller")

        self._state = ListState.loading()
        self._overlay: dict[uuid.UUID, Status] = {}
        self._listeners: list[Callable[[ListState], None]] = []

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._scheduled: Optional[asyncio.Handle] = None
        self._schedule_lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0
        self._requested_key: Optional[VersionKey] = None

        # Every key a fetch was started for, in order
        self.fetched_keys: list[VersionKey] = []

    async def __aenter__(self) -> "RefreshController":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def start(self) -> None:
        """Subscribe to version changes and schedule the initial fetch."""
        if self._loop is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self.versions.subscribe(self._on_versions_changed)
        self._schedule()

    async def close(self) -> None:
        """Stop watching versions and wait for fetches already in flight."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._schedule_lock:
            if self._scheduled is not None:
                self._scheduled.cancel()
                self._scheduled = None
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def state(self) -> ListState:
        """Current list state with optimistic statuses applied."""
        if self._state.status is not ListStatus.READY or not self._overlay:
            return self._state
        applications = tuple(
            app.with_status(self._overlay[app.id]) if app.id in self._overlay else app
            for app in self._state.applications
        )
        return replace(self._state, applications=applications)

    @property
    def is_refreshing(self) -> bool:
        return self._scheduled is not None or bool(self._tasks)

    def on_change(self, listener: Callable[[ListState], None]) -> Callable[[], None]:
        """
        Call ``listener`` with the new state whenever it changes.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def reload(self) -> None:
        """Fetch again for the current key, superseding any fetch in flight."""
        self._requested_key = None
        self._schedule()

    async def settled(self) -> ListState:
        """Wait until no fetch is scheduled or running and return the state."""
        while self.is_refreshing:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0)
        return self.state

    def apply_optimistic_status(self, application_id: uuid.UUID, status: Status) -> None:
        """Show ``status`` for a row until the next fetch lands."""
        self._overlay[application_id] = status
        self._notify()

    def revert_optimistic_status(self, application_id: uuid.UUID, status: Status) -> None:
        """
        Drop the optimistic ``status`` for a row, e.g. because its write failed.

        A newer optimistic status for the same row is left in place.
        """
        if self._overlay.get(application_id) is status:
            del self._overlay[application_id]
            self._notify()

    def _on_versions_changed(self, key: VersionKey) -> None:
        self._schedule()

    def _schedule(self) -> None:
        if self._loop is None:
            raise RuntimeError("RefreshController has not been started")
        # Bumps may arrive from worker threads
        with self._schedule_lock:
            if self._scheduled is not None:
                return
            # Deferred to the end of the tick so concurrent bumps share one fetch
            self._scheduled = self._loop.call_soon_threadsafe(self._start_fetch)

    def _start_fetch(self) -> None:
        with self._schedule_lock:
            self._scheduled = None
        key = self.versions.key
        if key == self._requested_key:
            return

        self._generation += 1
        self._requested_key = key
        self.fetched_keys.append(key)
        self.logger.debug("Fetching applications", key=list(key), generation=self._generation)

        task = self._loop.create_task(self._run_fetch(self._generation, key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_fetch(self, generation: int, key: VersionKey) -> None:
        try:
            applications = await self._fetch()
        except TrackerError as e:
            outcome = ListState.failed(e, key)
        except Exception as e:
            self.logger.exception("Unexpected error fetching applications", key=list(key))
            outcome = ListState.failed(
                InternalError(f"Internal error: {e}", retryable=True, original_error=e),
                key,
            )
        else:
            outcome = ListState.ready(applications, key)

        if generation != self._generation:
            self.logger.debug(
                "Discarding superseded fetch",
                key=list(key),
                latest_key=list(self._requested_key or ()),
                status=outcome.status.value,
            )
            return

        if outcome.status is ListStatus.ERROR:
            self.logger.warning("Application list fetch failed", key=list(key), error=outcome.error.message)
        else:
            self.logger.debug("Application list refreshed", key=list(key), count=len(outcome.applications))

        self._overlay.clear()
        self._state = outcome
        self._notify()

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            listener(state)
