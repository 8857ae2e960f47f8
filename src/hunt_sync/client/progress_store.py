"""Optimistic progress store with debounced snapshot persistence."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

import pydantic

from hunt_sync.client.api_client import HuntApiClient
from hunt_sync.client.scheduling import ScheduledTask
from hunt_sync.domain.active import ActiveData
from hunt_sync.domain.progress import (
    ProgressSnapshot,
    TeamScope,
    completed_count,
    parse_snapshot,
    percent_complete,
    with_hints_hidden,
)
from hunt_sync.errors import HuntError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

Updater = Callable[[ProgressSnapshot], ProgressSnapshot]
Listener = Callable[[ProgressSnapshot], None]
ErrorHandler = Callable[[HuntError], None]


class ProgressStore:
    """Session-local view of a team's progress.

    All mutation goes through ``seed`` and ``update``. Updates apply locally
    right away and are persisted as one full snapshot after a quiet period;
    a failed save rolls local state back to the last snapshot the server
    confirmed. Other devices' changes arrive only through ``revalidate``,
    which replaces local state wholesale (last write wins).
    """

    def __init__(  # noqa: PLR0913
        self,
        api: HuntApiClient,
        scope: TeamScope,
        session_id: str | None = None,
        debounce_seconds: float = 1.0,
        stop_ids: list[str] | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.api = api
        self.scope = scope
        self.session_id = session_id
        self.debounce_seconds = debounce_seconds
        self.stop_ids: list[str] = list(stop_ids or [])
        self.on_error = on_error
        self._snapshot: ProgressSnapshot = {}
        self._known_good: ProgressSnapshot = {}
        self._listeners: list[Listener] = []
        self._pending: ScheduledTask | None = None
        self._poller: asyncio.Task[None] | None = None
        self._persist_lock = asyncio.Lock()
        self._generation = 0
        self._closed = False

    @property
    def snapshot(self) -> ProgressSnapshot:
        """Return a copy of the current local snapshot."""
        return dict(self._snapshot)

    @property
    def has_pending_write(self) -> bool:
        return self._pending is not None and self._pending.pending

    @property
    def completed_count(self) -> int:
        return completed_count(self._snapshot, self.stop_ids)

    @property
    def percent_complete(self) -> int:
        return percent_complete(self._snapshot, self.stop_ids)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for every new snapshot; return an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def seed(self, snapshot: ProgressSnapshot | dict[str, object]) -> None:
        """Replace local state without persisting it."""
        validated = self._validate(snapshot)
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._generation += 1
        self._known_good = validated
        self._apply(validated)

    def seed_from_active(self, active: ActiveData) -> None:
        """Seed from the aggregator, with every stop's hints hidden again."""
        self.stop_ids = active.stop_ids()
        self.seed(with_hints_hidden(active.progress))
        logger.info(
            "Seeded progress for team %s: %s stops",
            self.scope.team_id,
            len(active.progress),
        )

    def update(self, change: Updater | ProgressSnapshot) -> ProgressSnapshot:
        """Apply a change optimistically and schedule a debounced save.

        ``change`` is either the next snapshot or a function of the current
        one. Invalid results raise ``ValidationError`` and leave state alone.
        """
        if self._closed:
            raise ValidationError("Progress store is closed")
        proposed = change(self.snapshot) if callable(change) else change
        validated = self._validate(proposed)
        self._generation += 1
        self._apply(validated)
        if self._pending is not None:
            self._pending.cancel()
        self._pending = ScheduledTask.schedule(self.debounce_seconds, self._persist)
        return validated

    async def flush(self) -> None:
        """Persist any pending change now and wait for the save to finish."""
        if self._pending is not None:
            await self._pending.run_now()

    async def revalidate(self) -> ProgressSnapshot:
        """Replace local state with the server snapshot.

        Skipped while a local change is still waiting to be saved, so this
        device never discards its own unsent edit.
        """
        if self._closed or self.has_pending_write:
            return self.snapshot
        generation = self._generation
        try:
            fresh = await self.api.get_progress(
                self.scope.org_id, self.scope.team_id, self.scope.hunt_id
            )
        except HuntError as exc:
            logger.warning("Progress revalidation failed: %s", exc)
            return self.snapshot
        if generation != self._generation or self._closed:
            logger.debug("Discarding stale revalidation for %s", self.scope.team_id)
            return self.snapshot
        self._known_good = fresh
        self._apply(fresh)
        return self.snapshot

    def start_polling(self, interval_seconds: float) -> None:
        """Revalidate every ``interval_seconds`` until ``close``."""
        if self._poller is not None and not self._poller.done():
            return
        self._poller = asyncio.get_running_loop().create_task(
            self._poll(interval_seconds)
        )

    async def close(self) -> None:
        """Cancel the pending save and the poller; no write happens afterwards."""
        self._closed = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._poller is not None:
            self._poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poller
            self._poller = None
        self._listeners.clear()

    async def _poll(self, interval_seconds: float) -> None:
        while not self._closed:
            await asyncio.sleep(interval_seconds)
            await self.revalidate()

    async def _persist(self) -> None:
        async with self._persist_lock:
            if self._closed:
                return
            generation = self._generation
            snapshot = self.snapshot
            try:
                await self.api.put_progress(
                    self.scope.org_id,
                    self.scope.team_id,
                    self.scope.hunt_id,
                    snapshot,
                    self.session_id,
                )
            except HuntError as exc:
                self._handle_persist_failure(exc, generation)
                return
            self._known_good = snapshot
            logger.info(
                "Persisted progress for team %s: %s stops",
                self.scope.team_id,
                len(snapshot),
            )
        await self.revalidate()

    def _handle_persist_failure(self, exc: HuntError, generation: int) -> None:
        error = (
            exc
            if isinstance(exc, PersistenceError)
            else PersistenceError(f"Failed to save progress: {exc.message}")
        )
        if generation == self._generation:
            self._apply(self._known_good)
            logger.warning("Progress save failed, rolled back: %s", exc)
        else:
            logger.warning("Progress save failed, newer edit pending: %s", exc)
        if self.on_error is not None:
            self.on_error(error)

    def _validate(
        self, snapshot: ProgressSnapshot | dict[str, object]
    ) -> ProgressSnapshot:
        try:
            return parse_snapshot(snapshot)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid progress: {exc}") from exc

    def _apply(self, snapshot: ProgressSnapshot) -> None:
        self._snapshot = dict(snapshot)
        for listener in list(self._listeners):
            try:
                listener(self.snapshot)
            except Exception:
                logger.exception("Progress listener failed")
