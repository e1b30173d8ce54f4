"""Autosave coordination for a single assessment under interactive editing.

The coordinator owns the working copy, applies edits through the entity's
rules and persists with a single debounced call. At most one ``persist`` call
is in flight at any time; edits arriving while it runs are coalesced into one
follow-up save. Each save remembers the reset generation it was issued in, and
a result from an earlier generation is dropped rather than applied.

All methods must be called from the thread running the event loop.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from assurance_cli.exceptions import PersistenceError
from assurance_cli.models.config import DEFAULT_AUTOSAVE_DELAY
from assurance_cli.session.rules import AssessmentRules

logger = logging.getLogger("assurance_cli.session")

T = TypeVar("T")


class SessionStatus(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


@dataclass(frozen=True)
class SessionState:
    status: SessionStatus
    last_error: Optional[PersistenceError] = None
    has_unsaved_changes: bool = False
    version: int = 0


class EditSessionCoordinator(Generic[T]):
    def __init__(
        self,
        rules: AssessmentRules[T],
        persist: Callable[[T], Awaitable[Optional[T]]],
        load_initial: Optional[Callable[[], Optional[T]]] = None,
        *,
        debounce_delay: float = DEFAULT_AUTOSAVE_DELAY,
        on_change: Optional[Callable[[SessionState], None]] = None,
    ) -> None:
        self._rules = rules
        self._persist = persist
        self._debounce_delay = debounce_delay
        self._on_change = on_change

        initial = load_initial() if load_initial is not None else None
        if initial is None:
            self._working = rules.defaults()
        else:
            self._working = rules.adopt(copy.deepcopy(initial))
        self._persisted = copy.deepcopy(self._working)

        self._status = SessionStatus.CLEAN
        self._last_error: Optional[PersistenceError] = None
        self._version = 0
        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._save_deferred = False

    def get_working_copy(self) -> T:
        return copy.deepcopy(self._working)

    def get_last_persisted(self) -> T:
        return copy.deepcopy(self._persisted)

    def get_session_status(self) -> SessionState:
        return SessionState(
            status=self._status,
            last_error=self._last_error,
            has_unsaved_changes=self._status is not SessionStatus.CLEAN,
            version=self._version,
        )

    def update_field(self, field_name: str, value: Any) -> None:
        self._rules.apply_edit(self._working, field_name, value)
        self._mark_dirty()

    def set_level_achievement(self, level: Any, achieved: Any) -> None:
        self._rules.set_level_achievement(self._working, level, achieved)
        self._mark_dirty()

    def set_manual_override(self, field_name: str, manual: bool) -> None:
        self._rules.set_manual_override(self._working, field_name, manual)
        self._mark_dirty()

    def reset_to_last_persisted(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._save_deferred = False
        self._working = copy.deepcopy(self._persisted)
        self._status = SessionStatus.CLEAN
        self._last_error = None
        self._notify()

    async def submit(self) -> SessionState:
        """Save the working copy now instead of waiting for the quiet period.

        Also serves as the explicit retry after a failed save.
        """
        while self._in_flight is not None:
            await self._in_flight
        if self._status is SessionStatus.DIRTY:
            self._cancel_timer()
            task = self._start_save()
            if task is not None:
                await task
        return self.get_session_status()

    def close(self) -> None:
        self._cancel_timer()

    def _mark_dirty(self) -> None:
        self._version += 1
        if self._status is not SessionStatus.SAVING:
            self._status = SessionStatus.DIRTY
            self._arm_timer()
        self._notify()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_delay, self._on_quiet_period)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_quiet_period(self) -> None:
        self._timer = None
        self._start_save()

    def _start_save(self) -> Optional[asyncio.Task]:
        if self._in_flight is not None:
            # A save from before the last reset is still running.
            self._save_deferred = True
            return None
        self._save_deferred = False
        snapshot = copy.deepcopy(self._working)
        logger.debug(
            "Saving %s (version %d).", self._rules.describe(snapshot), self._version,
        )
        self._status = SessionStatus.SAVING
        task = asyncio.get_running_loop().create_task(
            self._run_save(snapshot, self._version, self._generation)
        )
        self._in_flight = task
        self._notify()
        return task

    async def _run_save(self, snapshot: T, version: int, generation: int) -> None:
        try:
            result = await self._persist(snapshot)
        except asyncio.CancelledError:
            self._in_flight = None
            raise
        except Exception as exc:
            self._in_flight = None
            self._save_failed(exc, version, generation)
            return
        self._in_flight = None
        self._save_succeeded(snapshot if result is None else result, version, generation)

    def _save_succeeded(self, persisted: T, version: int, generation: int) -> None:
        if generation != self._generation:
            logger.debug(
                "Discarding stale save result for %s (generation %d, current %d).",
                self._rules.describe(persisted), generation, self._generation,
            )
            self._resume_deferred_save()
            return
        # The store may hand back derived fields it computed itself.
        persisted = self._rules.adopt(copy.deepcopy(persisted))
        self._persisted = persisted
        self._last_error = None
        if self._version == version:
            self._working = copy.deepcopy(persisted)
            self._status = SessionStatus.CLEAN
        else:
            self._status = SessionStatus.DIRTY
            self._arm_timer()
        self._notify()

    def _save_failed(self, exc: Exception, version: int, generation: int) -> None:
        if generation != self._generation:
            logger.debug(
                "Discarding stale save failure (generation %d, current %d): %s",
                generation, self._generation, exc,
            )
            self._resume_deferred_save()
            return
        logger.warning("Saving %s failed: %s", self._rules.describe(self._working), exc)
        if isinstance(exc, PersistenceError):
            error = exc
        else:
            error = PersistenceError(f"Save failed: {exc}")
            error.__cause__ = exc
        self._last_error = error
        self._status = SessionStatus.DIRTY
        if self._version != version:
            self._arm_timer()
        self._notify()

    def _resume_deferred_save(self) -> None:
        if self._save_deferred and self._status is SessionStatus.DIRTY and self._timer is None:
            self._start_save()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.get_session_status())
