"""Per-session editing memory with asynchronous summary refresh."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Callable, Mapping, Protocol, Sequence

from ..prompts import build_summary_prompt

__all__ = [
    "LastInteraction",
    "SessionState",
    "SessionStore",
    "SessionMemoryManager",
    "SummaryModel",
]

LOGGER = logging.getLogger(__name__)


class SummaryModel(Protocol):
    """Anything that can turn a prompt into text (``AIClient`` satisfies this)."""

    async def complete(self, messages: Sequence[Mapping[str, Any]], *, model: str | None = None) -> str:
        ...


@dataclass(slots=True, frozen=True)
class LastInteraction:
    user_request: str
    assistant_response: str
    timestamp: float


@dataclass(slots=True, frozen=True)
class SessionState:
    """Immutable snapshot; writers replace the whole entry."""

    summary: str = ""
    last_interaction: LastInteraction | None = None
    last_updated: float = 0.0


class SessionStore:
    """Bounded in-memory session cache with LRU eviction and optional TTL."""

    def __init__(
        self,
        *,
        max_entries: int = 1_024,
        ttl_seconds: float | None = 86_400.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_entries = max(1, int(max_entries))
        self._ttl_seconds = None if ttl_seconds is None else max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: OrderedDict[str, SessionState] = OrderedDict()
        self._lock = RLock()

    def now(self) -> float:
        return self._clock()

    def get(self, session_id: str) -> SessionState | None:
        with self._lock:
            state = self._entries.get(session_id)
            if state is None:
                return None
            if self._is_expired(state):
                self._entries.pop(session_id, None)
                LOGGER.debug("Session %s expired", session_id)
                return None
            self._entries.move_to_end(session_id)
            return state

    def update(self, session_id: str, mutate: Callable[[SessionState], SessionState]) -> SessionState:
        """Replace the entry for ``session_id`` with ``mutate(current)`` under the lock."""

        with self._lock:
            current = self.get(session_id) or SessionState()
            updated = mutate(current)
            self._entries[session_id] = updated
            self._entries.move_to_end(session_id)
            self._purge_expired_locked()
            self._enforce_capacity_locked()
            return updated

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries

    def _is_expired(self, state: SessionState) -> bool:
        if not self._ttl_seconds:
            return False
        return self._clock() - state.last_updated >= self._ttl_seconds

    def _purge_expired_locked(self) -> None:
        if not self._ttl_seconds:
            return
        stale_keys = [key for key, state in self._entries.items() if self._is_expired(state)]
        for key in stale_keys:
            self._entries.pop(key, None)

    def _enforce_capacity_locked(self) -> None:
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug("Evicted session %s (capacity %s)", evicted, self._max_entries)


class SessionMemoryManager:
    """Reads and writes session memory; refreshes summaries in the background.

    The last interaction is stored synchronously when a turn completes so the
    next turn always sees it. The summary is rewritten afterwards by a model
    call; a turn that starts before that finishes sees the previous summary.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        summarizer: SummaryModel | None = None,
        summary_model: str | None = None,
    ) -> None:
        self._store = store
        self._summarizer = summarizer
        self._summary_model = summary_model
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def pending_refreshes(self) -> int:
        return len(self._pending)

    def get_session(self, session_id: str) -> SessionState | None:
        state = self._store.get(session_id)
        LOGGER.debug("Session %s: %s", session_id, "found" if state is not None else "not found")
        return state

    def store_last_interaction(self, session_id: str, user_request: str, assistant_response: str) -> SessionState:
        now = self._store.now()
        interaction = LastInteraction(
            user_request=user_request,
            assistant_response=assistant_response,
            timestamp=now,
        )
        return self._store.update(
            session_id,
            lambda current: replace(current, last_interaction=interaction, last_updated=now),
        )

    def update_summary(self, session_id: str, summary: str) -> SessionState:
        now = self._store.now()
        # Keeps whatever last interaction is current at write time.
        return self._store.update(
            session_id,
            lambda current: replace(current, summary=summary, last_updated=now),
        )

    async def generate_updated_summary(
        self,
        session_id: str,
        current_summary: str | None,
        user_request: str,
        assistant_response: str,
    ) -> None:
        """Ask the summary model for a rewritten summary and store it.

        Failures are logged and otherwise ignored; the previous summary stays.
        """

        if self._summarizer is None:
            return
        prompt = build_summary_prompt(current_summary, user_request, assistant_response)
        try:
            text = await self._summarizer.complete(
                [{"role": "user", "content": prompt}],
                model=self._summary_model,
            )
        except Exception:
            LOGGER.warning("Failed to update session summary for %s", session_id, exc_info=True)
            return
        summary = (text or "").strip()
        self.update_summary(session_id, summary)
        LOGGER.debug("Updated summary for %s: %s", session_id, summary[:100])

    def schedule_summary_refresh(
        self,
        session_id: str,
        current_summary: str | None,
        user_request: str,
        assistant_response: str,
    ) -> asyncio.Task[None] | None:
        """Start :meth:`generate_updated_summary` without waiting for it."""

        if self._summarizer is None:
            return None
        task = asyncio.get_running_loop().create_task(
            self.generate_updated_summary(session_id, current_summary, user_request, assistant_response),
            name=f"inkwell-summary-{session_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled summary refresh to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
