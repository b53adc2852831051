"""
Per-subject strike tracking for automod rules.

Each rule owns a :class:`RuleStateStore`; the store hands out one
:class:`RuleState` per subject key, created the first time the subject
sends something the rule cares about. Strikes expire lazily: every
evaluation sweeps marks older than the rule's window before counting, so
there are no timers to cancel and a cleared state can never be corrupted
by a late expiry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, List, Optional, TypeVar

Clock = Callable[[], float]
K = TypeVar("K", bound=Hashable)


@dataclass(slots=True)
class RuleState:
    """
    Mutable tracking record for one subject under one rule.

    Attributes:
        violation_marks: Live strike tokens mapped to the time they were recorded,
            oldest first.
        last_seen_content: Last normalized value seen from the subject, used by
            the repeat style rules.
        recent_messages: Messages of the current run of identical content, purged
            together when a duplicate rule fires.
        pressure: Continuous accumulator used by the pressure rule.
        last_seen_at: Time of the last message evaluated for the subject.
    """

    violation_marks: Dict[Hashable, float] = field(default_factory=dict)
    last_seen_content: Optional[object] = None
    recent_messages: List[Any] = field(default_factory=list)
    pressure: float = 0.0
    last_seen_at: Optional[float] = None

    @property
    def strike_count(self) -> int:
        return len(self.violation_marks)

    def add_mark(self, token: Hashable, now: float) -> None:
        """Record a strike. Re-adding a live token keeps its original timestamp."""
        self.violation_marks.setdefault(token, now)

    def expire_marks(self, now: float, window_seconds: float) -> int:
        """
        Drop every mark recorded at or before ``now - window_seconds``.

        A mark recorded at ``T`` is live while ``now < T + window_seconds``.
        Returns the number of marks removed.
        """
        expired = [token for token, recorded_at in self.violation_marks.items()
                   if now >= recorded_at + window_seconds]
        for token in expired:
            self.violation_marks.pop(token, None)
        return len(expired)

    def clear_marks(self) -> None:
        """Reset the strike counter to zero. Safe to call on an already empty state."""
        self.violation_marks.clear()


class RuleStateStore(Generic[K]):
    """Lazily populated map of subject key to :class:`RuleState`."""

    def __init__(self) -> None:
        self._states: Dict[K, RuleState] = {}

    def get(self, key: K) -> RuleState:
        state = self._states.get(key)
        if state is None:
            state = RuleState()
            self._states[key] = state
        return state

    def peek(self, key: K) -> Optional[RuleState]:
        """Return the state for ``key`` without creating one."""
        return self._states.get(key)

    def discard(self, key: K) -> None:
        self._states.pop(key, None)

    def prune(self, now: float, window_seconds: float) -> int:
        """
        Forget subjects with no live marks that have been idle for a whole window.

        Keeps memory bounded on busy guilds; ``last_seen_content`` of a pruned
        subject is lost, which only matters for a repeat that arrives after a
        full idle window.
        """
        stale = []
        for key, state in self._states.items():
            state.expire_marks(now, window_seconds)
            idle = state.last_seen_at is None or now - state.last_seen_at >= window_seconds
            if not state.violation_marks and idle:
                stale.append(key)
        for key in stale:
            del self._states[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[K]:
        return iter(self._states)
