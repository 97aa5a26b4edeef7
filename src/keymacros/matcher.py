"""Trigger registry and chord matching over raw press/release events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from .models import Profile, Trigger
from .scheduler import ScheduledTask, TickScheduler

_LOGGER = logging.getLogger(__name__)


class MatchKind(Enum):
    NO_MATCH = "no_match"
    MATCH_SUPPRESS = "match_suppress"
    MATCH_PASS = "match_pass"


@dataclass(frozen=True)
class MatchResult:
    """Outcome of feeding one event to the matcher.

    ``cancel_next_char`` asks the caller to drop the next character-input
    event the host would synthesize from the same key press.
    """

    kind: MatchKind = MatchKind.NO_MATCH
    trigger: Optional[Trigger] = None
    fired: bool = False

    @property
    def matched(self) -> bool:
        return self.kind is not MatchKind.NO_MATCH

    @property
    def suppress(self) -> bool:
        return self.kind is MatchKind.MATCH_SUPPRESS

    @property
    def cancel_next_char(self) -> bool:
        return self.suppress


NO_MATCH = MatchResult()


class TriggerRegistry:
    """Read-only view over one profile's triggers."""

    def __init__(self, profile: Profile) -> None:
        self._profile = profile

    @property
    def profile(self) -> Profile:
        return self._profile

    def triggers(self) -> List[Trigger]:
        return list(self._profile.triggers)

    def best_match(self, held: Set[str], pressed: str) -> Optional[Trigger]:
        """Longest fully held key-set containing ``pressed``; first defined wins ties."""

        best: Optional[Trigger] = None
        for trigger in self._profile.triggers:
            keys = trigger.keys
            if not keys or pressed not in keys or not keys <= held:
                continue
            if best is None or len(keys) > len(best.keys):
                best = trigger
        return best

    def duplicates(self) -> List[List[Trigger]]:
        """Groups of two or more triggers sharing an identical key-set."""

        groups: Dict[FrozenSet[str], List[Trigger]] = {}
        for trigger in self._profile.triggers:
            if trigger.keys:
                groups.setdefault(trigger.keys, []).append(trigger)
        return [group for group in groups.values() if len(group) > 1]

    def is_duplicate(self, trigger: Trigger) -> bool:
        return any(
            other is not trigger and other.keys == trigger.keys
            for other in self._profile.triggers
            if trigger.keys
        )

    def duplicate_flags(self) -> List[bool]:
        """Per-trigger duplicate flag, in profile order."""

        return [self.is_duplicate(trigger) for trigger in self._profile.triggers]


class ChordMatcher:
    """Recognize single-key and chord triggers of the active profile.

    The matcher owns the set of currently held keys. It asks ``profile`` for
    the active profile on every press so a context switch takes effect
    immediately; the owner must call :meth:`reset` when that happens.
    """

    def __init__(
        self,
        profile: Callable[[], Profile],
        fire: Callable[[Trigger], object],
        scheduler: TickScheduler,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._profile = profile
        self._fire = fire
        self._scheduler = scheduler
        self._logger = logger or _LOGGER
        self._held: Set[str] = set()
        self._spent: List[Trigger] = []
        self._repeats: List[Tuple[Trigger, ScheduledTask]] = []
        self.enabled = True

    @property
    def held_keys(self) -> FrozenSet[str]:
        return frozenset(self._held)

    def registry(self) -> TriggerRegistry:
        return TriggerRegistry(self._profile())

    def on_key_event(self, key: str, pressed: bool) -> MatchResult:
        if pressed:
            return self._on_press(key)
        self._on_release(key)
        return NO_MATCH

    def reset(self) -> None:
        """Forget held keys, spent triggers and running repeats."""

        if self._held or self._repeats:
            self._logger.debug("Resetting matcher (held=%s)", sorted(self._held))
        self._held.clear()
        self._spent.clear()
        for _, task in self._repeats:
            task.cancel()
        self._repeats.clear()

    def _on_press(self, key: str) -> MatchResult:
        self._held.add(key)
        if not self.enabled:
            return NO_MATCH

        trigger = self.registry().best_match(self._held, key)
        if trigger is None:
            return NO_MATCH
        kind = MatchKind.MATCH_SUPPRESS if trigger.suppress else MatchKind.MATCH_PASS

        if self._is_spent(trigger) or self._is_repeating(trigger):
            return MatchResult(kind, trigger, fired=False)

        self._logger.info("Trigger matched: %s", trigger.label())
        self._fire(trigger)
        if trigger.repeat:
            self._start_repeat(trigger)
        else:
            self._spent.append(trigger)
        return MatchResult(kind, trigger, fired=True)

    def _on_release(self, key: str) -> None:
        self._held.discard(key)
        # A spent trigger re-arms once none of its keys is held.
        self._spent = [t for t in self._spent if t.keys & self._held]
        running = []
        for trigger, task in self._repeats:
            if key in trigger.keys:
                task.cancel()
            else:
                running.append((trigger, task))
        self._repeats = running

    def _is_spent(self, trigger: Trigger) -> bool:
        return any(t is trigger for t in self._spent)

    def _is_repeating(self, trigger: Trigger) -> bool:
        return any(t is trigger for t, _ in self._repeats)

    def _start_repeat(self, trigger: Trigger) -> None:
        interval = max(1, trigger.repeat_interval_ticks)

        def _again() -> None:
            if trigger.keys <= self._held and self.enabled:
                self._fire(trigger)

        task = self._scheduler.schedule(
            interval, _again, interval=interval, label=f"repeat {trigger.label()}"
        )
        self._repeats.append((trigger, task))
