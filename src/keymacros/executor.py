"""Macro action execution: turn a fired trigger into channel sends."""

from __future__ import annotations

import logging
import random
from collections import deque
from typing import Callable, Deque, List, Optional, Protocol, Tuple

from .models import GlobalOptions, Message, SendMode, Trigger
from .scheduler import TickScheduler

SUB_MESSAGE_DELIMITER = ",,"

_LOGGER = logging.getLogger(__name__)


class MessageChannel(Protocol):
    """Host-side sink for macro output."""

    def send(self, text: str, add_to_history: bool) -> None:
        """Submit ``text`` as a chat line or command."""

    def type_text(self, text: str) -> None:
        """Place ``text`` in the host's input box without submitting it."""

    def show_overlay(self, text: str) -> None:
        """Post a short-lived on-screen notification."""


class RateLimiter:
    """Allow at most ``count`` firings within any window of ``ticks`` ticks."""

    def __init__(self, clock: Callable[[], int]) -> None:
        self._clock = clock
        self._stamps: Deque[int] = deque()

    def allow(self, count: int, ticks: int) -> bool:
        if count <= 0:
            return True
        now = self._clock()
        while self._stamps and now - self._stamps[0] >= ticks:
            self._stamps.popleft()
        if len(self._stamps) >= count:
            return False
        self._stamps.append(now)
        return True

    def reset(self) -> None:
        self._stamps.clear()


class MacroExecutor:
    """Emit a trigger's messages through a :class:`MessageChannel`.

    Messages run strictly in order. Delayed messages become continuations on
    the shared :class:`TickScheduler`; a firing already in progress is never
    cancelled by a later profile switch. Cycle and random triggers emit a
    single entry per firing, immediately.
    """

    def __init__(
        self,
        channel: MessageChannel,
        scheduler: TickScheduler,
        options: Callable[[], GlobalOptions],
        *,
        in_singleplayer: Callable[[], bool] = lambda: False,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._channel = channel
        self._scheduler = scheduler
        self._options = options
        self._in_singleplayer = in_singleplayer
        self._rng = rng or random.Random()
        self._logger = logger or _LOGGER
        self._limiter = RateLimiter(lambda: scheduler.now)

    def fire(self, trigger: Trigger) -> bool:
        """Run the trigger's message list. Returns ``False`` if rate limited."""

        options = self._options()
        if not self._check_ratelimit(trigger, options):
            return False

        show_overlay = options.show_overlay.resolve(trigger.show_overlay)
        if trigger.mode is not SendMode.SEND:
            message = self._pick(trigger)
            if message is not None:
                self._logger.debug("Firing %s (%s entry)", trigger.label(), trigger.mode.value)
                add_to_history = options.add_to_history.resolve(message.add_to_history)
                self._emit(message, add_to_history, show_overlay)
            return True

        self._logger.debug("Firing %s (%d messages)", trigger.label(), len(trigger.messages))
        for delay, message in self._plan(trigger):
            add_to_history = options.add_to_history.resolve(message.add_to_history)
            if delay == 0:
                self._emit(message, add_to_history, show_overlay)
            else:
                self._scheduler.schedule(
                    delay,
                    lambda m=message, h=add_to_history: self._emit(m, h, show_overlay),
                    label=f"message {message.text!r}",
                )
        return True

    def reset_ratelimit(self) -> None:
        self._limiter.reset()

    def _pick(self, trigger: Trigger) -> Optional[Message]:
        if not trigger.messages:
            return None
        if trigger.mode is SendMode.RANDOM:
            return self._rng.choice(trigger.messages)
        # Blank entries are kept as spacers: that firing sends nothing.
        index = trigger.cycle_index % len(trigger.messages)
        trigger.cycle_index = (index + 1) % len(trigger.messages)
        return trigger.messages[index]

    @staticmethod
    def _plan(trigger: Trigger) -> List[Tuple[int, Message]]:
        # Uniform spacing, when set, replaces per-message delays and does not
        # apply before the first message.
        plan = []
        cumulative = 0
        for index, message in enumerate(trigger.messages):
            if trigger.space_ticks:
                cumulative = index * trigger.space_ticks
            else:
                cumulative += max(0, message.delay_ticks)
            plan.append((cumulative, message))
        return plan

    def _check_ratelimit(self, trigger: Trigger, options: GlobalOptions) -> bool:
        if self._in_singleplayer() and not options.ratelimit_singleplayer:
            return True
        if self._limiter.allow(options.ratelimit_count, options.ratelimit_ticks):
            return True
        self._logger.warning(
            "Blocked %s: more than %d macros in %d ticks",
            trigger.label(),
            options.ratelimit_count,
            options.ratelimit_ticks,
        )
        self._call(
            self._channel.show_overlay,
            f"Macro {trigger.label()} blocked by rate limit",
        )
        return False

    def _emit(self, message: Message, add_to_history: bool, show_overlay: bool) -> None:
        if not message.literal:
            if message.text.strip():
                self._call(self._channel.type_text, message.text)
            return
        for part in message.text.split(SUB_MESSAGE_DELIMITER):
            if not part.strip():
                continue
            if self._call(self._channel.send, part, add_to_history) and show_overlay:
                self._call(self._channel.show_overlay, part)

    def _call(self, func: Callable[..., None], *args: object) -> bool:
        try:
            func(*args)
        except Exception:  # pragma: no cover - defensive logging
            self._logger.exception("Message channel failed for %r", args[0])
            return False
        return True
