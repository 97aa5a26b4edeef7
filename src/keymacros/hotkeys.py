"""Global keyboard and mouse input for Key Macros."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

from pynput import keyboard, mouse

from .keys import from_pynput_button, from_pynput_key, from_win32_vk, normalize_key_id
from .matcher import MatchResult, TriggerRegistry
from .models import Profile

KeyCallback = Callable[[str, bool], None]
CharCallback = Callable[[str], None]
SuppressPredicate = Callable[[str, bool], bool]

# Low-level keyboard hook messages and flags (winuser.h).
_WM_KEYDOWN = 0x0100
_WM_SYSKEYDOWN = 0x0104
_LLKHF_INJECTED = 0x10


class InputGate:
    """Apply the matcher's suppression decision at both input call sites.

    A host delivers a key press and then, separately, the character that
    press produced. When a press matched a suppressing trigger, the gate
    tells the host to drop the key and the one character that follows it.
    """

    def __init__(self, handler: Callable[[str, bool], MatchResult]) -> None:
        self._handler = handler
        self._cancel_next_char = False

    def key_event(self, key: str, pressed: bool) -> bool:
        """Feed a key event; returns ``True`` when the host should process it."""

        result = self._handler(key, pressed)
        if pressed:
            self._cancel_next_char = result.cancel_next_char
        return not result.suppress

    def char_typed(self) -> bool:
        """Returns ``True`` when the host should deliver the character."""

        if self._cancel_next_char:
            self._cancel_next_char = False
            return False
        return True


class SuppressionFilter:
    """Decide, on the listener thread, whether the OS should drop a key press.

    The matcher runs on the main thread, too late for the operating system to
    withhold the event, so this filter keeps its own held-key set and answers
    synchronously: a press is dropped when it completes the best-matching
    chord of a suppressing trigger in the active profile.
    """

    def __init__(
        self,
        profile: Callable[[], Profile],
        *,
        enabled: Callable[[], bool] = lambda: True,
    ) -> None:
        self._profile = profile
        self._enabled = enabled
        self._lock = threading.Lock()
        self._held: Set[str] = set()

    def __call__(self, key: str, pressed: bool) -> bool:
        with self._lock:
            if not pressed:
                self._held.discard(key)
                return False
            self._held.add(key)
            held = set(self._held)
        if not self._enabled():
            return False
        trigger = TriggerRegistry(self._profile()).best_match(held, key)
        return trigger is not None and trigger.suppress


class InputListener:
    """Forward global press/release events as key identifiers.

    Events are delivered on pynput's listener threads; callers that need them
    elsewhere must hand them over themselves. Injected events (our own
    emulated keystrokes) are ignored.

    With a ``suppress`` predicate, key presses it approves are withheld from
    other applications through pynput's platform hooks: ``win32_event_filter``
    on Windows and ``darwin_intercept`` on macOS. Other platforms cannot
    withhold single events, and mouse buttons are never withheld.
    """

    def __init__(
        self,
        on_key: KeyCallback,
        *,
        on_char: Optional[CharCallback] = None,
        suppress: Optional[SuppressPredicate] = None,
        keyboard_factory: Optional[Callable[..., keyboard.Listener]] = None,
        mouse_factory: Optional[Callable[[Callable], mouse.Listener]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._on_key = on_key
        self._on_char = on_char
        self._suppress = suppress
        self._keyboard_factory = keyboard_factory or self._default_keyboard_factory
        self._mouse_factory = mouse_factory or self._default_mouse_factory
        self._logger = logger or logging.getLogger(__name__)
        self._keyboard: Optional[keyboard.Listener] = None
        self._mouse: Optional[mouse.Listener] = None
        self._intercept_pending = False

    @staticmethod
    def _default_keyboard_factory(
        on_press: Callable[..., None],
        on_release: Callable[..., None],
        **platform_hooks: Any,
    ) -> keyboard.Listener:
        # pynput ignores hooks meant for other platforms.
        return keyboard.Listener(on_press=on_press, on_release=on_release, **platform_hooks)

    @staticmethod
    def _default_mouse_factory(on_click: Callable[..., None]) -> mouse.Listener:
        return mouse.Listener(on_click=on_click)

    @property
    def is_running(self) -> bool:
        with self._lock:
            listener = self._keyboard
        return bool(listener and listener.running)

    def start(self) -> bool:
        with self._lock:
            if self._keyboard is not None:
                return False
            self._keyboard = self._keyboard_factory(
                self._on_press, self._on_release, **self._platform_hooks()
            )
            self._mouse = self._mouse_factory(self._on_click)
            listeners = (self._keyboard, self._mouse)
        for listener in listeners:
            listener.start()
        self._logger.info("Input listener started")
        return True

    def stop(self) -> bool:
        with self._lock:
            listeners = (self._keyboard, self._mouse)
            if listeners[0] is None:
                return False
            self._keyboard = None
            self._mouse = None
        for listener in listeners:
            if listener is not None:
                listener.stop()
        self._logger.info("Input listener stopped")
        return True

    def _platform_hooks(self) -> Dict[str, Callable[..., Any]]:
        if self._suppress is None:
            return {}
        return {
            "win32_event_filter": self._win32_event_filter,
            "darwin_intercept": self._darwin_intercept,
        }

    def _on_press(
        self, key: keyboard.Key | keyboard.KeyCode, injected: bool = False
    ) -> None:
        self._intercept_pending = False
        if injected:
            return
        self._dispatch_key(key, True)
        char = getattr(key, "char", None)
        if self._on_char is not None and char and char.isprintable():
            self._deliver(self._on_char, char)

    def _on_release(
        self, key: keyboard.Key | keyboard.KeyCode, injected: bool = False
    ) -> None:
        self._intercept_pending = False
        if injected:
            return
        self._dispatch_key(key, False)

    def _on_click(
        self, x: int, y: int, button: mouse.Button, pressed: bool, injected: bool = False
    ) -> None:
        if injected:
            return
        key_id = from_pynput_button(button)
        if key_id is not None:
            # Keeps the filter's held set complete for mixed chords.
            self._should_suppress(key_id, pressed)
            self._deliver(self._on_key, key_id, pressed)

    def _dispatch_key(self, key: keyboard.Key | keyboard.KeyCode, pressed: bool) -> None:
        with self._lock:
            listener = self._keyboard
        if listener is None:
            return
        if isinstance(key, keyboard.KeyCode):
            # Strip modifier effects so ctrl+a reports "a", not "\x01".
            key = listener.canonical(key)
        raw = from_pynput_key(key)
        key_id = normalize_key_id(raw) if raw else None
        if key_id is None:
            self._logger.debug("Ignoring unidentifiable key %r", key)
            return
        self._intercept_pending = self._should_suppress(key_id, pressed)
        self._deliver(self._on_key, key_id, pressed)

    def _win32_event_filter(self, msg: int, data: Any) -> bool:
        # Runs before the press callbacks; a withheld press never reaches
        # them, so it is delivered from here.
        if msg not in (_WM_KEYDOWN, _WM_SYSKEYDOWN):
            return True
        if getattr(data, "flags", 0) & _LLKHF_INJECTED:
            return True
        key_id = from_win32_vk(data.vkCode)
        if key_id is None or not self._should_suppress(key_id, True):
            return True
        with self._lock:
            listener = self._keyboard
        if listener is None:
            return True
        self._deliver(self._on_key, key_id, True)
        self._logger.debug("Withholding %s from other applications", key_id)
        listener.suppress_event()
        return False

    def _darwin_intercept(self, event_type: Any, event: Any) -> Any:
        # Runs after the press callbacks for the same event.
        if self._intercept_pending:
            self._intercept_pending = False
            return None
        return event

    def _should_suppress(self, key_id: str, pressed: bool) -> bool:
        if self._suppress is None:
            return False
        try:
            return bool(self._suppress(key_id, pressed))
        except Exception:  # pragma: no cover - defensive logging
            self._logger.exception("Suppression check for %s raised an exception", key_id)
            return False

    def _deliver(self, callback: Callable[..., None], *args: object) -> None:
        try:
            callback(*args)
        except Exception:  # pragma: no cover - defensive logging
            self._logger.exception("Input callback for %r raised an exception", args[0])
