"""Message channel that types macro output into the focused window."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Union

from pynput import keyboard

_LOGGER = logging.getLogger(__name__)

TapKey = Union[str, keyboard.Key]


def parse_tap_key(name: str) -> Optional[TapKey]:
    """Resolve ``"t"``, ``"/"`` or a pynput key name such as ``"enter"``."""

    name = name.strip()
    if not name:
        return None
    if len(name) == 1:
        return name
    token = name.strip("<>").lower()
    try:
        return keyboard.Key[token]
    except KeyError as exc:
        raise ValueError(f"Unknown key name '{name}'") from exc


class KeyboardChannel:
    """Deliver chat lines and commands by emulating keystrokes.

    ``send`` opens the input box, types the line and presses Enter;
    ``type_text`` leaves the line unsubmitted. Lines starting with ``/`` use
    ``command_key``, which opens the box with the slash already typed.

    Args:
        controller: pynput-compatible keyboard controller.
        overlay: Callable receiving overlay notification text.
        chat_key: Key that opens the chat input; empty to type directly.
        command_key: Key that opens the command input; empty to use
            ``chat_key`` and type the slash.
        history_size: Number of submitted lines kept in :attr:`history`.
    """

    def __init__(
        self,
        *,
        controller: Optional[keyboard.Controller] = None,
        overlay: Optional[Callable[[str], object]] = None,
        chat_key: str = "t",
        command_key: str = "/",
        history_size: int = 100,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._controller = controller or keyboard.Controller()
        self._overlay = overlay
        self._chat_key = parse_tap_key(chat_key)
        self._command_key = parse_tap_key(command_key)
        self._logger = logger or _LOGGER
        self._history: Deque[str] = deque(maxlen=history_size)

    @property
    def history(self) -> List[str]:
        return list(self._history)

    def send(self, text: str, add_to_history: bool) -> None:
        self._open_and_type(text)
        self._controller.tap(keyboard.Key.enter)
        if add_to_history:
            self._history.append(text)
        self._logger.debug("Sent %r", text)

    def type_text(self, text: str) -> None:
        self._open_and_type(text)
        self._logger.debug("Typed %r", text)

    def show_overlay(self, text: str) -> None:
        if self._overlay is not None:
            self._overlay(text)

    def _open_and_type(self, text: str) -> None:
        if text.startswith("/") and self._command_key is not None:
            self._controller.tap(self._command_key)
            text = text[1:]
        elif self._chat_key is not None:
            self._controller.tap(self._chat_key)
        if text:
            self._controller.type(text)
