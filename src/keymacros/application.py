"""Application wiring for Key Macros."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from PySide6.QtCore import QObject, Qt, QTimer, Signal
from PySide6.QtWidgets import QApplication

from .context import MacroContext
from .hotkeys import InputGate, InputListener, SuppressionFilter
from .models import Profile
from .profiles import ConnectionKind

_LOGGER = logging.getLogger(__name__)

DEFAULT_TICK_MS = 50


class InputSignals(QObject):
    """Qt signals carrying listener-thread input to the main thread."""

    key_event = Signal(str, bool)
    char_typed = Signal(str)


class Application:
    """Drive a :class:`MacroContext` from global input and a Qt tick timer."""

    def __init__(
        self,
        context: MacroContext,
        *,
        input_listener: Optional[InputListener] = None,
        tick_ms: int = DEFAULT_TICK_MS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._context = context
        self._logger = logger or _LOGGER
        self._gate = InputGate(context.on_key_event)
        self._running = False

        # Create signals for thread-safe communication
        self._signals = InputSignals()
        self._signals.key_event.connect(
            self._handle_key_in_main_thread, Qt.ConnectionType.QueuedConnection
        )
        self._signals.char_typed.connect(
            self._handle_char_in_main_thread, Qt.ConnectionType.QueuedConnection
        )
        self._input_listener = input_listener or InputListener(
            self._signals.key_event.emit,
            on_char=self._signals.char_typed.emit,
            suppress=SuppressionFilter(
                lambda: context.active_profile,
                enabled=lambda: context.matcher.enabled,
            ),
        )

        self._timer = QTimer()
        self._timer.setInterval(max(1, tick_ms))
        self._timer.timeout.connect(self._tick)

    @property
    def context(self) -> MacroContext:
        return self._context

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the tick timer and the input listener."""

        if self._running:
            return
        self._timer.start()
        self._input_listener.start()
        self._running = True
        self._logger.info(
            "Application started with profile %s (%d triggers)",
            self._context.active_profile.display_name(),
            len(self._context.active_profile.triggers),
        )

    def stop(self) -> None:
        """Stop listening and save the configuration."""

        if not self._running:
            return
        self._input_listener.stop()
        self._timer.stop()
        self._context.matcher.reset()
        self._running = False
        self._context.save()
        self._logger.info("Application stopped")

    def notify_connection(self, kind: ConnectionKind, identifier: str) -> Profile:
        """Activate the profile for a newly established connection."""

        return self._context.connect(kind, identifier)

    def select_profile(self, profile_id: str) -> None:
        """Activate a profile chosen by the user and link the current connection."""

        if self._context.resolver.last_identifier:
            self._context.resolver.assign_current_connection(profile_id)
        else:
            self._context.resolver.activate(profile_id)

    def _tick(self) -> None:
        self._context.tick()

    # Where the platform allows it, the event was already withheld on the
    # listener thread; these only record the matcher's decision.
    def _handle_key_in_main_thread(self, key: str, pressed: bool) -> None:
        if not self._gate.key_event(key, pressed):
            self._logger.debug("Suppressed %s", key)

    def _handle_char_in_main_thread(self, char: str) -> None:
        if not self._gate.char_typed():
            self._logger.debug("Suppressed character %r", char)


def parse_connection(value: str) -> Tuple[ConnectionKind, str]:
    """Split ``KIND:IDENTIFIER``; the identifier may itself contain colons."""

    kind, sep, identifier = value.partition(":")
    try:
        connection_kind = ConnectionKind(kind.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown connection kind '{kind}'") from exc
    if not sep and connection_kind is not ConnectionKind.NONE:
        raise ValueError("Expected KIND:IDENTIFIER")
    return connection_kind, identifier.strip()


def run_application(
    config_path: Optional[Path] = None,
    *,
    tick_ms: int = DEFAULT_TICK_MS,
    chat_key: str = "t",
    command_key: str = "/",
    connection: Optional[Tuple[ConnectionKind, str]] = None,
) -> None:
    """Bootstrap the Qt application loop and start listening for triggers."""
    from .channel import KeyboardChannel
    from .overlay import OverlayWindow
    from .tray_icon import TrayIcon

    app = QApplication.instance() or QApplication([])
    app.setQuitOnLastWindowClosed(False)

    overlay = OverlayWindow()
    channel = KeyboardChannel(
        overlay=overlay.show_text, chat_key=chat_key, command_key=command_key
    )
    context = MacroContext.load(channel, config_path)
    application = Application(context, tick_ms=tick_ms)
    if connection is not None:
        application.notify_connection(*connection)
    application.start()

    def _save() -> None:
        if not context.save():
            tray.show_message("Key Macros", "Saving the configuration failed; see the log")

    tray = TrayIcon(
        profiles=lambda: [
            (profile.id, profile.display_name(context.store.links_for(profile.id)))
            for profile in context.store.profiles
        ],
        active_profile=lambda: context.active_profile.id,
        on_select_profile=application.select_profile,
        on_save=_save,
        on_quit=lambda: (application.stop(), app.quit()),
    )
    tray.show()

    try:
        app.exec()
    finally:
        application.stop()
        overlay.close()
        tray.hide()
