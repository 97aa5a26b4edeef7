"""On-screen notification overlay for Key Macros.

This module provides the `OverlayWindow` class, a borderless, translucent
window that echoes fired macro messages and rate-limit warnings. It keeps the
last few lines and auto-hides after a configurable duration.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Optional, Tuple

from PySide6.QtCore import QPoint, Qt, QTimer
from PySide6.QtWidgets import QLabel, QWidget

_LOGGER = logging.getLogger(__name__)

_STYLE = (
    "QLabel { color: white; background-color: rgba(0, 0, 0, 160);"
    " padding: 6px 10px; border-radius: 4px; font-size: 13px; }"
)


class OverlayWindow(QWidget):
    """Show recent notification lines in a frameless, translucent window.

    The overlay window keeps a `QLabel` as its sole child. Each call to
    :meth:`show_text` appends a line and restarts the single-shot `QTimer`
    that hides the window.

    Args:
        auto_hide_ms: Default duration before the window auto-hides. Set to
            ``0`` to keep the overlay visible until hidden manually.
        max_lines: Number of lines kept on screen.
        position: ``(x, y)`` screen coordinates of the window.
        parent: Optional parent widget.
    """

    def __init__(
        self,
        *,
        auto_hide_ms: int = 3000,
        max_lines: int = 5,
        position: Tuple[int, int] = (20, 20),
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._auto_hide_ms = auto_hide_ms
        self._lines: Deque[str] = deque(maxlen=max(1, max_lines))
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self.hide)

        self._label = QLabel(self)
        self._label.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self._label.setTextFormat(Qt.TextFormat.PlainText)
        self._label.setStyleSheet(_STYLE)

        self._configure_window_flags()
        self.move(QPoint(position[0], position[1]))

    def show_text(self, text: str, *, duration_ms: Optional[int] = None) -> bool:
        """Append ``text`` and show the window.

        Returns ``False`` when there is nothing to show.
        """

        if not text.strip():
            return False
        self._lines.append(text)
        self._label.setText("\n".join(self._lines))
        self._label.adjustSize()
        self.resize(self._label.size())

        self._start_timer(duration_ms)
        self.show()
        self.raise_()
        _LOGGER.debug("Overlay: %s", text)
        return True

    def lines(self) -> Tuple[str, ...]:
        return tuple(self._lines)

    def is_auto_hide_active(self) -> bool:
        """Return ``True`` when the auto-hide timer is active."""

        return self._timer.isActive()

    def hideEvent(self, event) -> None:  # type: ignore[override]
        self._lines.clear()
        self._label.clear()
        super().hideEvent(event)

    def _configure_window_flags(self) -> None:
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool
            | Qt.WindowType.WindowTransparentForInput
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating, True)

    def _start_timer(self, duration_ms: Optional[int]) -> None:
        effective = self._auto_hide_ms if duration_ms is None else duration_ms
        if effective and effective > 0:
            self._timer.start(effective)
        else:
            self._timer.stop()
