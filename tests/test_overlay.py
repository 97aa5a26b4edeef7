from __future__ import annotations

import pytest
from PySide6.QtTest import QTest
from PySide6.QtWidgets import QApplication

from keymacros.overlay import OverlayWindow


@pytest.fixture()
def overlay(qapp: QApplication) -> OverlayWindow:
    window = OverlayWindow(auto_hide_ms=100, max_lines=2)
    yield window
    window.close()


def test_show_text_auto_hides(overlay: OverlayWindow) -> None:
    assert overlay.show_text("/home", duration_ms=150) is True
    assert overlay.isVisible() is True
    assert overlay.is_auto_hide_active() is True

    QTest.qWait(250)
    assert overlay.isVisible() is False
    assert overlay.lines() == ()


def test_keeps_most_recent_lines(overlay: OverlayWindow) -> None:
    for text in ("one", "two", "three"):
        overlay.show_text(text, duration_ms=0)

    assert overlay.lines() == ("two", "three")
    assert overlay.is_auto_hide_active() is False
    overlay.hide()


def test_blank_text_is_ignored(overlay: OverlayWindow) -> None:
    assert overlay.show_text("   ") is False
    assert overlay.isVisible() is False
