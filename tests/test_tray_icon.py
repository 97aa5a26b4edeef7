"""Tests for the tray icon module."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from keymacros.tray_icon import TrayIcon

PROFILES = [("default", "Default"), ("pvp", "PvP")]


def test_tray_icon_initialization(qapp):
    """Test that TrayIcon can be initialized."""
    on_quit_mock = MagicMock()
    on_save_mock = MagicMock()

    tray = TrayIcon(on_quit=on_quit_mock, on_save=on_save_mock)

    assert tray._on_quit == on_quit_mock
    assert tray._on_save == on_save_mock


@patch("keymacros.tray_icon.QSystemTrayIcon.isSystemTrayAvailable")
def test_tray_icon_show_when_available(mock_available, qapp):
    """Test showing tray icon when system tray is available."""
    mock_available.return_value = True

    tray = TrayIcon()
    result = tray.show()

    assert result is True
    assert tray._tray_icon is not None
    assert tray._menu is not None
    assert tray.profile_actions() == ()


@patch("keymacros.tray_icon.QSystemTrayIcon.isSystemTrayAvailable")
def test_tray_icon_show_when_unavailable(mock_available, qapp):
    """Test showing tray icon when system tray is not available."""
    mock_available.return_value = False

    tray = TrayIcon()
    result = tray.show()

    assert result is False


def test_profile_menu_checks_active_profile(qapp):
    """Test that the profile submenu lists profiles and marks the active one."""
    with patch("keymacros.tray_icon.QSystemTrayIcon.isSystemTrayAvailable", return_value=True):
        tray = TrayIcon(profiles=lambda: PROFILES, active_profile=lambda: "pvp")
        tray.show()

        actions = tray.profile_actions()
        assert [action.text() for action in actions] == ["Default", "PvP"]
        assert [action.isChecked() for action in actions] == [False, True]


def test_profile_selection_callback(qapp):
    """Test that choosing a profile invokes the selection callback."""
    on_select = MagicMock()

    with patch("keymacros.tray_icon.QSystemTrayIcon.isSystemTrayAvailable", return_value=True):
        tray = TrayIcon(
            profiles=lambda: PROFILES,
            active_profile=lambda: "default",
            on_select_profile=on_select,
        )
        tray.show()
        tray.profile_actions()[1].trigger()

        on_select.assert_called_once_with("pvp")


def test_tray_icon_save_and_quit_callbacks(qapp):
    """Test that save and quit callbacks are invoked."""
    on_save_mock = MagicMock()
    on_quit_mock = MagicMock()

    with patch("keymacros.tray_icon.QSystemTrayIcon.isSystemTrayAvailable", return_value=True):
        tray = TrayIcon(on_save=on_save_mock, on_quit=on_quit_mock)
        tray.show()
        tray._handle_save()
        tray._handle_quit()
        tray.hide()

        on_save_mock.assert_called_once()
        on_quit_mock.assert_called_once()
