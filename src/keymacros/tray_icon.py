"""System tray icon for Key Macros."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Tuple

from PySide6.QtGui import QAction, QActionGroup, QIcon
from PySide6.QtWidgets import QApplication, QMenu, QStyle, QSystemTrayIcon

_LOGGER = logging.getLogger(__name__)

ProfileEntry = Tuple[str, str]


class TrayIcon:
    """System tray icon with a menu to switch profiles, save and quit."""

    def __init__(
        self,
        *,
        profiles: Optional[Callable[[], Iterable[ProfileEntry]]] = None,
        active_profile: Optional[Callable[[], str]] = None,
        on_select_profile: Optional[Callable[[str], None]] = None,
        on_save: Optional[Callable[[], None]] = None,
        on_quit: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize the system tray icon.

        Args:
            profiles: Returns ``(profile_id, display_name)`` pairs in menu order
            active_profile: Returns the id of the active profile
            on_select_profile: Callback receiving the id of the chosen profile
            on_save: Callback to execute when user selects Save
            on_quit: Callback to execute when user selects Quit
        """
        self._profiles = profiles
        self._active_profile = active_profile
        self._on_select_profile = on_select_profile
        self._on_save = on_save
        self._on_quit = on_quit
        self._tray_icon: Optional[QSystemTrayIcon] = None
        self._menu: Optional[QMenu] = None
        self._profile_menu: Optional[QMenu] = None
        self._profile_group: Optional[QActionGroup] = None

    def show(self) -> bool:
        """Show the system tray icon.

        Returns:
            True if the tray icon was shown successfully, False otherwise.
        """
        if not QSystemTrayIcon.isSystemTrayAvailable():
            _LOGGER.warning("System tray is not available on this platform")
            return False

        app = QApplication.instance()
        if not app:
            _LOGGER.error("QApplication instance not found")
            return False

        self._tray_icon = QSystemTrayIcon(app)
        icon = self._load_icon()
        if icon is None:
            icon = app.style().standardIcon(QStyle.StandardPixmap.SP_ComputerIcon)
        self._tray_icon.setIcon(icon)
        self._tray_icon.setToolTip("Key Macros")

        self._menu = QMenu()
        if self._profiles is not None:
            self._profile_menu = self._menu.addMenu("Active Profile")
            self._profile_menu.aboutToShow.connect(self.rebuild_profile_menu)
            self.rebuild_profile_menu()
            self._menu.addSeparator()

        if self._on_save:
            save_action = QAction("Save Configuration", self._menu)
            save_action.triggered.connect(self._handle_save)
            self._menu.addAction(save_action)

        quit_action = QAction("Quit", self._menu)
        quit_action.triggered.connect(self._handle_quit)
        self._menu.addAction(quit_action)

        self._tray_icon.setContextMenu(self._menu)
        self._tray_icon.show()

        _LOGGER.info("System tray icon displayed")
        return True

    def hide(self) -> None:
        """Hide the system tray icon."""
        if self._tray_icon:
            self._tray_icon.hide()
            _LOGGER.info("System tray icon hidden")

    def show_message(
        self, title: str, message: str, icon: Optional[QSystemTrayIcon.MessageIcon] = None
    ) -> None:
        """Show a notification message from the tray icon."""
        if not self._tray_icon:
            return
        if icon is None:
            icon = QSystemTrayIcon.MessageIcon.Information
        self._tray_icon.showMessage(title, message, icon, 3000)

    def rebuild_profile_menu(self) -> None:
        """Refill the profile submenu, checking the active profile."""
        if self._profile_menu is None or self._profiles is None:
            return
        self._profile_menu.clear()
        self._profile_group = QActionGroup(self._profile_menu)
        self._profile_group.setExclusive(True)
        active = self._active_profile() if self._active_profile else None
        for profile_id, name in self._profiles():
            action = QAction(name, self._profile_menu)
            action.setCheckable(True)
            action.setChecked(profile_id == active)
            action.triggered.connect(
                lambda _checked=False, pid=profile_id: self._handle_select_profile(pid)
            )
            self._profile_group.addAction(action)
            self._profile_menu.addAction(action)

    def profile_actions(self) -> Tuple[QAction, ...]:
        if self._profile_menu is None:
            return ()
        return tuple(self._profile_menu.actions())

    def _load_icon(self) -> Optional[QIcon]:
        for path in (
            Path(__file__).parents[2] / "assets" / "icon.png",
            Path(__file__).parents[2] / "assets" / "tray_icon.png",
        ):
            if path.exists():
                return QIcon(str(path))
        return None

    def _handle_select_profile(self, profile_id: str) -> None:
        _LOGGER.info("Profile %s selected from system tray", profile_id)
        if self._on_select_profile:
            self._on_select_profile(profile_id)

    def _handle_save(self) -> None:
        """Handle save action from tray menu."""
        _LOGGER.info("Save requested from system tray")
        if self._on_save:
            self._on_save()

    def _handle_quit(self) -> None:
        """Handle quit action from tray menu."""
        _LOGGER.info("Quit requested from system tray")
        if self._on_quit:
            self._on_quit()
        else:
            app = QApplication.instance()
            if app:
                app.quit()
