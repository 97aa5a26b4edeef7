"""Key Macros core package."""

__all__ = [
    "application",
    "channel",
    "config_loader",
    "context",
    "executor",
    "hotkeys",
    "keys",
    "matcher",
    "models",
    "overlay",
    "profiles",
    "scheduler",
    "tray_icon",
]
