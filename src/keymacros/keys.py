"""Key identifier space shared by keyboard keys and mouse buttons.

Identifiers are lower-case strings of the form ``keyboard.<name>`` or
``mouse.<name>``, e.g. ``keyboard.k``, ``keyboard.ctrl_l``, ``mouse.left``.
Names follow pynput's ``Key`` and ``Button`` member names so that listener
events translate without a lookup table. Identifiers written by older
releases (``key.keyboard.left.control``) are translated on input.
"""

from __future__ import annotations

from typing import Iterable, Optional

from pynput import keyboard, mouse

KEYBOARD = "keyboard"
MOUSE = "mouse"
UNKNOWN_NAMES = frozenset({"unknown", "none", ""})

# Older dotted names mapped to pynput member names.
_LEGACY_NAMES = {
    "left.control": "ctrl_l",
    "right.control": "ctrl_r",
    "left.shift": "shift",
    "right.shift": "shift_r",
    "left.alt": "alt_l",
    "right.alt": "alt_r",
    "left.win": "cmd",
    "right.win": "cmd_r",
    "escape": "esc",
    "backspace": "backspace",
    "caps.lock": "caps_lock",
    "num.lock": "num_lock",
    "scroll.lock": "scroll_lock",
    "page.up": "page_up",
    "page.down": "page_down",
    "print.screen": "print_screen",
    "grave.accent": "`",
    "minus": "-",
    "equal": "=",
    "left.bracket": "[",
    "right.bracket": "]",
    "backslash": "\\",
    "semicolon": ";",
    "apostrophe": "'",
    "comma": ",",
    "period": ".",
    "slash": "/",
}

# Integer key codes stored by the oldest releases (GLFW numbering).
_GLFW_NAMES = {
    32: "space",
    39: "'",
    59: ";",
    61: "=",
    91: "[",
    92: "\\",
    93: "]",
    96: "`",
    256: "esc",
    257: "enter",
    258: "tab",
    259: "backspace",
    260: "insert",
    261: "delete",
    262: "right",
    263: "left",
    264: "down",
    265: "up",
    266: "page_up",
    267: "page_down",
    268: "home",
    269: "end",
    280: "caps_lock",
    281: "scroll_lock",
    282: "num_lock",
    283: "print_screen",
    284: "pause",
    340: "shift",
    341: "ctrl_l",
    342: "alt_l",
    343: "cmd",
    344: "shift_r",
    345: "ctrl_r",
    346: "alt_r",
    347: "cmd_r",
    348: "menu",
}


def normalize_key_id(raw: str) -> Optional[str]:
    """Return the canonical identifier for ``raw`` or ``None`` when unbound.

    Bare names (``"k"``, ``"<ctrl>"``) are taken as keyboard keys.
    """

    token = raw.strip().lower()
    if token.startswith("<") and token.endswith(">"):
        token = token[1:-1]
    if token.startswith("key."):
        token = token[len("key."):]
    device, _, name = token.partition(".")
    if device not in (KEYBOARD, MOUSE):
        device, name = KEYBOARD, token
    if name in UNKNOWN_NAMES:
        return None
    if device == KEYBOARD and name in ("ctrl", "alt"):
        name += "_l"
    name = _LEGACY_NAMES.get(name, name)
    return f"{device}.{name}"


def normalize_key_set(raw_keys: Iterable[str]) -> frozenset[str]:
    keys = set()
    for raw in raw_keys:
        key = normalize_key_id(str(raw))
        if key is not None:
            keys.add(key)
    return frozenset(keys)


def from_glfw_code(code: int) -> Optional[str]:
    """Translate an integer key code of the oldest document layout."""

    if 44 <= code <= 57 or 65 <= code <= 90:
        return f"{KEYBOARD}.{chr(code).lower()}"
    if 290 <= code <= 314:
        return f"{KEYBOARD}.f{code - 289}"
    name = _GLFW_NAMES.get(code)
    return None if name is None else f"{KEYBOARD}.{name}"


def from_win32_vk(vk: int) -> Optional[str]:
    """Translate a Windows virtual-key code from a low-level hook."""

    if 0x30 <= vk <= 0x39 or 0x41 <= vk <= 0x5A:
        return f"{KEYBOARD}.{chr(vk).lower()}"
    for key in keyboard.Key:
        if getattr(key.value, "vk", None) == vk:
            return f"{KEYBOARD}.{key.name}"
    return f"{KEYBOARD}.vk{vk}"


def from_pynput_key(key: keyboard.Key | keyboard.KeyCode) -> Optional[str]:
    """Translate a pynput keyboard event key into an identifier."""

    if isinstance(key, keyboard.Key):
        return f"{KEYBOARD}.{key.name}"
    if isinstance(key, keyboard.KeyCode):
        if key.char is not None and len(key.char) == 1 and key.char.isprintable():
            return f"{KEYBOARD}.{key.char.lower()}"
        if key.vk is not None:
            return f"{KEYBOARD}.vk{key.vk}"
    return None


def from_pynput_button(button: mouse.Button) -> Optional[str]:
    """Translate a pynput mouse button into an identifier."""

    name = getattr(button, "name", None)
    if not name or name == "unknown":
        return None
    return f"{MOUSE}.{name}"


def display_name(key_id: str) -> str:
    device, _, name = key_id.partition(".")
    if device == MOUSE:
        return f"Mouse {name.replace('_', ' ').title()}"
    return name.upper() if len(name) == 1 else name.replace("_", " ").title()
