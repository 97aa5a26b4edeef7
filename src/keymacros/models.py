"""Core data models for Key Macros."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional

CONFIG_VERSION = 4
DEFAULT_PROFILE_ID = "default"
DEFAULT_REPEAT_INTERVAL_TICKS = 20


class Override(str, Enum):
    """Global switch that either forces a behaviour or defers to the entry."""

    ON = "on"
    OFF = "off"
    DEFER = "defer"

    def resolve(self, local: bool) -> bool:
        if self is Override.ON:
            return True
        if self is Override.OFF:
            return False
        return local


class SendMode(str, Enum):
    """How a fired trigger walks its message list."""

    SEND = "send"  # every message, in order
    CYCLE = "cycle"  # one entry per firing, advancing through the list
    RANDOM = "random"  # one randomly chosen entry per firing


@dataclass
class Message:
    """A single line sent when a trigger fires."""

    text: str
    literal: bool = True  # False: typed into the input box, not submitted
    delay_ticks: int = 0
    add_to_history: bool = False


@dataclass
class Trigger:
    """Key chord bound to an ordered list of messages."""

    keys: FrozenSet[str] = frozenset()
    messages: List[Message] = field(default_factory=list)
    suppress: bool = False
    repeat: bool = False
    repeat_interval_ticks: int = DEFAULT_REPEAT_INTERVAL_TICKS
    space_ticks: int = 0
    show_overlay: bool = False
    mode: SendMode = SendMode.SEND
    # Position of the next entry in cycle mode; not persisted.
    cycle_index: int = field(default=0, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.keys = frozenset(self.keys)
        self.mode = SendMode(self.mode)

    @property
    def is_bound(self) -> bool:
        return bool(self.keys)

    @property
    def is_empty(self) -> bool:
        return not self.messages

    def label(self) -> str:
        if not self.keys:
            return "<unbound>"
        return "+".join(sorted(self.keys))


@dataclass
class Profile:
    """Named, independently owned collection of triggers."""

    id: str
    name: str = ""
    triggers: List[Trigger] = field(default_factory=list)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def display_name(self, links: Iterable[str] = ()) -> str:
        """Return the first non-blank of: the name, the first link, ``[Unnamed]``."""

        if self.name.strip():
            return self.name
        for link in links:
            if link.strip():
                return link
        return "[Unnamed]"

    def copy(self, *, name: Optional[str] = None) -> "Profile":
        """Deep copy under a fresh identifier."""

        return Profile(
            id=self.new_id(),
            name=self.name if name is None else name,
            triggers=copy.deepcopy(self.triggers),
        )


@dataclass
class GlobalOptions:
    """Options applying to every profile."""

    show_overlay: Override = Override.DEFER
    add_to_history: Override = Override.DEFER
    ratelimit_count: int = 10
    ratelimit_ticks: int = 400
    ratelimit_singleplayer: bool = False


@dataclass
class Config:
    """Root of the persisted state."""

    profiles: List[Profile]
    active_profile_id: str
    singleplayer_default_id: str
    multiplayer_default_id: str
    connections: Dict[str, str] = field(default_factory=dict)
    options: GlobalOptions = field(default_factory=GlobalOptions)

    @classmethod
    def default(cls) -> "Config":
        """Single default profile, assigned as both defaults and active."""

        profile = Profile(id=DEFAULT_PROFILE_ID, name="Default")
        return cls(
            profiles=[profile],
            active_profile_id=profile.id,
            singleplayer_default_id=profile.id,
            multiplayer_default_id=profile.id,
        )

    def find_profile(self, profile_id: str) -> Optional[Profile]:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        return None

    def links_for(self, profile_id: str) -> List[str]:
        return [ident for ident, pid in self.connections.items() if pid == profile_id]

    def is_consistent(self) -> bool:
        ids = {profile.id for profile in self.profiles}
        if len(ids) != len(self.profiles):
            return False
        required = (
            self.active_profile_id,
            self.singleplayer_default_id,
            self.multiplayer_default_id,
        )
        if any(pid not in ids for pid in required):
            return False
        return all(pid in ids for pid in self.connections.values())
