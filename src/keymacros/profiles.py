"""Profile storage and connection-based profile resolution."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional

from .matcher import TriggerRegistry
from .models import Config, Profile, Trigger

_LOGGER = logging.getLogger(__name__)

ProfileListener = Callable[[Profile], None]


class ConnectionKind(str, Enum):
    SINGLEPLAYER = "singleplayer"
    MULTIPLAYER = "multiplayer"
    NONE = "none"


def normalize_identifier(identifier: str) -> str:
    return identifier.strip().lower()


class ProfileStore:
    """Mutation contract over the profiles held by a :class:`Config`.

    Invalid requests (unknown ids, deleting a default) raise ``KeyError`` or
    ``ValueError``; the config is left unchanged in that case.
    """

    def __init__(self, config: Config, logger: Optional[logging.Logger] = None) -> None:
        self._config = config
        self._logger = logger or _LOGGER
        self._removed_listeners: List[ProfileListener] = []

    @property
    def config(self) -> Config:
        return self._config

    @property
    def profiles(self) -> List[Profile]:
        return list(self._config.profiles)

    def add_removed_listener(self, listener: ProfileListener) -> None:
        self._removed_listeners.append(listener)

    def get(self, profile_id: str) -> Profile:
        profile = self._config.find_profile(profile_id)
        if profile is None:
            raise KeyError(f"Unknown profile '{profile_id}'")
        return profile

    @property
    def singleplayer_default(self) -> Profile:
        return self.get(self._config.singleplayer_default_id)

    @property
    def multiplayer_default(self) -> Profile:
        return self.get(self._config.multiplayer_default_id)

    def default_for(self, kind: ConnectionKind) -> Profile:
        if kind is ConnectionKind.SINGLEPLAYER:
            return self.singleplayer_default
        return self.multiplayer_default

    # Profiles

    def create_profile(self, name: str = "") -> Profile:
        profile = Profile(id=Profile.new_id(), name=name)
        self._config.profiles.append(profile)
        self._logger.info("Created profile %s (%s)", profile.display_name(), profile.id)
        return profile

    def duplicate_profile(self, profile_id: str) -> Profile:
        source = self.get(profile_id)
        base = source.display_name(self.links_for(profile_id))
        profile = source.copy(name=f"{base} (Copy)")
        self._config.profiles.insert(self._config.profiles.index(source) + 1, profile)
        self._logger.info("Duplicated profile %s as %s", source.id, profile.id)
        return profile

    def rename_profile(self, profile_id: str, name: str) -> None:
        self.get(profile_id).name = name

    def move_profile(self, profile_id: str, index: int) -> None:
        profile = self.get(profile_id)
        self._config.profiles.remove(profile)
        self._config.profiles.insert(index, profile)

    def delete_profile(self, profile_id: str) -> None:
        """Delete a profile and drop the connection mappings pointing at it.

        Dropped identifiers resolve through the default chain afterwards.
        """

        profile = self.get(profile_id)
        if profile_id in (
            self._config.singleplayer_default_id,
            self._config.multiplayer_default_id,
        ):
            raise ValueError(f"Profile '{profile.display_name()}' is a default profile")
        for identifier in self.links_for(profile_id):
            del self._config.connections[identifier]
            self._logger.info("Unlinked %s from deleted profile %s", identifier, profile_id)
        self._config.profiles.remove(profile)
        self._logger.info("Deleted profile %s (%s)", profile.display_name(), profile_id)
        for listener in list(self._removed_listeners):
            listener(profile)

    def set_singleplayer_default(self, profile_id: str) -> None:
        self.get(profile_id)
        self._config.singleplayer_default_id = profile_id

    def set_multiplayer_default(self, profile_id: str) -> None:
        self.get(profile_id)
        self._config.multiplayer_default_id = profile_id

    # Connection links

    def link(self, identifier: str, profile_id: str) -> str:
        """Map ``identifier`` to the profile, moving it from any other profile."""

        self.get(profile_id)
        normalized = normalize_identifier(identifier)
        if not normalized:
            raise ValueError("Connection identifier must be a non-empty string")
        previous = self._config.connections.get(normalized)
        self._config.connections[normalized] = profile_id
        if previous and previous != profile_id:
            self._logger.info("Moved %s from profile %s to %s", normalized, previous, profile_id)
        return normalized

    def unlink(self, identifier: str) -> bool:
        removed = self._config.connections.pop(normalize_identifier(identifier), None)
        return removed is not None

    def links_for(self, profile_id: str) -> List[str]:
        return self._config.links_for(profile_id)

    def lookup(self, identifier: str) -> Optional[Profile]:
        profile_id = self._config.connections.get(normalize_identifier(identifier))
        if profile_id is None:
            return None
        return self._config.find_profile(profile_id)

    # Triggers

    def add_trigger(self, profile_id: str, trigger: Optional[Trigger] = None) -> Trigger:
        trigger = trigger or Trigger()
        self.get(profile_id).triggers.append(trigger)
        return trigger

    def remove_trigger(self, profile_id: str, index: int) -> Trigger:
        return self.get(profile_id).triggers.pop(index)

    def move_trigger(self, profile_id: str, source: int, dest: int) -> None:
        triggers = self.get(profile_id).triggers
        if source != dest:
            triggers.insert(dest, triggers.pop(source))

    def duplicate_flags(self, profile_id: str) -> List[bool]:
        return TriggerRegistry(self.get(profile_id)).duplicate_flags()


class ContextResolver:
    """Own the active-profile pointer and switch it on connection events."""

    def __init__(
        self,
        store: ProfileStore,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._logger = logger or _LOGGER
        self._listeners: List[ProfileListener] = []
        self.last_identifier: Optional[str] = None
        self.last_kind = ConnectionKind.NONE
        store.add_removed_listener(self._on_profile_removed)
        if self._store.config.find_profile(self._store.config.active_profile_id) is None:
            self._store.config.active_profile_id = self._store.config.multiplayer_default_id

    @property
    def active_profile(self) -> Profile:
        config = self._store.config
        profile = config.find_profile(config.active_profile_id)
        if profile is None:
            profile = self._store.multiplayer_default
            config.active_profile_id = profile.id
        return profile

    @property
    def in_singleplayer(self) -> bool:
        return self.last_kind is ConnectionKind.SINGLEPLAYER

    def add_listener(self, listener: ProfileListener) -> None:
        """Register a callback run after every change of the active profile."""

        self._listeners.append(listener)

    def activate(self, profile_id: str) -> Profile:
        profile = self._store.get(profile_id)
        self._store.config.active_profile_id = profile.id
        self._logger.info("Active profile: %s", profile.display_name(self._store.links_for(profile.id)))
        for listener in list(self._listeners):
            try:
                listener(profile)
            except Exception:  # pragma: no cover - defensive logging
                self._logger.exception("Profile listener failed")
        return profile

    def resolve(self, kind: ConnectionKind, identifier: str) -> Profile:
        profile = self._store.lookup(identifier) if identifier else None
        if profile is not None:
            return profile
        fallback = self._store.default_for(ConnectionKind(kind))
        self._logger.debug(
            "No profile linked to %r; using %s default", identifier, ConnectionKind(kind).value
        )
        return fallback

    def activate_for_connection(self, kind: ConnectionKind, identifier: str) -> Profile:
        kind = ConnectionKind(kind)
        self.last_kind = kind
        self.last_identifier = normalize_identifier(identifier) or None
        return self.activate(self.resolve(kind, identifier).id)

    def assign_current_connection(self, profile_id: str) -> str:
        """Link the last seen connection identifier to ``profile_id``."""

        if not self.last_identifier:
            raise ValueError("No connection has been seen yet")
        identifier = self._store.link(self.last_identifier, profile_id)
        if self._store.config.active_profile_id != profile_id:
            self.activate(profile_id)
        return identifier

    def _on_profile_removed(self, profile: Profile) -> None:
        if self._store.config.active_profile_id == profile.id:
            self.activate(self._store.default_for(self.last_kind).id)
