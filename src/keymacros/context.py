"""Explicit session context wiring the Key Macros components together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config_loader import load_config, save_config
from .executor import MacroExecutor, MessageChannel
from .matcher import ChordMatcher, MatchResult
from .models import Config, Profile
from .profiles import ConnectionKind, ContextResolver, ProfileStore
from .scheduler import TickScheduler

_LOGGER = logging.getLogger(__name__)


class MacroContext:
    """Own one Config and the components operating on it.

    Built once at startup and handed to whatever drives it (the Qt
    application, an editor, tests). The held-key state is reset whenever the
    active profile changes.
    """

    def __init__(
        self,
        config: Config,
        channel: MessageChannel,
        *,
        config_path: Optional[Path] = None,
        scheduler: Optional[TickScheduler] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._logger = logger or _LOGGER
        self.config = config
        self.config_path = config_path
        self.scheduler = scheduler or TickScheduler()
        self.store = ProfileStore(config)
        self.resolver = ContextResolver(self.store)
        self.executor = MacroExecutor(
            channel,
            self.scheduler,
            lambda: self.config.options,
            in_singleplayer=lambda: self.resolver.in_singleplayer,
        )
        self.matcher = ChordMatcher(
            lambda: self.resolver.active_profile,
            self.executor.fire,
            self.scheduler,
        )
        self.resolver.add_listener(lambda _profile: self.matcher.reset())
        self._screen_depth = 0

    @classmethod
    def load(
        cls,
        channel: MessageChannel,
        config_path: Optional[Path] = None,
        **kwargs,
    ) -> "MacroContext":
        """Load the persisted Config (or defaults) and build a context on it."""

        return cls(load_config(config_path), channel, config_path=config_path, **kwargs)

    @property
    def active_profile(self) -> Profile:
        return self.resolver.active_profile

    @property
    def editing(self) -> bool:
        return self._screen_depth > 0

    def on_key_event(self, key: str, pressed: bool) -> MatchResult:
        return self.matcher.on_key_event(key, pressed)

    def tick(self) -> int:
        return self.scheduler.tick()

    def connect(self, kind: ConnectionKind, identifier: str) -> Profile:
        return self.resolver.activate_for_connection(kind, identifier)

    def disconnect(self) -> None:
        self._logger.info("Connection closed")
        self.resolver.last_kind = ConnectionKind.NONE
        self.resolver.last_identifier = None
        self.matcher.reset()

    def screen_opened(self) -> None:
        """Mark an editor screen as open; triggers do not fire meanwhile."""

        self._screen_depth += 1
        if self._screen_depth == 1:
            self.matcher.reset()
            self.matcher.enabled = False

    def screen_closed(self) -> bool:
        """Mark an editor screen as closed.

        Closing the outermost screen purges and saves the Config; the return
        value reports whether a save happened and succeeded.
        """

        if self._screen_depth == 0:
            self._logger.debug("screen_closed called with no open screen")
            return False
        self._screen_depth -= 1
        if self._screen_depth:
            return False
        self.matcher.enabled = True
        return self.save()

    def save(self) -> bool:
        return save_config(self.config, self.config_path)
