from __future__ import annotations

import json
from pathlib import Path
from typing import List, Tuple

import pytest
from PySide6.QtCore import QCoreApplication

from keymacros.application import Application, parse_connection
from keymacros.context import MacroContext
from keymacros.models import Config, Message, Profile, Trigger
from keymacros.profiles import ConnectionKind

K = "keyboard.k"


class FakeChannel:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, bool]] = []
        self.typed: List[str] = []
        self.overlay: List[str] = []

    def send(self, text: str, add_to_history: bool) -> None:
        self.sent.append((text, add_to_history))

    def type_text(self, text: str) -> None:
        self.typed.append(text)

    def show_overlay(self, text: str) -> None:
        self.overlay.append(text)


class FakeInputListener:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False

    def start(self) -> bool:
        self.started = True
        return True

    def stop(self) -> bool:
        self.stopped = True
        return True


def _process_events() -> None:
    QCoreApplication.processEvents()
    QCoreApplication.sendPostedEvents()


@pytest.fixture()
def context(tmp_path: Path) -> MacroContext:
    config = Config.default()
    config.profiles[0].triggers.append(
        Trigger(
            keys={K},
            messages=[Message("/help"), Message("/spawn", delay_ticks=2)],
            suppress=True,
        )
    )
    config.profiles.append(Profile(id="pvp", name="PvP"))
    return MacroContext(config, FakeChannel(), config_path=tmp_path / "keymacros.json")


def test_key_signal_fires_trigger_on_main_thread(qapp, context: MacroContext) -> None:
    listener = FakeInputListener()
    app = Application(context, input_listener=listener, tick_ms=60_000)
    app.start()
    assert listener.started is True
    assert app.is_running is True

    app._signals.key_event.emit(K, True)
    channel = context.executor._channel  # type: ignore[attr-defined]
    assert channel.sent == []
    _process_events()
    assert channel.sent == [("/help", False)]

    app._tick()
    app._tick()
    assert [text for text, _ in channel.sent] == ["/help", "/spawn"]
    app.stop()


def test_suppressed_key_drops_following_char(
    qapp, context: MacroContext, caplog: pytest.LogCaptureFixture
) -> None:
    app = Application(context, input_listener=FakeInputListener())
    app.start()

    with caplog.at_level("DEBUG", logger="keymacros.application"):
        app._signals.key_event.emit(K, True)
        app._signals.char_typed.emit("k")
        _process_events()

    assert "Suppressed character 'k'" in caplog.text
    app.stop()


def test_stop_saves_configuration(qapp, context: MacroContext, tmp_path: Path) -> None:
    listener = FakeInputListener()
    app = Application(context, input_listener=listener)
    app.start()
    app.stop()

    assert listener.stopped is True
    assert app.is_running is False
    saved = json.loads((tmp_path / "keymacros.json").read_text(encoding="utf-8"))
    assert [p["id"] for p in saved["profiles"]] == ["default", "pvp"]


def test_notify_connection_and_select_profile(qapp, context: MacroContext) -> None:
    app = Application(context, input_listener=FakeInputListener())

    app.select_profile("pvp")
    assert context.active_profile.id == "pvp"
    assert context.config.connections == {}

    assert app.notify_connection(ConnectionKind.MULTIPLAYER, "Foo.Example.com").id == "default"
    app.select_profile("pvp")
    assert context.config.connections == {"foo.example.com": "pvp"}


def test_parse_connection() -> None:
    assert parse_connection("multiplayer:play.example.com:25565") == (
        ConnectionKind.MULTIPLAYER,
        "play.example.com:25565",
    )
    assert parse_connection("SinglePlayer:My World") == (ConnectionKind.SINGLEPLAYER, "My World")
    with pytest.raises(ValueError):
        parse_connection("lan:host")
    with pytest.raises(ValueError):
        parse_connection("multiplayer")
