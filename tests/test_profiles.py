from __future__ import annotations

from typing import List

import pytest

from keymacros.models import Config, Message, Profile, Trigger
from keymacros.profiles import ConnectionKind, ContextResolver, ProfileStore


@pytest.fixture()
def config() -> Config:
    config = Config.default()
    config.profiles.append(Profile(id="a", name="A"))
    config.profiles.append(Profile(id="b", name="B"))
    config.multiplayer_default_id = "b"
    return config


def test_connection_mapping_and_default_fallback(config: Config) -> None:
    store = ProfileStore(config)
    resolver = ContextResolver(store)
    store.link("foo.example.com", "a")

    assert resolver.activate_for_connection(ConnectionKind.MULTIPLAYER, "foo.example.com").id == "a"
    assert config.active_profile_id == "a"
    assert resolver.activate_for_connection(ConnectionKind.MULTIPLAYER, "bar.example.com").id == "b"
    assert config.active_profile_id == "b"


def test_singleplayer_uses_singleplayer_default(config: Config) -> None:
    resolver = ContextResolver(ProfileStore(config))

    profile = resolver.activate_for_connection(ConnectionKind.SINGLEPLAYER, "My World")

    assert profile.id == config.singleplayer_default_id
    assert resolver.in_singleplayer is True
    assert resolver.last_identifier == "my world"


def test_no_connection_uses_multiplayer_default(config: Config) -> None:
    store = ProfileStore(config)
    resolver = ContextResolver(store)
    store.link("foo.example.com", "a")
    assert config.singleplayer_default_id != config.multiplayer_default_id

    assert resolver.activate_for_connection(ConnectionKind.NONE, "").id == "b"
    assert resolver.in_singleplayer is False
    assert resolver.last_identifier is None
    assert resolver.activate_for_connection(ConnectionKind.NONE, "bar.example.com").id == "b"
    assert config.active_profile_id == "b"


def test_identifiers_are_normalized(config: Config) -> None:
    store = ProfileStore(config)

    assert store.link("  Foo.Example.COM ", "a") == "foo.example.com"
    assert store.lookup("FOO.example.com").id == "a"
    with pytest.raises(ValueError):
        store.link("   ", "a")


def test_link_moves_identifier_between_profiles(config: Config) -> None:
    store = ProfileStore(config)
    store.link("foo.example.com", "a")
    store.link("foo.example.com", "b")

    assert store.links_for("a") == []
    assert store.links_for("b") == ["foo.example.com"]


def test_listeners_run_on_every_activation(config: Config) -> None:
    resolver = ContextResolver(ProfileStore(config))
    seen: List[str] = []
    resolver.add_listener(lambda profile: seen.append(profile.id))

    resolver.activate("a")
    resolver.activate_for_connection(ConnectionKind.MULTIPLAYER, "x")

    assert seen == ["a", "b"]


def test_unknown_profile_is_rejected(config: Config) -> None:
    store = ProfileStore(config)
    with pytest.raises(KeyError):
        store.link("foo.example.com", "missing")
    with pytest.raises(KeyError):
        ContextResolver(store).activate("missing")
    assert config.connections == {}


def test_duplicate_profile_inserted_after_source(config: Config) -> None:
    store = ProfileStore(config)
    config.find_profile("a").triggers.append(Trigger(keys={"keyboard.k"}, messages=[Message("x")]))

    copy = store.duplicate_profile("a")

    ids = [profile.id for profile in config.profiles]
    assert ids.index(copy.id) == ids.index("a") + 1
    assert copy.name == "A (Copy)"
    assert copy.triggers == config.find_profile("a").triggers
    assert copy.triggers[0] is not config.find_profile("a").triggers[0]


def test_duplicate_unnamed_profile_uses_link_name(config: Config) -> None:
    store = ProfileStore(config)
    profile = store.create_profile()
    store.link("foo.example.com", profile.id)

    assert store.duplicate_profile(profile.id).name == "foo.example.com (Copy)"


def test_delete_profile_drops_links_and_reactivates_default(config: Config) -> None:
    store = ProfileStore(config)
    resolver = ContextResolver(store)
    store.link("foo.example.com", "a")
    resolver.activate_for_connection(ConnectionKind.MULTIPLAYER, "foo.example.com")

    store.delete_profile("a")

    assert config.find_profile("a") is None
    assert "foo.example.com" not in config.connections
    assert config.active_profile_id == "b"
    assert resolver.resolve(ConnectionKind.MULTIPLAYER, "foo.example.com").id == "b"


def test_default_profiles_cannot_be_deleted(config: Config) -> None:
    store = ProfileStore(config)
    with pytest.raises(ValueError):
        store.delete_profile("b")
    with pytest.raises(ValueError):
        store.delete_profile(config.singleplayer_default_id)
    assert len(config.profiles) == 3


def test_assign_current_connection(config: Config) -> None:
    store = ProfileStore(config)
    resolver = ContextResolver(store)
    with pytest.raises(ValueError):
        resolver.assign_current_connection("a")

    resolver.activate_for_connection(ConnectionKind.MULTIPLAYER, "Foo.Example.com")
    resolver.assign_current_connection("a")

    assert config.connections == {"foo.example.com": "a"}
    assert config.active_profile_id == "a"


def test_trigger_list_mutations(config: Config) -> None:
    store = ProfileStore(config)
    first = store.add_trigger("a", Trigger(keys={"keyboard.k"}))
    second = store.add_trigger("a", Trigger(keys={"keyboard.k"}))
    third = store.add_trigger("a")

    assert store.duplicate_flags("a") == [True, True, False]
    store.move_trigger("a", 2, 0)
    assert config.find_profile("a").triggers[0] is third
    assert store.remove_trigger("a", 1) is first
    assert config.find_profile("a").triggers == [third, second]


def test_move_and_rename_profile(config: Config) -> None:
    store = ProfileStore(config)
    store.move_profile("b", 0)
    store.rename_profile("b", "Servers")

    assert config.profiles[0].id == "b"
    assert config.profiles[0].name == "Servers"
