"""Loading, repairing and saving the Key Macros configuration document.

The document format has changed between releases: field names moved from
camelCase to snake_case, the default profiles were once stored inline, key
bindings were split over ``keyName``/``limitKeyName``, and the earliest
documents had no profiles at all, only root-level key lists. Each entity type
therefore has a table of :class:`FieldSpec` entries listing the names a field
has been stored under and, for required fields, how to derive a missing value
from what older documents did store.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import jsonschema

from .keys import from_glfw_code, normalize_key_set
from .matcher import TriggerRegistry
from .models import (
    CONFIG_VERSION,
    DEFAULT_PROFILE_ID,
    DEFAULT_REPEAT_INTERVAL_TICKS,
    Config,
    GlobalOptions,
    Message,
    Override,
    Profile,
    SendMode,
    Trigger,
)
from .profiles import normalize_identifier

_LOGGER = logging.getLogger(__name__)

CONFIG_FILE_NAME = "keymacros.json"


class ConfigError(RuntimeError):
    """Raised when the configuration document cannot be loaded or validated."""


class EntityRejected(ConfigError):
    """Raised when one stored entity cannot be repaired."""


_MISSING = object()


@dataclass(frozen=True)
class FieldSpec:
    """How to read one logical field from any historical document layout.

    ``aliases`` are tried in order after ``name``. When none is present,
    ``fallback`` derives a value from the raw entity and returns ``None`` when
    it does not apply. A required field left without a value rejects the
    entity; an optional one takes ``default``.
    """

    name: str
    aliases: Tuple[str, ...] = ()
    required: bool = False
    fallback: Optional[Callable[[Mapping[str, Any]], Any]] = None
    default: Any = None
    convert: Optional[Callable[[Any], Any]] = None


# Converters


def _as_override(value: Any) -> str:
    if isinstance(value, bool):
        return Override.ON.value if value else Override.OFF.value
    return Override(str(value).lower()).value


def _as_key_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = value.split("+")
    if not isinstance(value, (list, tuple)):
        raise ValueError("expected a list of key names")
    return sorted(normalize_key_set(str(item) for item in value))


def _as_send_mode(value: Any) -> str:
    return SendMode(str(value).lower()).value


# Fallback derivations for fields older documents stored differently

# Key objects written by obfuscated game builds keep the name under the
# mapped field name instead of "name".
KEY_NAME_FIELDS = ("name", "field_1663", "f_84853_")


def _key_object_name(value: Mapping[str, Any]) -> Optional[str]:
    for name in KEY_NAME_FIELDS:
        if isinstance(value.get(name), str):
            return value[name]
    return None


def _legacy_keys(raw: Mapping[str, Any]) -> Optional[List[str]]:
    keybinds = raw.get("keybinds")
    if isinstance(keybinds, list) and keybinds and isinstance(keybinds[0], Mapping):
        return _legacy_keys(keybinds[0])
    names: List[str] = []
    found = False
    for names_tried in (("keyName", "key", "keyCode"), ("limitKeyName", "limitKey")):
        value = next((raw[name] for name in names_tried if raw.get(name) is not None), None)
        if isinstance(value, Mapping):
            value = _key_object_name(value)
        if isinstance(value, str):
            names.append(value)
            found = True
    return names if found else None


def _legacy_messages(raw: Mapping[str, Any]) -> Optional[List[str]]:
    # The oldest layout kept all lines of a key in one ",,"-joined string.
    msg = raw.get("msg")
    return msg.split(",,") if isinstance(msg, str) else None


def _legacy_state(raw: Mapping[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = raw.get(name)
        if isinstance(value, Mapping):
            value = value.get("state")
        if value is not None:
            return str(value).upper()
    return None


def _legacy_send_mode(raw: Mapping[str, Any]) -> Optional[str]:
    mode = _legacy_state(raw, "sendMode", "sendStrategy")
    return {"ZERO": "SEND", "ONE": "TYPE", "TWO": "CYCLE"}.get(mode, mode) if mode else None


def _legacy_suppress(raw: Mapping[str, Any]) -> Optional[bool]:
    strategy = _legacy_state(raw, "conflictStrategy")
    if strategy is None:
        return None
    return strategy in ("VETO", "TWO")


def _legacy_repeat(raw: Mapping[str, Any]) -> Optional[bool]:
    mode = _legacy_send_mode(raw)
    return None if mode is None else mode == "REPEAT"


def _legacy_repeat_interval(raw: Mapping[str, Any]) -> Optional[int]:
    # Repeating macros used to keep their interval in spaceTicks.
    ticks = raw.get("spaceTicks")
    if _legacy_send_mode(raw) == "REPEAT" and isinstance(ticks, int) and ticks > 0:
        return ticks
    return None


def _legacy_mode(raw: Mapping[str, Any]) -> Optional[str]:
    mode = _legacy_send_mode(raw)
    if mode in ("CYCLE", "RANDOM"):
        return mode.lower()
    if raw.get("cycle") is True:
        return SendMode.CYCLE.value
    return None


def _legacy_space_ticks(raw: Mapping[str, Any]) -> Optional[int]:
    if "spaceTicks" not in raw or _legacy_send_mode(raw) == "REPEAT":
        return None
    ticks = raw["spaceTicks"]
    # -1 meant "use each message's own delay".
    if isinstance(ticks, int) and ticks < 0:
        return 0
    return ticks


def _generated_profile_id(raw: Mapping[str, Any]) -> str:
    return Profile.new_id()


def _legacy_profile_name(raw: Mapping[str, Any]) -> str:
    for link in raw.get("addresses") or raw.get("links") or ():
        if isinstance(link, str) and link.strip():
            return link
    return ""


# Root-level key lists of the releases before profiles existed, with the
# root flags that applied to each list.
_LEGACY_KEY_LISTS = (
    ("msgKeyListMono", "addToHistory", "showHudMessage"),
    ("monoKeySet", "monoAddToHistory", "monoShowHudMessage"),
    ("dualKeySet", "dualAddToHistory", "dualShowHudMessage"),
)


def _with_root_flags(entry: Any, history: Any, overlay: Any) -> Any:
    if not isinstance(entry, Mapping):
        return entry
    entry = dict(entry)
    if isinstance(history, bool):
        entry.setdefault("addToHistory", history)
    if isinstance(overlay, bool):
        entry.setdefault("showHudMessage", overlay)
    return entry


def _legacy_root_triggers(raw: Mapping[str, Any]) -> Optional[list]:
    triggers: List[Any] = []
    found = False
    for list_name, history, overlay in _LEGACY_KEY_LISTS:
        entries = raw.get(list_name)
        if isinstance(entries, list):
            found = True
            triggers.extend(
                _with_root_flags(entry, raw.get(history), raw.get(overlay))
                for entry in entries
            )
    code_map = raw.get("codeMsgMapDual")
    if isinstance(code_map, Mapping):
        found = True
        for code, msg in code_map.items():
            try:
                key_id = from_glfw_code(int(code))
            except (TypeError, ValueError):
                key_id = None
            entry = {"keys": [key_id] if key_id else [], "msg": msg}
            triggers.append(
                _with_root_flags(entry, raw.get("addToHistory"), raw.get("showHudMessage"))
            )
    return triggers if found else None


def _legacy_profiles(raw: Mapping[str, Any]) -> Optional[list]:
    if isinstance(raw.get("spDefaultProfile"), Mapping) or isinstance(
        raw.get("mpDefaultProfile"), Mapping
    ):
        # Inline default profiles; read separately.
        return []
    triggers = _legacy_root_triggers(raw)
    if triggers is None:
        return None
    return [{"id": DEFAULT_PROFILE_ID, "name": "Default", "triggers": triggers}]


def _root_level_options(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    return raw


MESSAGE_FIELDS = (
    FieldSpec("text", ("string", "message", "msg"), required=True, convert=str),
    FieldSpec("literal", ("submit",), default=True),
    FieldSpec("delay_ticks", ("delayTicks", "delay"), default=0),
    FieldSpec("add_to_history", ("addToHistory", "history"), default=False),
)

TRIGGER_FIELDS = (
    FieldSpec(
        "keys",
        ("keyNames", "chord"),
        required=True,
        fallback=_legacy_keys,
        convert=_as_key_list,
    ),
    FieldSpec("messages", ("msgs", "commands"), required=True, fallback=_legacy_messages),
    FieldSpec("suppress", ("cancelDefault", "veto"), fallback=_legacy_suppress, default=False),
    FieldSpec("repeat", ("repeating",), fallback=_legacy_repeat, default=False),
    FieldSpec(
        "repeat_interval_ticks",
        ("repeatIntervalTicks", "repeatTicks"),
        fallback=_legacy_repeat_interval,
        default=DEFAULT_REPEAT_INTERVAL_TICKS,
    ),
    FieldSpec("space_ticks", ("spacingTicks",), fallback=_legacy_space_ticks, default=0),
    FieldSpec("show_overlay", ("showOverlay", "showHudMessage"), default=False),
    FieldSpec(
        "mode",
        (),
        fallback=_legacy_mode,
        default=SendMode.SEND.value,
        convert=_as_send_mode,
    ),
)

PROFILE_FIELDS = (
    FieldSpec(
        "id",
        ("uuid", "profileId"),
        required=True,
        fallback=_generated_profile_id,
        convert=str,
    ),
    FieldSpec("name", ("displayName", "title"), required=True, fallback=_legacy_profile_name),
    FieldSpec("triggers", ("macros", "commandKeys", "cmdKeys"), required=True),
    FieldSpec("links", ("addresses",), default=()),
)

OPTIONS_FIELDS = (
    FieldSpec(
        "show_overlay",
        ("showOverlay", "showHudMessage"),
        default=Override.DEFER.value,
        convert=_as_override,
    ),
    FieldSpec(
        "add_to_history",
        ("addToHistory",),
        default=Override.DEFER.value,
        convert=_as_override,
    ),
    FieldSpec("ratelimit_count", ("ratelimitCount",), default=10),
    FieldSpec("ratelimit_ticks", ("ratelimitTicks",), default=400),
    FieldSpec("ratelimit_singleplayer", ("ratelimitSp",), default=False),
)

CONFIG_FIELDS = (
    FieldSpec("version", (), default=0),
    FieldSpec("profiles", ("profileList",), required=True, fallback=_legacy_profiles),
    FieldSpec("singleplayer_default", ("singleplayerDefault", "spDefault", "spDefaultProfile")),
    FieldSpec("multiplayer_default", ("multiplayerDefault", "mpDefault", "mpDefaultProfile")),
    FieldSpec("active_profile", ("activeProfile", "active")),
    FieldSpec("connections", ("addressMap", "worldProfileMap")),
    FieldSpec("options", ("globalOptions", "settings"), fallback=_root_level_options),
)


# Serialization


def _message_to_dict(message: Message) -> dict:
    return {
        "text": message.text,
        "literal": message.literal,
        "delay_ticks": message.delay_ticks,
        "add_to_history": message.add_to_history,
    }


def _trigger_to_dict(trigger: Trigger) -> dict:
    return {
        "keys": sorted(trigger.keys),
        "messages": [_message_to_dict(message) for message in trigger.messages],
        "suppress": trigger.suppress,
        "repeat": trigger.repeat,
        "repeat_interval_ticks": trigger.repeat_interval_ticks,
        "space_ticks": trigger.space_ticks,
        "show_overlay": trigger.show_overlay,
        "mode": trigger.mode.value,
    }


def _profile_to_dict(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "name": profile.name,
        "triggers": [_trigger_to_dict(trigger) for trigger in profile.triggers],
    }


def _options_to_dict(options: GlobalOptions) -> dict:
    return {
        "show_overlay": options.show_overlay.value,
        "add_to_history": options.add_to_history.value,
        "ratelimit_count": options.ratelimit_count,
        "ratelimit_ticks": options.ratelimit_ticks,
        "ratelimit_singleplayer": options.ratelimit_singleplayer,
    }


def config_to_dict(config: Config) -> dict:
    """Convert config to a JSON-serializable dictionary using current names."""

    return {
        "version": CONFIG_VERSION,
        "profiles": [_profile_to_dict(profile) for profile in config.profiles],
        "active_profile": config.active_profile_id,
        "singleplayer_default": config.singleplayer_default_id,
        "multiplayer_default": config.multiplayer_default_id,
        "connections": dict(config.connections),
        "options": _options_to_dict(config.options),
    }


# Deserialization


class _DocumentReader:
    """Build a :class:`Config` from a raw document, one entity at a time.

    Entities that cannot be repaired are dropped and recorded in
    ``rejected``; only a broken root raises.
    """

    def __init__(self, schema: Mapping[str, Any], logger: logging.Logger) -> None:
        self._definitions = schema.get("definitions", {})
        self._logger = logger
        self.rejected: List[str] = []
        self.repaired = 0

    def config(self, raw: Any) -> Config:
        values = self._read(raw, CONFIG_FIELDS, "config")
        profiles: List[Profile] = []
        links: List[Tuple[str, str]] = []

        def _add(raw_profile: Any, label: str) -> Optional[str]:
            try:
                profile, profile_links = self.profile(raw_profile, label)
            except EntityRejected as exc:
                self._reject(exc)
                return None
            if any(existing.id == profile.id for existing in profiles):
                self._logger.warning("Profile id %s is not unique; assigning a new id", profile.id)
                profile.id = Profile.new_id()
                self.repaired += 1
            profiles.append(profile)
            links.extend((link, profile.id) for link in profile_links)
            return profile.id

        defaults: Dict[str, Optional[str]] = {}
        for key in ("singleplayer_default", "multiplayer_default"):
            ref = values[key]
            if isinstance(ref, Mapping):
                # Inline default profile from an earlier release.
                defaults[key] = _add(ref, key.replace("_", " ") + " profile")
            else:
                defaults[key] = None if ref is None else str(ref)

        if not isinstance(values["profiles"], list):
            raise EntityRejected("config field 'profiles' is not a list")
        for index, raw_profile in enumerate(values["profiles"]):
            _add(raw_profile, f"profile #{index + 1}")
        if not profiles:
            raise EntityRejected("config contains no usable profiles")

        ids = [profile.id for profile in profiles]
        for key, ref in defaults.items():
            if ref not in ids:
                self._logger.info("Missing field '%s'; using profile %s", key, ids[0])
                defaults[key] = ids[0]
                self.repaired += 1
        active = values["active_profile"]
        active = None if active is None else str(active)
        if active not in ids:
            active = defaults["multiplayer_default"]

        return Config(
            profiles=profiles,
            active_profile_id=active,  # type: ignore[arg-type]
            singleplayer_default_id=defaults["singleplayer_default"],  # type: ignore[arg-type]
            multiplayer_default_id=defaults["multiplayer_default"],  # type: ignore[arg-type]
            connections=self._connections(values["connections"], links, ids),
            options=self.options(values["options"]),
        )

    def profile(self, raw: Any, label: str) -> Tuple[Profile, List[str]]:
        values = self._read(raw, PROFILE_FIELDS, label)
        label = f"profile {values['id']!r} ({values['name'] or 'unnamed'})"
        if not isinstance(values["triggers"], list):
            raise EntityRejected(f"{label} field 'triggers' is not a list")
        triggers = []
        for index, raw_trigger in enumerate(values["triggers"]):
            try:
                triggers.append(self.trigger(raw_trigger, f"{label} trigger #{index + 1}"))
            except EntityRejected as exc:
                self._reject(exc)
        profile = Profile(id=values["id"], name=str(values["name"]), triggers=triggers)
        self._validate(_profile_to_dict(profile), "profile", label)
        raw_links = values["links"] if isinstance(values["links"], (list, tuple)) else ()
        return profile, [link for link in raw_links if isinstance(link, str)]

    def trigger(self, raw: Any, label: str) -> Trigger:
        values = self._read(raw, TRIGGER_FIELDS, label)
        if not isinstance(values["messages"], list):
            raise EntityRejected(f"{label} field 'messages' is not a list")
        messages = []
        for index, raw_message in enumerate(values["messages"]):
            try:
                messages.append(self.message(raw_message, f"{label} message #{index + 1}"))
            except EntityRejected as exc:
                self._reject(exc)

        # Macro-wide settings of older releases now live on each message.
        if _legacy_send_mode(raw) == "TYPE" or raw.get("fullSend") is False:
            for message in messages:
                message.literal = False
        if raw.get("addToHistory") is True:
            for message in messages:
                message.add_to_history = True

        values["messages"] = [_message_to_dict(message) for message in messages]
        self._validate(values, "trigger", label)
        return Trigger(
            keys=frozenset(values["keys"]),
            messages=messages,
            suppress=values["suppress"],
            repeat=values["repeat"],
            repeat_interval_ticks=values["repeat_interval_ticks"],
            space_ticks=values["space_ticks"],
            show_overlay=values["show_overlay"],
            mode=SendMode(values["mode"]),
        )

    def message(self, raw: Any, label: str) -> Message:
        if isinstance(raw, str):
            raw = {"text": raw}
        values = self._read(raw, MESSAGE_FIELDS, label)
        self._validate(values, "message", label)
        return Message(**values)

    def options(self, raw: Any) -> GlobalOptions:
        try:
            values = self._read(raw, OPTIONS_FIELDS, "options")
            self._validate(values, "options", "options")
        except EntityRejected as exc:
            self._reject(exc)
            return GlobalOptions()
        return GlobalOptions(
            show_overlay=Override(values["show_overlay"]),
            add_to_history=Override(values["add_to_history"]),
            ratelimit_count=values["ratelimit_count"],
            ratelimit_ticks=values["ratelimit_ticks"],
            ratelimit_singleplayer=values["ratelimit_singleplayer"],
        )

    def _connections(
        self, raw: Any, links: List[Tuple[str, str]], ids: List[str]
    ) -> Dict[str, str]:
        connections: Dict[str, str] = {}
        if raw is not None and not isinstance(raw, Mapping):
            self._reject(EntityRejected("config field 'connections' is not an object"))
            raw = None
        for identifier, profile_id in (raw or {}).items():
            normalized = normalize_identifier(str(identifier))
            if not normalized or str(profile_id) not in ids:
                self._reject(
                    EntityRejected(f"connection {identifier!r} points at unknown profile {profile_id!r}")
                )
                continue
            connections[normalized] = str(profile_id)
        # Links stored on profiles; the first profile claiming an identifier keeps it.
        for identifier, profile_id in links:
            normalized = normalize_identifier(identifier)
            if normalized and normalized not in connections:
                connections[normalized] = profile_id
        return connections

    def _read(self, raw: Any, fields: Tuple[FieldSpec, ...], label: str) -> Dict[str, Any]:
        if not isinstance(raw, Mapping):
            raise EntityRejected(f"{label} is not an object")
        values: Dict[str, Any] = {}
        for spec in fields:
            value = _MISSING
            for name in (spec.name,) + spec.aliases:
                if raw.get(name) is not None:
                    value = raw[name]
                    break
            if value is _MISSING and spec.fallback is not None:
                derived = spec.fallback(raw)
                if derived is not None:
                    value = derived
                    if spec.required:
                        self._logger.info("Repaired missing field '%s' of %s", spec.name, label)
                        self.repaired += 1
            if value is _MISSING:
                if spec.required:
                    raise EntityRejected(f"{label} is missing required field '{spec.name}'")
                values[spec.name] = spec.default
                continue
            if spec.convert is not None:
                try:
                    value = spec.convert(value)
                except (TypeError, ValueError) as exc:
                    raise EntityRejected(f"{label} has invalid '{spec.name}': {exc}") from exc
            values[spec.name] = value
        return values

    def _validate(self, data: Mapping[str, Any], definition: str, label: str) -> None:
        validator = jsonschema.Draft7Validator(
            {"$ref": f"#/definitions/{definition}", "definitions": self._definitions}
        )
        error = jsonschema.exceptions.best_match(validator.iter_errors(data))
        if error is not None:
            raise EntityRejected(f"{label} failed validation: {error.message}")

    def _reject(self, exc: EntityRejected) -> None:
        self._logger.warning("Dropping invalid entry: %s", exc)
        self.rejected.append(str(exc))


# Purge


@dataclass
class PurgeReport:
    """Summary of a :func:`purge` pass."""

    removed_triggers: int = 0
    removed_messages: int = 0
    duplicates: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed_triggers or self.removed_messages)


def purge(config: Config) -> PurgeReport:
    """Remove blank messages and unset triggers; report duplicate key-sets.

    A message is blank when it has no visible text, which is also when the
    executor skips it. Cycle triggers keep their blank entries: each one is a
    firing that sends nothing. Duplicates are kept: the first defined one is
    the one that fires, and the later ones stay in the document so nothing
    the user wrote is lost.
    """

    report = PurgeReport()
    for profile in config.profiles:
        kept = []
        for trigger in profile.triggers:
            messages = []
            for message in trigger.messages:
                if message.literal:
                    message.text = message.text.rstrip()
                if message.text.strip() or trigger.mode is SendMode.CYCLE:
                    messages.append(message)
            report.removed_messages += len(trigger.messages) - len(messages)
            trigger.messages = messages
            if trigger.is_empty:
                report.removed_triggers += 1
                continue
            kept.append(trigger)
        profile.triggers[:] = kept

        for group in TriggerRegistry(profile).duplicates():
            _LOGGER.warning(
                "Profile %s has %d triggers bound to %s; only the first one fires",
                profile.display_name(),
                len(group),
                group[0].label(),
            )
            report.duplicates.extend((profile.id, trigger.label()) for trigger in group[1:])
    if report.changed:
        _LOGGER.info(
            "Purged %d empty triggers and %d blank messages",
            report.removed_triggers,
            report.removed_messages,
        )
    return report


# Load and save


def default_config_path() -> Path:
    return Path.cwd() / "config" / CONFIG_FILE_NAME


def default_schema_path() -> Path:
    return Path(__file__).resolve().with_name("schema.json")


def _resolve_paths(
    config_path: Optional[Path], schema_path: Optional[Path]
) -> Tuple[Path, Path]:
    return Path(config_path or default_config_path()), Path(schema_path or default_schema_path())


def _load_schema(schema_path: Path) -> dict:
    try:
        return json.loads(schema_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Schema file {schema_path} is missing") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Schema file {schema_path} is not valid JSON: {exc}") from exc


def _read_document(config_path: Path) -> Any:
    try:
        return json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Config file {config_path} could not be read: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Config file {config_path} is not valid JSON: {exc}") from exc


def _validate_document(data: dict, schema: dict, config: Config) -> None:
    if not config.is_consistent():
        raise ConfigError("Configuration references unknown or duplicate profile ids")
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as exc:
        raise ConfigError(f"Configuration validation error: {exc.message}") from exc


def _preserve(config_path: Path, suffix: str) -> None:
    target = config_path.with_name(config_path.name + suffix)
    try:
        shutil.copyfile(config_path, target)
    except OSError:
        _LOGGER.exception("Unable to back up %s", config_path)
        return
    _LOGGER.warning("Kept a copy of the previous configuration at %s", target)


def parse_config(data: Any, *, schema_path: Optional[Path] = None) -> Config:
    """Build a Config from an already decoded document.

    Unrepairable entities are dropped; a broken root raises :class:`ConfigError`.
    """

    _, sch_path = _resolve_paths(None, schema_path)
    schema = _load_schema(sch_path)
    config = _DocumentReader(schema, _LOGGER).config(data)
    _validate_document(config_to_dict(config), schema, config)
    return config


def load_config(
    config_path: Optional[Path] = None,
    *,
    schema_path: Optional[Path] = None,
) -> Config:
    """Load the configuration, falling back to defaults on any failure.

    A missing or unreadable document is replaced by the default Config, which
    is written straight away. A document that only lost some entries keeps
    its previous content in ``<name>.bak``.
    """

    cfg_path, sch_path = _resolve_paths(config_path, schema_path)
    try:
        schema = _load_schema(sch_path)
    except ConfigError as exc:
        _LOGGER.error("Using default configuration: %s", exc)
        return Config.default()

    if not cfg_path.exists():
        _LOGGER.info("No configuration at %s; creating defaults", cfg_path)
        return _fresh_default(cfg_path, sch_path)

    reader = _DocumentReader(schema, _LOGGER)
    try:
        config = reader.config(_read_document(cfg_path))
        _validate_document(config_to_dict(config), schema, config)
    except ConfigError as exc:
        _LOGGER.error("Unable to load configuration from %s: %s", cfg_path, exc)
        _preserve(cfg_path, ".corrupt")
        return _fresh_default(cfg_path, sch_path)

    if reader.rejected:
        _LOGGER.warning("Dropped %d invalid entries from %s", len(reader.rejected), cfg_path)
        _preserve(cfg_path, ".bak")
    _LOGGER.info("Loaded %d profiles from %s", len(config.profiles), cfg_path)
    return config


def _fresh_default(config_path: Path, schema_path: Path) -> Config:
    config = Config.default()
    save_config(config, config_path, schema_path=schema_path)
    return config


def save_config(
    config: Config,
    config_path: Optional[Path] = None,
    *,
    schema_path: Optional[Path] = None,
) -> bool:
    """Purge and write the whole configuration, replacing the previous file.

    Returns ``False`` when the document could not be validated or written;
    the error is logged and ``config`` is left as it was after purging.
    """

    cfg_path, sch_path = _resolve_paths(config_path, schema_path)
    purge(config)
    try:
        data = config_to_dict(config)
        _validate_document(data, _load_schema(sch_path), config)
        _write_replacing(cfg_path, json.dumps(data, indent=2) + "\n")
    except (ConfigError, OSError):
        _LOGGER.exception("Unable to save configuration to %s", cfg_path)
        return False
    _LOGGER.info("Saved %d profiles to %s", len(config.profiles), cfg_path)
    return True


def _write_replacing(config_path: Path, text: str) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = config_path.with_name(config_path.name + ".tmp")
    try:
        temp_path.write_text(text, encoding="utf-8")
        os.replace(temp_path, config_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
