"""Layered configuration for ccbell.

Layers, most to least specific:

    active-profile event override > base event override > built-in default

Override fields set to None inherit from the layer below. An explicit
``false``/``0`` in the JSON document is a real value and does override.

Document location: ~/.claude/ccbell.config.json
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from filelock import FileLock, Timeout as FileLockTimeout

from ccbell.errors import ConfigError
from ccbell.quiet_hours import is_in_quiet_hours
from ccbell.transaction import TransactionError, atomic_write_json

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"

# Closed set; a new event kind needs a code change here.
VALID_EVENTS = ("stop", "permission_prompt", "idle_prompt", "subagent")

DEFAULT_SOUND_SCHEME = "bundled"
DEFAULT_VOLUME = 0.5
DEFAULT_COOLDOWN = 0

_TIME_FORMAT = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")
_EVENT_NAME = re.compile(r"^[a-z_]+$")

ENSURE_LOCK_TIMEOUT = 2


@dataclass
class EventSettings:
    """Per-event override. None on any field means "inherit"."""
    enabled: Optional[bool] = None
    sound: Optional[str] = None
    volume: Optional[float] = None
    cooldown: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any, where: str) -> "EventSettings":
        if not isinstance(data, dict):
            raise ConfigError(f"{where}: expected an object, got {type(data).__name__}")

        enabled = data.get("enabled")
        if enabled is not None and not isinstance(enabled, bool):
            raise ConfigError(f"{where}: enabled must be true or false")

        sound = data.get("sound")
        if sound is not None and not isinstance(sound, str):
            raise ConfigError(f"{where}: sound must be a string")

        volume = data.get("volume")
        if volume is not None:
            if isinstance(volume, bool) or not isinstance(volume, (int, float)):
                raise ConfigError(f"{where}: volume must be a number")
            volume = float(volume)

        cooldown = data.get("cooldown")
        if cooldown is not None:
            if isinstance(cooldown, bool) or not isinstance(cooldown, int):
                raise ConfigError(f"{where}: cooldown must be an integer number of seconds")

        return cls(enabled=enabled, sound=sound or None, volume=volume, cooldown=cooldown)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        if self.enabled is not None:
            out["enabled"] = self.enabled
        if self.sound:
            out["sound"] = self.sound
        if self.volume is not None:
            out["volume"] = self.volume
        if self.cooldown is not None:
            out["cooldown"] = self.cooldown
        return out


@dataclass(frozen=True)
class EffectiveEventSetting:
    """Fully resolved settings for one event; no inherited fields remain."""
    enabled: bool
    sound: str
    volume: float
    cooldown: int


@dataclass
class QuietHours:
    start: str = ""
    end: str = ""


@dataclass
class Profile:
    events: dict[str, EventSettings] = field(default_factory=dict)


@dataclass
class Config:
    enabled: bool = True
    debug: bool = False
    active_profile: str = DEFAULT_PROFILE
    quiet_hours: Optional[QuietHours] = None
    events: dict[str, EventSettings] = field(default_factory=dict)
    profiles: dict[str, Profile] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Any, base: Optional["Config"] = None) -> "Config":
        """Build a Config from a parsed JSON document.

        Keys present in *data* replace those of *base* (defaults when omitted);
        an event entry in *data* replaces the base entry for that event.
        Type errors raise ConfigError. Range checks are left to validate().
        """
        if not isinstance(data, dict):
            raise ConfigError("config root must be a JSON object")

        cfg = base if base is not None else default_config()

        if "enabled" in data:
            if not isinstance(data["enabled"], bool):
                raise ConfigError("enabled must be true or false")
            cfg.enabled = data["enabled"]

        if "debug" in data:
            if not isinstance(data["debug"], bool):
                raise ConfigError("debug must be true or false")
            cfg.debug = data["debug"]

        if "activeProfile" in data:
            active = data["activeProfile"]
            if active is not None and not isinstance(active, str):
                raise ConfigError("activeProfile must be a string")
            cfg.active_profile = active or DEFAULT_PROFILE

        if "quietHours" in data:
            qh = data["quietHours"]
            if qh is None:
                cfg.quiet_hours = None
            elif isinstance(qh, dict):
                start = qh.get("start")
                end = qh.get("end")
                for bound in (start, end):
                    if bound is not None and not isinstance(bound, str):
                        raise ConfigError("quietHours.start and quietHours.end must be strings")
                cfg.quiet_hours = QuietHours(start=start or "", end=end or "")
            else:
                raise ConfigError("quietHours must be an object")

        events = data.get("events")
        if events is not None:
            if not isinstance(events, dict):
                raise ConfigError("events must be an object")
            for name, raw in events.items():
                cfg.events[name] = EventSettings.from_dict(raw, f"event {name}")

        profiles = data.get("profiles")
        if profiles is not None:
            if not isinstance(profiles, dict):
                raise ConfigError("profiles must be an object")
            for profile_name, raw_profile in profiles.items():
                if not isinstance(raw_profile, dict):
                    raise ConfigError(f"profile {profile_name}: expected an object")
                raw_events = raw_profile.get("events") or {}
                if not isinstance(raw_events, dict):
                    raise ConfigError(f"profile {profile_name}: events must be an object")
                cfg.profiles[profile_name] = Profile(events={
                    name: EventSettings.from_dict(raw, f"profile {profile_name}, event {name}")
                    for name, raw in raw_events.items()
                })

        return cfg

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "enabled": self.enabled,
            "debug": self.debug,
            "activeProfile": self.active_profile,
        }
        if self.quiet_hours is not None:
            out["quietHours"] = {"start": self.quiet_hours.start, "end": self.quiet_hours.end}
        if self.events:
            out["events"] = {name: ev.to_dict() for name, ev in self.events.items()}
        if self.profiles:
            out["profiles"] = {
                name: {"events": {ev_name: ev.to_dict() for ev_name, ev in profile.events.items()}}
                for name, profile in self.profiles.items()
            }
        return out

    def save(self, path: Path) -> None:
        """Write the document atomically."""
        try:
            atomic_write_json(path, self.to_dict())
        except TransactionError as e:
            raise ConfigError(f"failed to write config: {e}") from e

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise ConfigError on the first invalid field."""
        if self.quiet_hours is not None:
            if self.quiet_hours.start and not _TIME_FORMAT.match(self.quiet_hours.start):
                raise ConfigError(
                    f"invalid quietHours.start format: {self.quiet_hours.start} (expected HH:MM)"
                )
            if self.quiet_hours.end and not _TIME_FORMAT.match(self.quiet_hours.end):
                raise ConfigError(
                    f"invalid quietHours.end format: {self.quiet_hours.end} (expected HH:MM)"
                )

        if self.active_profile and self.active_profile != DEFAULT_PROFILE:
            if self.active_profile not in self.profiles:
                raise ConfigError(f"activeProfile {self.active_profile!r} not found in profiles")

        for name, event in self.events.items():
            _validate_event_settings(name, event, "")

        for profile_name, profile in self.profiles.items():
            for name, event in profile.events.items():
                _validate_event_settings(name, event, f"profile {profile_name}, ")

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def get_event_config(self, event: str) -> EffectiveEventSetting:
        """Overlay default < base event < active-profile event. Never raises."""
        enabled = True
        sound = f"{DEFAULT_SOUND_SCHEME}:{event}"
        volume = DEFAULT_VOLUME
        cooldown = DEFAULT_COOLDOWN

        layers = [self.events.get(event)]
        if self.active_profile and self.active_profile != DEFAULT_PROFILE:
            profile = self.profiles.get(self.active_profile)
            if profile is not None:
                layers.append(profile.events.get(event))

        for layer in layers:
            if layer is None:
                continue
            if layer.enabled is not None:
                enabled = layer.enabled
            if layer.sound:
                sound = layer.sound
            if layer.volume is not None:
                volume = layer.volume
            if layer.cooldown is not None:
                cooldown = layer.cooldown

        return EffectiveEventSetting(enabled=enabled, sound=sound, volume=volume, cooldown=cooldown)

    def is_in_quiet_hours(self, now=None) -> bool:
        return is_in_quiet_hours(self.quiet_hours, now)


def _validate_event_settings(name: str, event: EventSettings, prefix: str) -> None:
    if name not in VALID_EVENTS:
        raise ConfigError(f"{prefix}unknown event type: {name}")
    if event.volume is not None and (math.isnan(event.volume) or not 0.0 <= event.volume <= 1.0):
        raise ConfigError(f"{prefix}event {name}: volume must be 0.0-1.0, got {event.volume}")
    if event.cooldown is not None and event.cooldown < 0:
        raise ConfigError(f"{prefix}event {name}: cooldown cannot be negative")


def default_config() -> Config:
    """Built-in defaults; every valid event is listed so the written file is editable."""
    events = {
        name: EventSettings(
            enabled=True,
            sound=f"{DEFAULT_SOUND_SCHEME}:{name}",
            volume=DEFAULT_VOLUME,
            cooldown=DEFAULT_COOLDOWN,
        )
        for name in VALID_EVENTS
    }
    events["permission_prompt"].volume = 0.7
    return Config(events=events)


def validate_event_type(event: str) -> None:
    """Raise ConfigError unless *event* is a known event name."""
    if not _EVENT_NAME.match(event):
        raise ConfigError("invalid event type format: must be lowercase letters and underscores only")
    if event not in VALID_EVENTS:
        raise ConfigError(f"unknown event type: {event} (valid: {', '.join(VALID_EVENTS)})")


def load_config(config_path: Optional[Path]) -> tuple[Config, str]:
    """Load and validate the config file.

    Returns (config, source path). A missing file yields the defaults and an
    empty source path. Malformed JSON and invalid fields raise ConfigError.
    """
    cfg = default_config()
    source = ""

    if config_path is not None:
        try:
            raw = config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raw = None
        except UnicodeDecodeError as e:
            raise ConfigError(f"invalid JSON in {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"cannot read {config_path}: {e}") from e

        if raw is not None:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigError(f"invalid JSON in {config_path}: {e}") from e
            cfg = Config.from_dict(data, base=cfg)
            source = str(config_path)

    try:
        cfg.validate()
    except ConfigError as e:
        raise ConfigError(f"config validation failed: {e}") from e

    return cfg, source


def ensure_config(config_path: Optional[Path]) -> bool:
    """Write the default document if no config file exists yet.

    Returns True if a file was written. Concurrent first runs are serialized
    with a lock file next to the config.
    """
    if config_path is None or config_path.exists():
        return False

    lock_path = config_path.with_name(config_path.name + ".lock")
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(lock_path), timeout=ENSURE_LOCK_TIMEOUT):
            if config_path.exists():
                return False
            default_config().save(config_path)
    except FileLockTimeout as e:
        raise ConfigError(f"timed out waiting for {lock_path}") from e
    except OSError as e:
        raise ConfigError(f"failed to create config directory: {e}") from e

    logger.debug("Wrote default config to %s", config_path)
    return True
