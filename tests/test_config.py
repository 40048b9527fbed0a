"""Tests for ccbell/config.py loading, validation and overlay."""

import json
import threading

import pytest

from ccbell.config import (
    VALID_EVENTS,
    Config,
    EffectiveEventSetting,
    EventSettings,
    Profile,
    default_config,
    ensure_config,
    load_config,
    validate_event_type,
)
from ccbell.errors import ConfigError


# ==============================================================================
# load_config
# ==============================================================================

def test_load_missing_file_returns_defaults(paths):
    """No config file is not an error."""
    cfg, source = load_config(paths.config_file)
    assert source == ""
    assert cfg.enabled is True
    assert cfg.debug is False
    assert cfg.active_profile == "default"
    assert set(cfg.events) == set(VALID_EVENTS)


def test_load_without_home_returns_defaults():
    """A None path (no HOME) behaves like a missing file."""
    cfg, source = load_config(None)
    assert source == ""
    assert cfg.enabled is True


def test_load_reports_source_path(paths, write_config):
    """Loaded file path is returned as the source."""
    write_config({"enabled": False})
    cfg, source = load_config(paths.config_file)
    assert source == str(paths.config_file)
    assert cfg.enabled is False


def test_load_malformed_json_raises(paths, write_config):
    """Malformed JSON is a hard error."""
    write_config("{not json")
    with pytest.raises(ConfigError, match="invalid JSON"):
        load_config(paths.config_file)


def test_load_non_utf8_raises(paths):
    """Undecodable bytes are reported like malformed JSON."""
    paths.config_file.write_bytes(b"\xff\xfe\x00")
    with pytest.raises(ConfigError, match="invalid JSON"):
        load_config(paths.config_file)


def test_load_non_object_root_raises(paths, write_config):
    """The document root must be an object."""
    write_config([1, 2, 3])
    with pytest.raises(ConfigError):
        load_config(paths.config_file)


def test_load_event_entry_replaces_default_entry(paths, write_config):
    """A file event entry replaces the default one; missing fields inherit built-ins."""
    write_config({"events": {"permission_prompt": {"cooldown": 30}}})
    cfg, _ = load_config(paths.config_file)
    setting = cfg.get_event_config("permission_prompt")
    assert setting == EffectiveEventSetting(
        enabled=True, sound="bundled:permission_prompt", volume=0.5, cooldown=30,
    )


def test_load_keeps_other_default_events(paths, write_config):
    """Events not mentioned in the file keep their defaults."""
    write_config({"events": {"stop": {"volume": 0.1}}})
    cfg, _ = load_config(paths.config_file)
    assert cfg.get_event_config("permission_prompt").volume == 0.7


@pytest.mark.parametrize("doc,message", [
    ({"events": {"launch_missiles": {}}}, "unknown event type"),
    ({"events": {"stop": {"volume": 1.5}}}, "volume"),
    ({"events": {"stop": {"volume": -0.1}}}, "volume"),
    ({"events": {"stop": {"cooldown": -1}}}, "cooldown"),
    ({"activeProfile": "night"}, "not found"),
    ({"quietHours": {"start": "10pm", "end": "07:00"}}, "quietHours.start"),
    ({"quietHours": {"start": "22:00", "end": "24:00"}}, "quietHours.end"),
    ({"profiles": {"work": {"events": {"bogus": {}}}}}, "profile work"),
    ({"profiles": {"work": {"events": {"stop": {"volume": 2}}}}}, "volume"),
    ({"profiles": {"work": {"events": {"stop": {"cooldown": -5}}}}}, "cooldown"),
])
def test_load_validation_errors(paths, write_config, doc, message):
    """Every validation rule is a hard error."""
    write_config(doc)
    with pytest.raises(ConfigError, match=message):
        load_config(paths.config_file)


@pytest.mark.parametrize("doc", [
    {"enabled": "yes"},
    {"debug": 1},
    {"activeProfile": 3},
    {"quietHours": "22:00-07:00"},
    {"quietHours": {"start": 0, "end": "07:00"}},
    {"quietHours": {"start": "22:00", "end": False}},
    {"events": []},
    {"events": {"stop": "loud"}},
    {"events": {"stop": {"enabled": "true"}}},
    {"events": {"stop": {"volume": "0.5"}}},
    {"events": {"stop": {"volume": True}}},
    {"events": {"stop": {"cooldown": 1.5}}},
    {"events": {"stop": {"sound": 7}}},
    {"profiles": {"work": []}},
])
def test_load_type_errors(paths, write_config, doc):
    """Wrongly typed fields are rejected, never coerced."""
    write_config(doc)
    with pytest.raises(ConfigError):
        load_config(paths.config_file)


def test_active_profile_default_sentinel_needs_no_profile(paths, write_config):
    """activeProfile "default" is valid without a matching profile."""
    write_config({"activeProfile": "default", "profiles": {}})
    cfg, _ = load_config(paths.config_file)
    assert cfg.active_profile == "default"


def test_unknown_top_level_keys_are_ignored(paths, write_config):
    """Extra keys do not break loading."""
    write_config({"enabled": True, "theme": "dark"})
    cfg, _ = load_config(paths.config_file)
    assert cfg.enabled is True


# ==============================================================================
# get_event_config overlay
# ==============================================================================

def test_overlay_builtin_defaults_when_event_absent():
    """An event with no override resolves to the built-in defaults."""
    cfg = Config()
    assert cfg.get_event_config("subagent") == EffectiveEventSetting(
        enabled=True, sound="bundled:subagent", volume=0.5, cooldown=0,
    )


def test_overlay_base_event_over_defaults():
    """Base event fields replace defaults; None fields inherit."""
    cfg = Config(events={"stop": EventSettings(volume=0.9, sound="custom:/tmp/a.mp3")})
    setting = cfg.get_event_config("stop")
    assert setting.volume == 0.9
    assert setting.sound == "custom:/tmp/a.mp3"
    assert setting.enabled is True
    assert setting.cooldown == 0


def test_overlay_profile_over_base():
    """Active profile overrides beat base overrides field by field."""
    cfg = Config(
        active_profile="work",
        events={"stop": EventSettings(volume=0.9, cooldown=10)},
        profiles={"work": Profile(events={"stop": EventSettings(volume=0.2)})},
    )
    setting = cfg.get_event_config("stop")
    assert setting.volume == 0.2
    assert setting.cooldown == 10


def test_overlay_explicit_zero_values_override():
    """false / 0 / 0.0 are values, not "unset"."""
    cfg = Config(
        active_profile="silent",
        events={"stop": EventSettings(cooldown=60, volume=0.8)},
        profiles={"silent": Profile(events={"stop": EventSettings(enabled=False, cooldown=0, volume=0.0)})},
    )
    setting = cfg.get_event_config("stop")
    assert setting.enabled is False
    assert setting.cooldown == 0
    assert setting.volume == 0.0


def test_overlay_empty_sound_inherits():
    """An empty sound string does not override."""
    cfg = Config(events={"stop": EventSettings(sound="")})
    assert cfg.get_event_config("stop").sound == "bundled:stop"


def test_overlay_inactive_profile_ignored():
    """Profiles other than the active one have no effect."""
    cfg = Config(
        active_profile="default",
        profiles={"work": Profile(events={"stop": EventSettings(volume=0.1)})},
    )
    assert cfg.get_event_config("stop").volume == 0.5


def test_overlay_missing_profile_not_applied():
    """A dangling active profile is skipped, not an error."""
    cfg = Config(active_profile="ghost")
    assert cfg.get_event_config("stop").volume == 0.5


def test_overlay_is_pure():
    """Resolving twice gives the same answer and leaves the config untouched."""
    cfg = Config(events={"stop": EventSettings(volume=0.3)})
    before = cfg.to_dict()
    first = cfg.get_event_config("stop")
    second = cfg.get_event_config("stop")
    assert first == second
    assert cfg.to_dict() == before


# ==============================================================================
# ensure_config / round trip
# ==============================================================================

def test_ensure_config_writes_defaults(paths):
    """First run writes a full default document."""
    assert ensure_config(paths.config_file) is True
    data = json.loads(paths.config_file.read_text())
    assert data["enabled"] is True
    assert data["activeProfile"] == "default"
    assert set(data["events"]) == set(VALID_EVENTS)
    assert data["events"]["permission_prompt"]["volume"] == 0.7


def test_ensure_config_keeps_existing_file(paths, write_config):
    """An existing config is never overwritten."""
    write_config({"enabled": False})
    assert ensure_config(paths.config_file) is False
    assert json.loads(paths.config_file.read_text()) == {"enabled": False}


def test_ensure_config_without_home():
    """No HOME means nothing to write."""
    assert ensure_config(None) is False


def test_ensure_config_unwritable_raises(tmp_path):
    """Failure to create the directory is reported as ConfigError."""
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(ConfigError):
        ensure_config(blocker / ".claude" / "ccbell.config.json")


def test_ensure_config_concurrent_first_runs(paths):
    """Racing first runs produce exactly one valid file."""
    results = []

    def worker():
        results.append(ensure_config(paths.config_file))

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    load_config(paths.config_file)


def test_default_round_trip(paths):
    """Defaults written to disk load back valid and resolve identically."""
    ensure_config(paths.config_file)
    loaded, _ = load_config(paths.config_file)
    defaults = default_config()
    for event in VALID_EVENTS:
        assert loaded.get_event_config(event) == defaults.get_event_config(event)


def test_save_round_trip_with_profiles(paths):
    """Profiles and quiet hours survive save/load."""
    cfg = default_config()
    cfg.active_profile = "work"
    cfg.profiles["work"] = Profile(events={"idle_prompt": EventSettings(enabled=False)})
    cfg.save(paths.config_file)

    loaded, _ = load_config(paths.config_file)
    assert loaded.active_profile == "work"
    assert loaded.get_event_config("idle_prompt").enabled is False


# ==============================================================================
# validate_event_type
# ==============================================================================

@pytest.mark.parametrize("event", VALID_EVENTS)
def test_validate_event_type_accepts_known(event):
    """All known events pass."""
    validate_event_type(event)


@pytest.mark.parametrize("event", ["launch_missiles", "Stop", "stop!", "", "../stop", "sub-agent"])
def test_validate_event_type_rejects(event):
    """Unknown or badly formed names fail."""
    with pytest.raises(ConfigError):
        validate_event_type(event)
