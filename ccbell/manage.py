"""
/sounds skill - manage ccbell notifications.

Usage:
    ccbell-sounds on
    ccbell-sounds off
    ccbell-sounds status
    ccbell-sounds profile <name>
    ccbell-sounds clear-cooldown
    ccbell-sounds packs list
    ccbell-sounds packs use <id>
    ccbell-sounds packs uninstall <id>
"""

import sys
from datetime import datetime
from typing import Optional

from ccbell import packs
from ccbell.compat import CcbellPaths
from ccbell.config import DEFAULT_PROFILE, VALID_EVENTS, Config, ensure_config, load_config
from ccbell.errors import CcbellError, ConfigError
from ccbell.quiet_hours import quiet_hours_status
from ccbell.state import CooldownManager

USAGE = (
    "Usage: /sounds [on|off|status|profile <name>|clear-cooldown"
    "|packs list|packs use <id>|packs uninstall <id>]"
)


def _load(paths: CcbellPaths) -> Config:
    if paths.config_file is None:
        raise ConfigError("HOME is not set; cannot locate ccbell.config.json")
    ensure_config(paths.config_file)
    cfg, _ = load_config(paths.config_file)
    return cfg


def set_enabled(paths: CcbellPaths, enabled: bool) -> None:
    """Flip the global enabled flag in the config file."""
    cfg = _load(paths)
    cfg.enabled = enabled
    cfg.save(paths.config_file)
    if enabled:
        print("Sound notifications enabled")
    else:
        print("Sound notifications disabled")


def set_profile(paths: CcbellPaths, name: str) -> None:
    """Switch the active profile; "default" clears profile overrides."""
    cfg = _load(paths)
    if name != DEFAULT_PROFILE and name not in cfg.profiles:
        available = ", ".join(sorted(cfg.profiles)) or "none"
        raise ConfigError(f"profile {name!r} not found (available: {available})")
    cfg.active_profile = name
    cfg.save(paths.config_file)
    print(f"Active profile: {name}")


def clear_cooldown(paths: CcbellPaths) -> None:
    CooldownManager(paths.state_file).clear()
    print("Cooldown state cleared")


def list_packs(paths: CcbellPaths) -> None:
    installed = packs.list_installed(paths.packs_dir)
    if not installed:
        print(f"No sound packs installed in {paths.packs_dir}")
        return
    for pack in installed:
        m = pack.manifest
        title = m.name or m.id
        version = f" v{m.version}" if m.version else ""
        events = ", ".join(sorted(m.events)) or "no events"
        print(f"  {pack.install_dir.name:<16} {title}{version}  ({events})")


def use_pack(paths: CcbellPaths, pack_id: str) -> None:
    """Switch every event the pack covers to its sounds."""
    cfg = _load(paths)
    updated = packs.use_pack(cfg, paths.packs_dir, pack_id)
    cfg.save(paths.config_file)
    print(f"Using pack {pack_id} for: {', '.join(updated)}")


def uninstall_pack(paths: CcbellPaths, pack_id: str) -> None:
    packs.uninstall(paths.packs_dir, pack_id)
    print(f"Pack {pack_id} removed")


def show_status(paths: CcbellPaths, now: Optional[datetime] = None) -> None:
    """Print global state and the effective settings for each event."""
    cfg = _load(paths)
    cooldown = CooldownManager(paths.state_file)

    print(f"Sound notifications: {'ENABLED' if cfg.enabled else 'DISABLED'}")
    print(f"Active profile: {cfg.active_profile}")
    print(f"Quiet hours: {quiet_hours_status(cfg.quiet_hours, now)}")
    if cfg.quiet_hours is not None and cfg.quiet_hours.start and cfg.quiet_hours.end:
        print(f"  window: {cfg.quiet_hours.start}-{cfg.quiet_hours.end}")

    print("\nEvents:")
    for event in VALID_EVENTS:
        setting = cfg.get_event_config(event)
        state = "on " if setting.enabled else "off"
        line = f"  {event:<18} {state} {setting.sound}  volume={setting.volume:.2f}"
        if setting.cooldown:
            line += f"  cooldown={setting.cooldown}s"
            last = cooldown.last_trigger(event)
            if last is not None:
                line += f"  last={datetime.fromtimestamp(last):%Y-%m-%d %H:%M:%S}"
        print(line)

    if not cfg.enabled:
        print("\nRun '/sounds on' to enable")


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        return 1

    command = args[0].lower()
    paths = CcbellPaths.from_env()

    try:
        if command == "on":
            set_enabled(paths, True)
        elif command == "off":
            set_enabled(paths, False)
        elif command == "status":
            show_status(paths)
        elif command == "profile" and len(args) == 2:
            set_profile(paths, args[1])
        elif command == "clear-cooldown":
            clear_cooldown(paths)
        elif command == "packs" and args[1:2] == ["list"]:
            list_packs(paths)
        elif command == "packs" and len(args) == 3 and args[1] == "use":
            use_pack(paths, args[2])
        elif command == "packs" and len(args) == 3 and args[1] == "uninstall":
            uninstall_pack(paths, args[2])
        else:
            print(f"Unknown command: {' '.join(args)}")
            print(USAGE)
            return 1
    except CcbellError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
