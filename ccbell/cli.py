"""ccbell entry point: play a sound for a Claude Code hook event.

Usage:
    ccbell [event]          # event defaults to "stop"
    ccbell --version | -v
    ccbell --help | -h

Exit codes:
    0  sound started, or notification suppressed (disabled, quiet hours, cooldown)
    1  invalid event, unresolvable sound, or playback failure
    2  unexpected internal fault
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, TextIO

from ccbell import __version__
from ccbell.compat import CcbellPaths, drain_stdin
from ccbell.config import (
    VALID_EVENTS,
    Config,
    default_config,
    ensure_config,
    load_config,
    validate_event_type,
)
from ccbell.errors import CcbellError, ConfigError, SoundResolutionError, StateSaveError
from ccbell.logger import setup_debug_logging
from ccbell.player import Platform, Player
from ccbell.state import CooldownManager

logger = logging.getLogger("ccbell.cli")

DEFAULT_EVENT = "stop"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAULT = 2

USAGE = f"""ccbell - Sound notifications for Claude Code

USAGE:
    ccbell <event_type>
    ccbell [OPTIONS]

EVENT TYPES:
    stop              Claude finished responding
    permission_prompt Claude needs your permission
    idle_prompt       Claude is waiting for input
    subagent          A background agent completed

OPTIONS:
    -h, --help        Show this help message
    -v, --version     Show version information

CONFIGURATION:
    Global config:  ~/.claude/ccbell.config.json

SOUND FORMATS:
    bundled:stop              Bundled with plugin
    custom:/path/to.mp3       Custom audio file
    pack:pack_id:sound.mp3    Sound from an installed pack

ENVIRONMENT:
    CLAUDE_PLUGIN_ROOT   Plugin installation directory

Valid events: {", ".join(VALID_EVENTS)}"""


@dataclass(frozen=True)
class Outcome:
    """Terminal state of one invocation."""
    played: bool
    reason: str = ""
    sound_path: str = ""


def run(
    event: str,
    paths: CcbellPaths,
    player: Optional[Player] = None,
    stderr: Optional[TextIO] = None,
    now: Optional[datetime] = None,
) -> Outcome:
    """Run the notification pipeline for *event*.

    Raises CcbellError for anything that should produce exit code 1.
    """
    if stderr is None:
        stderr = sys.stderr
    validate_event_type(event)

    try:
        ensure_config(paths.config_file)
    except ConfigError as e:
        print(f"ccbell: Warning: could not create config: {e}", file=stderr)

    config_error = None
    try:
        cfg, config_source = load_config(paths.config_file)
    except ConfigError as e:
        config_error = e
        cfg, config_source = default_config(), "(default - config load failed)"

    setup_debug_logging(cfg.debug, paths.log_file)
    logger.debug("=== ccbell triggered: event=%s ===", event)
    logger.debug("Version: %s, Config: %s", __version__, config_source or "(defaults)")
    if config_error is not None:
        logger.debug("Config load error (using defaults): %s", config_error)
        print(f"ccbell: config error, using defaults: {config_error}", file=stderr)
    logger.debug("Plugin root: %s", paths.plugin_root)

    suppressed = _suppression_reason(cfg, event, paths, now)
    if suppressed:
        logger.debug("Suppressed: %s", suppressed)
        return Outcome(played=False, reason=suppressed)

    logger.debug("All checks passed, proceeding to play sound")
    event_cfg = cfg.get_event_config(event)

    if player is None:
        player = Player(paths.plugin_root, packs_dir=paths.packs_dir)
    logger.debug("Detected platform: %s", player.platform.value)

    if player.platform == Platform.LINUX:
        audio_player = player.ensure_audio_player()
        logger.debug("Using audio player: %s", audio_player)

    try:
        sound_path = player.resolve_sound_path(event_cfg.sound, event)
    except SoundResolutionError as e:
        logger.debug("Sound resolution failed: %s, trying fallbacks", e)
        sound_path = player.get_fallback_path(event)
        if not sound_path:
            raise SoundResolutionError(f"no playable sound found ({e})") from e
    logger.debug("Final sound path: %s", sound_path)

    player.play(sound_path, event_cfg.volume)
    logger.debug("Sound playback initiated successfully")
    logger.debug("=== ccbell completed ===")
    return Outcome(played=True, sound_path=sound_path)


def _suppression_reason(cfg: Config, event: str, paths: CcbellPaths, now: Optional[datetime]) -> str:
    """Return why this notification should stay silent, or "" to play it."""
    if not cfg.enabled:
        return "disabled globally"

    event_cfg = cfg.get_event_config(event)
    logger.debug("Active profile: %s", cfg.active_profile)
    logger.debug(
        "Event config: enabled=%s, sound=%s, volume=%.2f, cooldown=%d",
        event_cfg.enabled, event_cfg.sound, event_cfg.volume, event_cfg.cooldown,
    )

    if not event_cfg.enabled:
        return f"event {event!r} disabled"

    if cfg.is_in_quiet_hours(now):
        return f"quiet hours ({cfg.quiet_hours.start}-{cfg.quiet_hours.end})"

    cooldown = CooldownManager(paths.state_file)
    try:
        in_cooldown = cooldown.check_cooldown(
            event,
            event_cfg.cooldown,
            now=now.timestamp() if now is not None else None,
        )
    except StateSaveError as e:
        logger.debug("Cooldown check error: %s, proceeding with notification", e)
        in_cooldown = e.in_cooldown

    if in_cooldown:
        return f"cooldown ({event_cfg.cooldown}s)"

    return ""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ccbell", add_help=False)
    parser.add_argument("event", nargs="?", default=DEFAULT_EVENT)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("-v", "--version", action="store_true")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args, extra = _build_parser().parse_known_args(argv)

    if args.version:
        print(f"ccbell {__version__}")
        return EXIT_OK
    if args.help:
        print(USAGE)
        return EXIT_OK

    try:
        if extra:
            raise CcbellError(f"unexpected arguments: {' '.join(extra)}")
        # Validate before touching stdin or the filesystem
        validate_event_type(args.event)
        drain_stdin()
        run(args.event, CcbellPaths.from_env())
    except CcbellError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        print(f"PANIC: {e}", file=sys.stderr)
        return EXIT_FAULT

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
