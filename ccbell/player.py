"""Sound path resolution and fire-and-forget playback.

Sound specifications:
    bundled:<name>            <plugin_root>/sounds/<name>.aiff
    custom:/abs/path.mp3      user-supplied absolute path
    pack:<pack_id>:<file>     ~/.claude/ccbell/packs/<pack_id>/<file>
    /abs/path.mp3             same rules as custom:

Players:
    macOS  afplay (always present)
    Linux  first of mpv, paplay, aplay, ffplay found on PATH
"""

import logging
import os
import re
import shutil
import stat
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

from ccbell.errors import PlaybackError, SoundResolutionError

logger = logging.getLogger(__name__)

_SOUND_NAME = re.compile(r"^[a-z_]+$")

BUNDLED_EXTENSION = ".aiff"
FALLBACK_SOUND = "stop"

# Priority order
LINUX_PLAYERS = ("mpv", "paplay", "aplay", "ffplay")

# Player -> package providing it
PLAYER_PACKAGES = {
    "mpv": "mpv",
    "ffplay": "ffmpeg",
    "paplay": "pulseaudio-utils",
    "aplay": "alsa-utils",
}

# Package manager -> install command prefix (probe order)
PACKAGE_MANAGERS = {
    "apt-get": ["sudo", "-n", "apt-get", "install", "-y"],
    "dnf": ["sudo", "-n", "dnf", "install", "-y"],
    "yum": ["sudo", "-n", "yum", "install", "-y"],
    "pacman": ["sudo", "-n", "pacman", "-S", "--noconfirm"],
    "zypper": ["sudo", "-n", "zypper", "install", "-y"],
    "apk": ["sudo", "-n", "apk", "add", "--no-cache"],
    "emerge": ["sudo", "-n", "emerge"],
}

INSTALL_TIMEOUT = 120

NO_PLAYER_MESSAGE = "no audio player found; install pulseaudio, alsa-utils, mpv, or ffmpeg"


class Platform(str, Enum):
    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"


def detect_platform(platform: Optional[str] = None) -> Platform:
    """Map sys.platform (or an explicit value) to a supported Platform."""
    name = platform if platform is not None else sys.platform
    if name == "darwin":
        return Platform.MACOS
    if name.startswith("linux"):
        return Platform.LINUX
    return Platform.UNKNOWN


def _has_command(name: str) -> bool:
    return shutil.which(name) is not None


def linux_player_args(player: str, sound_path: str, volume: float) -> list[str]:
    """Command-line arguments (excluding the executable) for a Linux player."""
    percent = int(volume * 100)
    if player == "mpv":
        return ["--really-quiet", f"--volume={percent}", sound_path]
    if player == "paplay":
        return [sound_path]
    if player == "aplay":
        return ["-q", sound_path]
    if player == "ffplay":
        return ["-nodisp", "-autoexit", "-volume", str(percent), sound_path]
    return []


def _has_traversal(path: str) -> bool:
    return ".." in path


def _bundled_entry_exists(path: Path) -> bool:
    """lstat-based existence check for a file in the sounds directory.

    A symlink counts only if it resolves to an existing file that is still
    inside the sounds directory; dangling or escaping links are "not found".
    """
    try:
        st = os.lstat(path)
    except OSError:
        return False

    if not stat.S_ISLNK(st.st_mode):
        return True

    sounds_dir = os.path.realpath(path.parent)
    target = os.path.realpath(path)
    if os.path.commonpath([sounds_dir, target]) != sounds_dir:
        return False
    return os.path.isfile(target)


class Player:
    """Resolves sound specs and launches the platform audio player."""

    def __init__(
        self,
        plugin_root: Optional[Path],
        packs_dir: Optional[Path] = None,
        platform: Optional[Platform] = None,
    ):
        self.plugin_root = Path(os.path.abspath(plugin_root)) if plugin_root else None
        self.packs_dir = Path(os.path.abspath(packs_dir)) if packs_dir else None
        self.platform = platform if platform is not None else detect_platform()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_sound_path(self, spec: str, event: str) -> str:
        """Map a sound specification to an existing absolute file path."""
        if not spec:
            spec = f"bundled:{event}"

        if spec.startswith("bundled:"):
            return self._resolve_bundled(spec[len("bundled:"):])
        if spec.startswith("custom:"):
            return self._resolve_custom(spec[len("custom:"):])
        if spec.startswith("pack:"):
            return self._resolve_pack(spec[len("pack:"):])
        return self._resolve_custom(spec)

    def _bundled_path(self, name: str) -> Optional[Path]:
        if self.plugin_root is None:
            return None
        return self.plugin_root / "sounds" / f"{name}{BUNDLED_EXTENSION}"

    def _resolve_bundled(self, name: str) -> str:
        if not _SOUND_NAME.match(name):
            raise SoundResolutionError(f"invalid bundled sound name: {name}")

        path = self._bundled_path(name)
        if path is None:
            raise SoundResolutionError("plugin root not set; cannot resolve bundled sounds")

        if not _bundled_entry_exists(path):
            raise SoundResolutionError(f"bundled sound not found: {name}")

        return str(path)

    def _resolve_custom(self, path: str) -> str:
        if not path or not os.path.isabs(path):
            raise SoundResolutionError(f"custom sound must be absolute path: {path}")
        if _has_traversal(path):
            raise SoundResolutionError("path traversal not allowed")

        try:
            os.stat(path)
        except OSError:
            raise SoundResolutionError(f"custom sound not accessible: {path}") from None

        return path

    def _resolve_pack(self, spec: str) -> str:
        pack_id, sep, sound_file = spec.partition(":")
        if not sep:
            raise SoundResolutionError(
                f"invalid pack sound format: {spec} (expected pack_id:sound_file)"
            )
        if not _SOUND_NAME.match(pack_id):
            raise SoundResolutionError(f"invalid pack ID: {pack_id}")
        if (
            not sound_file
            or _has_traversal(sound_file)
            or "/" in sound_file
            or os.sep in sound_file
        ):
            raise SoundResolutionError(f"invalid sound file name: {sound_file}")
        if self.packs_dir is None:
            raise SoundResolutionError("home directory not set for pack sounds")

        path = self.packs_dir / pack_id / sound_file
        if not path.is_file():
            raise SoundResolutionError(f"pack sound not found: pack={pack_id}, sound={sound_file}")

        return str(path)

    def get_fallback_path(self, event: str) -> str:
        """Event's bundled sound, else bundled stop sound, else ""."""
        for name in (event, FALLBACK_SOUND):
            if not _SOUND_NAME.match(name):
                continue
            path = self._bundled_path(name)
            if path is None:
                return ""
            if _bundled_entry_exists(path):
                return str(path)
        return ""

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def find_linux_player(self) -> Optional[str]:
        for name in LINUX_PLAYERS:
            if _has_command(name):
                return name
        return None

    def has_audio_player(self) -> bool:
        if self.platform == Platform.MACOS:
            return _has_command("afplay")
        if self.platform == Platform.LINUX:
            return self.find_linux_player() is not None
        return False

    def ensure_audio_player(self) -> str:
        """Return an available Linux player, installing one if needed (best effort)."""
        player = self.find_linux_player()
        if player:
            return player

        for name in LINUX_PLAYERS:
            if _install_audio_player(name) and _has_command(name):
                return name

        raise PlaybackError(NO_PLAYER_MESSAGE)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self, sound_path: str, volume: float) -> None:
        """Start the player and return immediately; the child may outlive us."""
        if not sound_path:
            raise PlaybackError("no sound path specified")
        if not os.path.exists(sound_path):
            raise PlaybackError(f"sound file not found: {sound_path}")

        if self.platform == Platform.MACOS:
            cmd = ["afplay", "-v", f"{volume:.2f}", sound_path]
        elif self.platform == Platform.LINUX:
            player = self.find_linux_player()
            if player is None:
                raise PlaybackError(NO_PLAYER_MESSAGE)
            cmd = [player, *linux_player_args(player, sound_path, volume)]
        else:
            raise PlaybackError(f"unsupported platform: {self.platform.value}")

        logger.debug("Launching: %s", " ".join(cmd))
        try:
            subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise PlaybackError(f"failed to start {cmd[0]}: {e}") from e


def find_package_manager() -> Optional[str]:
    for name in PACKAGE_MANAGERS:
        if _has_command(name):
            return name
    return None


def _install_audio_player(player: str) -> bool:
    """Try to install *player* with the detected package manager."""
    package = PLAYER_PACKAGES.get(player)
    manager = find_package_manager()
    if not package or not manager:
        return False

    cmd = [*PACKAGE_MANAGERS[manager], package]
    logger.debug("Attempting install: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=INSTALL_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Install of %s failed: %s", package, e)
        return False
    return result.returncode == 0
