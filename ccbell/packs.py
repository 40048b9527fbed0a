"""Locally installed sound packs.

Layout:

    ~/.claude/ccbell/packs/<pack_id>/pack.json
    ~/.claude/ccbell/packs/<pack_id>/<sound files>

pack.json:

    {"id": "retro", "name": "Retro", "version": "1.0.0",
     "events": {"stop": "done.mp3", "permission_prompt": "alert.mp3"}}

Packs are placed in the directory by hand or by an external installer;
nothing here touches the network.
"""

import json
import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ccbell.config import VALID_EVENTS, Config, EventSettings
from ccbell.errors import PackError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "pack.json"

# Same rule the resolver applies to pack: specs
_PACK_ID = re.compile(r"^[a-z_]+$")


@dataclass
class PackManifest:
    id: str
    name: str = ""
    description: str = ""
    author: str = ""
    version: str = ""
    events: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, fallback_id: str) -> "PackManifest":
        events = data.get("events")
        if not isinstance(events, dict):
            events = {}

        def text(key: str) -> str:
            value = data.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            id=text("id") or fallback_id,
            name=text("name"),
            description=text("description"),
            author=text("author"),
            version=text("version"),
            events={k: v for k, v in events.items() if isinstance(k, str) and isinstance(v, str)},
        )


@dataclass
class InstalledPack:
    manifest: PackManifest
    install_dir: Path


def validate_pack_id(pack_id: str) -> None:
    if not _PACK_ID.match(pack_id):
        raise PackError(f"invalid pack ID: {pack_id} (lowercase letters and underscores only)")


def _valid_sound_file(name: str) -> bool:
    return bool(name) and ".." not in name and "/" not in name and os.sep not in name


def _require_dir(packs_dir: Optional[Path]) -> Path:
    if packs_dir is None:
        raise PackError("home directory not set")
    return packs_dir


def list_installed(packs_dir: Optional[Path]) -> list[InstalledPack]:
    """Packs with a readable manifest, sorted by directory name.

    Directories without a usable pack.json are skipped.
    """
    packs_dir = _require_dir(packs_dir)
    try:
        entries = sorted(packs_dir.iterdir())
    except FileNotFoundError:
        return []
    except OSError as e:
        raise PackError(f"failed to read packs directory: {e}") from e

    installed = []
    for entry in entries:
        if not entry.is_dir() or not _PACK_ID.match(entry.name):
            continue
        try:
            data = json.loads((entry / MANIFEST_NAME).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Skipping pack %s: %s", entry.name, e)
            continue
        if not isinstance(data, dict):
            continue
        installed.append(InstalledPack(PackManifest.from_dict(data, entry.name), entry))

    return installed


def find_installed(packs_dir: Optional[Path], pack_id: str) -> InstalledPack:
    validate_pack_id(pack_id)
    for pack in list_installed(packs_dir):
        if pack.install_dir.name == pack_id:
            return pack
    raise PackError(f"pack not installed: {pack_id}")


def get_pack_sound(packs_dir: Optional[Path], pack_id: str, event: str) -> Path:
    """Path of the sound *pack_id* provides for *event*."""
    pack = find_installed(packs_dir, pack_id)
    sound_file = pack.manifest.events.get(event)
    if sound_file is None:
        raise PackError(f"event {event} not found in pack {pack_id}")
    if not _valid_sound_file(sound_file):
        raise PackError(f"invalid sound file name in pack {pack_id}: {sound_file}")
    return pack.install_dir / sound_file


def use_pack(cfg: Config, packs_dir: Optional[Path], pack_id: str) -> list[str]:
    """Point each event the pack covers at ``pack:<id>:<file>``.

    Only the sound of each event changes; enabled, volume and cooldown are
    kept. Returns the events that were updated. The caller saves *cfg*.
    """
    pack = find_installed(packs_dir, pack_id)

    updated = []
    for event in VALID_EVENTS:
        sound_file = pack.manifest.events.get(event)
        if sound_file is None:
            continue
        if not _valid_sound_file(sound_file):
            logger.debug("Pack %s: skipping invalid sound file %r", pack_id, sound_file)
            continue
        settings = cfg.events.get(event)
        if settings is None:
            settings = cfg.events[event] = EventSettings()
        settings.sound = f"pack:{pack_id}:{sound_file}"
        updated.append(event)

    if not updated:
        raise PackError(f"pack {pack_id} has no sounds for any known event")
    return updated


def uninstall(packs_dir: Optional[Path], pack_id: str) -> None:
    validate_pack_id(pack_id)
    pack_dir = _require_dir(packs_dir) / pack_id
    if not pack_dir.is_dir():
        raise PackError(f"pack not installed: {pack_id}")
    try:
        if pack_dir.is_symlink():
            pack_dir.unlink()
        else:
            shutil.rmtree(pack_dir)
    except OSError as e:
        raise PackError(f"failed to remove pack: {e}") from e
