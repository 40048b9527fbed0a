"""Shared pytest fixtures for ccbell tests."""

import json
from pathlib import Path
from typing import Any

import pytest

from ccbell.compat import CcbellPaths
from ccbell.player import Platform, Player

BUNDLED_SOUNDS = ("stop", "permission_prompt", "idle_prompt", "subagent")


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Fake home directory with an empty ~/.claude."""
    home_dir = tmp_path / "home"
    (home_dir / ".claude").mkdir(parents=True)
    return home_dir


@pytest.fixture
def plugin_root(tmp_path: Path) -> Path:
    """Plugin directory with every bundled sound present."""
    root = tmp_path / "plugin"
    sounds = root / "sounds"
    sounds.mkdir(parents=True)
    for name in BUNDLED_SOUNDS:
        (sounds / f"{name}.aiff").write_bytes(b"FORM")
    return root


@pytest.fixture
def paths(home: Path, plugin_root: Path) -> CcbellPaths:
    return CcbellPaths(home=home, plugin_root=plugin_root)


@pytest.fixture
def write_config(paths: CcbellPaths):
    """Write a config document to ~/.claude/ccbell.config.json."""
    def _write(data: Any) -> Path:
        if isinstance(data, str):
            paths.config_file.write_text(data, encoding="utf-8")
        else:
            paths.config_file.write_text(json.dumps(data), encoding="utf-8")
        return paths.config_file
    return _write


class RecordingPlayer(Player):
    """Player that records play() calls instead of launching a process."""

    def __init__(self, plugin_root, packs_dir=None):
        super().__init__(plugin_root, packs_dir=packs_dir, platform=Platform.MACOS)
        self.played: list[tuple[str, float]] = []

    def play(self, sound_path: str, volume: float) -> None:
        self.played.append((sound_path, volume))


@pytest.fixture
def recording_player(paths: CcbellPaths) -> RecordingPlayer:
    return RecordingPlayer(paths.plugin_root, packs_dir=paths.packs_dir)


@pytest.fixture
def no_popen(monkeypatch: pytest.MonkeyPatch) -> list:
    """Fail loudly if anything tries to launch a process; returns the call log."""
    calls: list = []

    def _popen(*args, **kwargs):
        calls.append(args)
        raise AssertionError(f"unexpected subprocess launch: {args}")

    monkeypatch.setattr("ccbell.player.subprocess.Popen", _popen)
    monkeypatch.setattr("ccbell.player.subprocess.run", _popen)
    return calls
