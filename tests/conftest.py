from datetime import datetime
from pathlib import Path

import pytest

from savewarden.models import GameProfile, RetentionLimits, Settings


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch):
    """Keep settings, profiles and the audit log out of the real home directory."""
    config_home = tmp_path / "config-home"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("APPDATA", str(config_home))
    return config_home

@pytest.fixture
def save_dir(tmp_path: Path) -> Path:
    source = tmp_path / "saves"
    (source / "slot1").mkdir(parents=True)
    (source / "slot1" / "save.dat").write_bytes(b"\x00\x01level=3")
    (source / "options.ini").write_text("volume=7")
    return source

@pytest.fixture
def cloud_dir(tmp_path: Path) -> Path:
    cloud = tmp_path / "Google Drive"
    cloud.mkdir()
    return cloud

@pytest.fixture
def settings(tmp_path: Path, cloud_dir: Path) -> Settings:
    return Settings(
        local_root=str(tmp_path / "Backups"),
        mirror_root=str(cloud_dir),
        limits=RetentionLimits(local_auto=2, local_manual=0, mirror_auto=3, mirror_manual=25),
    )

@pytest.fixture
def profile(save_dir: Path) -> GameProfile:
    return GameProfile(name="Elden Ring", source_dir=str(save_dir), auto_save_interval=1, mirror_enabled=False)

class FakeClock:
    """Settable clock; the orchestrator reads it several times per run."""
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 12, 0, 0, 999_000))
