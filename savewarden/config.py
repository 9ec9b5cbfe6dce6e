"""
Configuration, settings and profile management for SaveWarden.
"""
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from .errors import ConfigError, ProfileExistsError, ProfileNotFoundError, ProfileValidationError
from .models import GameProfile, Settings

APP_NAME = "savewarden"
SETTINGS_FILE = "config.json"
PROFILES_DIR = "profiles"
LOCAL_BACKUPS_DIR = "Backups"
# Folder created inside the synced cloud folder; archives live one level below it.
MIRROR_FOLDER_NAME = "Game Save Backup Manager"

def get_config_dir() -> Path:
    """Returns the platform-specific configuration directory."""
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if appdata:
            base_dir = Path(appdata)
        else:
            base_dir = Path.home() / "AppData" / "Roaming"
    else:
        # XDG Base Directory specification
        xdg_config = os.getenv("XDG_CONFIG_HOME")
        if xdg_config:
            base_dir = Path(xdg_config)
        else:
            base_dir = Path.home() / ".config"

    config_dir = base_dir / APP_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir

def get_settings_path() -> Path:
    return get_config_dir() / SETTINGS_FILE

def load_settings() -> Settings:
    """Load global settings, falling back to defaults when none were saved yet."""
    path = get_settings_path()
    if not path.exists():
        return Settings()
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return Settings(**data)
    except Exception as e:
        raise ConfigError(f"Failed to load settings from '{path}': {e}") from e

def save_settings(settings: Settings) -> None:
    path = get_settings_path()
    with path.open("w", encoding="utf-8") as f:
        f.write(settings.model_dump_json(indent=2))

def local_backup_root(settings: Settings) -> Path:
    """Root of the Local location."""
    if settings.local_root:
        return Path(settings.local_root)
    return get_config_dir() / LOCAL_BACKUPS_DIR

def mirror_backup_root(settings: Settings) -> Optional[Path]:
    """Root of the Mirror location, or None when no mirror folder is configured."""
    if not settings.mirror_available:
        return None
    return Path(settings.mirror_root.strip()) / MIRROR_FOLDER_NAME

def get_profiles_dir() -> Path:
    profiles_dir = get_config_dir() / PROFILES_DIR
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir

def list_profiles() -> List[str]:
    """List all available profile names."""
    profiles = []
    for fp in get_profiles_dir().glob("*.json"):
        if fp.is_file() and not fp.name.startswith("."):
            profiles.append(fp.stem)
    return sorted(profiles)

def get_profile_path(name: str) -> Path:
    """Return the filesystem path for a specific profile name."""
    return get_profiles_dir() / f"{name}.json"

def _write_profile(profile: GameProfile) -> None:
    path = get_profile_path(profile.name)
    with path.open("w", encoding="utf-8") as f:
        f.write(profile.model_dump_json(indent=2))

def save_profile(profile: GameProfile) -> None:
    """Save a new profile to disk."""
    if get_profile_path(profile.name).exists():
        raise ProfileExistsError(f"Profile '{profile.name}' already exists.")
    _write_profile(profile)

def load_profile(name: str) -> GameProfile:
    """Load a profile by name from disk."""
    path = get_profile_path(name)
    if not path.exists():
        raise ProfileNotFoundError(f"Profile '{name}' does not exist.")

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return GameProfile(**data)
    except Exception as e:
        raise ProfileValidationError(f"Failed to load profile '{name}': {e}") from e

def update_profile(profile: GameProfile, old_name: Optional[str] = None) -> None:
    """Update an existing profile, optionally renaming it from ``old_name``."""
    if old_name and old_name != profile.name:
        if get_profile_path(profile.name).exists():
            raise ProfileExistsError(f"Profile '{profile.name}' already exists.")
        _write_profile(profile)
        get_profile_path(old_name).unlink(missing_ok=True)
        return
    if not get_profile_path(profile.name).exists():
        raise ProfileNotFoundError(f"Profile '{profile.name}' does not exist.")
    _write_profile(profile)

def delete_profile(name: str) -> None:
    """Delete a profile record. Archives are left alone."""
    path = get_profile_path(name)
    if not path.exists():
        raise ProfileNotFoundError(f"Profile '{name}' does not exist.")
    path.unlink()

def get_active_profile(settings: Settings) -> GameProfile:
    if not settings.active_profile:
        raise ProfileNotFoundError("No active profile selected. Run 'savewarden select <name>' first.")
    return load_profile(settings.active_profile)

def resolve_profile(name: Optional[str], settings: Settings) -> GameProfile:
    """Load the named profile, or the active one when no name is given."""
    if name:
        return load_profile(name)
    return get_active_profile(settings)
