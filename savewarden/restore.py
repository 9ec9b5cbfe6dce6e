"""
Restore engine: lists archives and copies a chosen one back over the live save folder.

Restore is clear-then-copy. If the process dies between clearing the live
folder and finishing the copy, the live folder is left empty or partially
filled; the archive itself is only ever read.
"""
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from .audit import AuditLogger
from .errors import (
    InvalidSelectionError,
    NoArchivesFoundError,
    NoManualArchiveError,
    RestoreFailedError,
    SourceUnavailableError,
)
from .models import ArchiveClass, ArchiveIdentity, GameProfile, Location, Settings
from .store import BackupStore, open_store


class RestoreSelector:
    def __init__(self, local: BackupStore, mirror: Optional[BackupStore] = None):
        self._stores: Dict[Location, Optional[BackupStore]] = {
            Location.LOCAL: local,
            Location.MIRROR: mirror,
        }
        self._audit = AuditLogger()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RestoreSelector":
        return cls(open_store(settings, Location.LOCAL), open_store(settings, Location.MIRROR))

    def store(self, location: Location) -> Optional[BackupStore]:
        return self._stores[location]

    def list_for_display(self, location: Location, profile_name: str) -> List[ArchiveIdentity]:
        """Archives newest first. An unconfigured mirror simply has none."""
        store = self._stores[location]
        if store is None:
            return []
        return list(reversed(store.list_archives(profile_name)))

    def pick(self, location: Location, profile_name: str, number: int) -> ArchiveIdentity:
        """Resolve a 1-based position in the newest-first listing."""
        archives = self.list_for_display(location, profile_name)
        if not archives:
            raise NoArchivesFoundError(f"No {location.label.lower()} backups found for '{profile_name}'.")
        if not 1 <= number <= len(archives):
            raise InvalidSelectionError(f"Invalid selection {number}: choose 1-{len(archives)}.")
        return archives[number - 1]

    def restore_latest_manual(self, profile: GameProfile) -> ArchiveIdentity:
        """Overwrite the live folder with the newest local manual backup, without asking."""
        manual = [a for a in self.list_for_display(Location.LOCAL, profile.name) if a.archive_class is ArchiveClass.MANUAL]
        if not manual:
            raise NoManualArchiveError("No MANUAL (-M) backups found. Only manual backups are restored this way.")
        latest = manual[0]
        self.restore_chosen(profile, Location.LOCAL, latest)
        return latest

    def restore_chosen(self, profile: GameProfile, location: Location, identity: ArchiveIdentity) -> None:
        """Overwrite the live folder with an explicitly chosen archive. Callers confirm first."""
        store = self._stores[location]
        if store is None:
            raise RestoreFailedError("Mirror folder is not configured.")

        archive = store.archive_path(profile.name, identity)
        if not archive.is_dir():
            raise RestoreFailedError(f"Backup '{identity.name}' not found in {location.label.lower()} backups.")

        try:
            _overwrite_live(archive, Path(profile.source_dir))
        except (SourceUnavailableError, RestoreFailedError) as e:
            self._audit.log("restore", profile=profile.name, archive=identity.name,
                            location=location.value, status="failed", error=str(e))
            raise
        self._audit.log("restore", profile=profile.name, archive=identity.name,
                        location=location.value, status="success")

def _overwrite_live(archive: Path, live: Path) -> None:
    if live.exists() and not live.is_dir():
        raise SourceUnavailableError(f"Save path exists but is not a directory: {live}")
    try:
        live.mkdir(parents=True, exist_ok=True)
        for entry in live.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        shutil.copytree(archive, live, dirs_exist_ok=True)
    except OSError as e:
        raise RestoreFailedError(f"RESTORE FAILED: {e}") from e
