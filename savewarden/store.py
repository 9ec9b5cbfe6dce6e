"""
Archive storage for one location (local disk or a mirrored cloud folder).

Layout::

    <root>/<profile name>/<epoch>-[<YYYY-MM-DD_HH-MM-SS>]-<A|M>/   full copy of the save folder
"""
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from .config import local_backup_root, mirror_backup_root
from .errors import CaptureFailedError, ProfileExistsError, PurgeFailedError, SourceUnavailableError
from .models import ArchiveIdentity, Location, PurgeOutcome, Settings
from .naming import decode


class BackupStore:
    def __init__(self, root: str | Path, location: Location = Location.LOCAL):
        self.root = Path(root)
        self.location = location

    def __repr__(self) -> str:
        return f"BackupStore({self.location.value}, {self.root})"

    def profile_dir(self, profile_name: str) -> Path:
        return self.root / profile_name

    def archive_path(self, profile_name: str, identity: ArchiveIdentity) -> Path:
        return self.profile_dir(profile_name) / identity.name

    def exists(self, profile_name: str, identity: ArchiveIdentity) -> bool:
        return self.archive_path(profile_name, identity).exists()

    def capture(self, profile_name: str, source_dir: str | Path, identity: ArchiveIdentity) -> Path:
        """
        Copy ``source_dir`` recursively into a new archive directory.
        Symlinks are followed and stored as plain copies. On failure the
        partially written archive is removed and CaptureFailedError is raised
        with the OS reason.
        """
        source = Path(source_dir)
        if not source.is_dir():
            raise SourceUnavailableError(f"Save directory '{source}' does not exist or is not a directory.")

        target = self.archive_path(profile_name, identity)
        if target.exists():
            raise CaptureFailedError(f"Archive '{identity.name}' already exists at {self.location.label}.")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, target, symlinks=False)
        except OSError as e:
            shutil.rmtree(target, ignore_errors=True)
            raise CaptureFailedError(f"{self.location.label} backup failed for {identity.name}: {e}") from e
        except BaseException:
            # Interrupted (Ctrl+C): still never leave a partial archive.
            shutil.rmtree(target, ignore_errors=True)
            raise
        return target

    def list_archives(self, profile_name: str) -> List[ArchiveIdentity]:
        """Archives of a profile, oldest first. Missing directories mean no archives."""
        base = self.profile_dir(profile_name)
        if not base.is_dir():
            return []

        archives = []
        for entry in base.iterdir():
            if not entry.is_dir():
                continue
            identity = decode(entry.name)
            # Anything that is not one of ours is never listed, and so never purged.
            if identity is not None:
                archives.append(identity)
        archives.sort(key=lambda a: a.sort_key)
        return archives

    def purge(self, profile_name: str, to_delete: Sequence[ArchiveIdentity]) -> List[PurgeOutcome]:
        """Delete each archive. Failures are recorded per entry and never stop the rest."""
        outcomes = []
        for identity in to_delete:
            error: Optional[str] = None
            try:
                shutil.rmtree(self.archive_path(profile_name, identity))
            except OSError as e:
                error = str(e)
            outcomes.append(PurgeOutcome(identity=identity, location=self.location, error=error))
        return outcomes

    def remove_profile_tree(self, profile_name: str) -> bool:
        """Remove every archive of a profile. Returns False if there was nothing to remove."""
        base = self.profile_dir(profile_name)
        if not base.exists():
            return False
        try:
            shutil.rmtree(base)
        except OSError as e:
            raise PurgeFailedError(f"Error deleting {self.location.label.lower()} backups for '{profile_name}': {e}") from e
        return True

    def rename_profile_tree(self, old_name: str, new_name: str) -> bool:
        """Move a profile's archives under its new name. Returns False if it had none."""
        old = self.profile_dir(old_name)
        if not old.exists():
            return False
        new = self.profile_dir(new_name)
        if new.exists():
            raise ProfileExistsError(f"Cannot rename {self.location.label.lower()} backups: '{new}' already exists.")
        old.rename(new)
        return True

def open_store(settings: Settings, location: Location) -> Optional[BackupStore]:
    """Return the store for a location, or None when the mirror is not configured."""
    if location is Location.LOCAL:
        return BackupStore(local_backup_root(settings), Location.LOCAL)
    root = mirror_backup_root(settings)
    if root is None:
        return None
    return BackupStore(root, Location.MIRROR)
