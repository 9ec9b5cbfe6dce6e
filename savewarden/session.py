"""
Monitoring session: one active profile, one auto-save scheduler, and the
foreground triggers that act on them.
"""
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .errors import CaptureFailedError, SourceUnavailableError
from .models import ArchiveClass, ArchiveIdentity, BackupReport, GameProfile, Location
from .orchestrator import BackupOrchestrator
from .restore import RestoreSelector
from .scheduler import AutoSaveScheduler


class Trigger(str, Enum):
    MANUAL_BACKUP = "manual-backup"
    RESTORE_LATEST_MANUAL = "restore-latest-manual"
    LIST_AND_RESTORE = "list-and-restore"
    STOP = "stop-monitoring"

class MonitorSession:
    def __init__(
        self,
        profile: GameProfile,
        orchestrator: BackupOrchestrator,
        selector: RestoreSelector,
        on_report: Optional[Callable[[BackupReport], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.profile = profile
        self.orchestrator = orchestrator
        self.selector = selector
        self._on_report = on_report
        self.scheduler = AutoSaveScheduler(orchestrator, on_report=on_report, on_error=on_error)

    @property
    def active(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        source = Path(self.profile.source_dir)
        if not source.is_dir():
            raise SourceUnavailableError(
                f"Save path NOT FOUND for {self.profile.name}: {source}. Edit the profile and fix the path."
            )
        backups = self.selector.store(Location.LOCAL).profile_dir(self.profile.name)
        try:
            backups.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureFailedError(f"Cannot create the local backup folder {backups}: {e}") from e
        self.scheduler.start(self.profile)

    def stop(self) -> None:
        self.scheduler.stop()

    def manual_backup(self) -> BackupReport:
        report = self.orchestrator.run_backup(self.profile, ArchiveClass.MANUAL)
        if self._on_report:
            self._on_report(report)
        return report

    # Restores hold the profile lock so an auto-save never copies a half-restored folder.

    def restore_latest_manual(self) -> ArchiveIdentity:
        with self.orchestrator.lock_for(self.profile.name):
            return self.selector.restore_latest_manual(self.profile)

    def restore_chosen(self, location: Location, identity: ArchiveIdentity) -> None:
        with self.orchestrator.lock_for(self.profile.name):
            self.selector.restore_chosen(self.profile, location, identity)

    def handle(self, trigger: Trigger):
        """Dispatch a foreground trigger. LIST_AND_RESTORE needs a caller-side picker."""
        if trigger is Trigger.MANUAL_BACKUP:
            return self.manual_backup()
        if trigger is Trigger.RESTORE_LATEST_MANUAL:
            return self.restore_latest_manual()
        if trigger is Trigger.STOP:
            return self.stop()
        raise ValueError(f"Trigger '{trigger.value}' must be handled by the caller.")

    def __enter__(self) -> "MonitorSession":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
