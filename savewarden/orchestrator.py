"""
Backup orchestration across the Local and Mirror locations.

Both the manual trigger and the auto-save scheduler call
``BackupOrchestrator.run_backup``. Runs for the same profile are serialized
behind one lock, so a manual backup arriving during an automatic one waits
for it to finish. With a ``settings_loader`` the settings are re-read at the
start of every run, so limit changes apply to the next backup.
"""
import threading
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .audit import AuditLogger
from .errors import ConfigError, SaveWardenError
from .models import ArchiveClass, ArchiveIdentity, BackupReport, GameProfile, Location, Settings
from .naming import identity_for
from .retention import plan_purge
from .store import BackupStore, open_store


class BackupOrchestrator:
    """
    Usage::

        orch = BackupOrchestrator(load_settings(), settings_loader=load_settings)
        report = orch.run_backup(profile, ArchiveClass.MANUAL)
        for line in report.lines():
            print(line)
    """

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
        audit: Optional[AuditLogger] = None,
        settings_loader: Optional[Callable[[], Settings]] = None,
    ):
        self.settings = settings
        self._settings_loader = settings_loader
        self._clock = clock
        self._audit = audit or AuditLogger()
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def update_settings(self, settings: Settings) -> None:
        """Swap in new settings; a run already in progress keeps the old ones."""
        self.settings = settings

    def reload_settings(self) -> Settings:
        """Re-read settings through the loader, keeping the last good copy if they cannot be read."""
        if self._settings_loader is None:
            return self.settings
        try:
            self.settings = self._settings_loader()
        except ConfigError as e:
            self._audit.log("settings_reload_failed", error=str(e))
        return self.settings

    def lock_for(self, profile_name: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(profile_name)
            if lock is None:
                lock = self._locks[profile_name] = threading.RLock()
            return lock

    def run_backup(self, profile: GameProfile, archive_class: ArchiveClass) -> BackupReport:
        """Capture, purge and mirror one backup. Never raises; failures end up in the report."""
        with self.lock_for(profile.name):
            report = self._run_locked(profile, archive_class, self.reload_settings())
        self._audit.log(
            "backup_end",
            profile=profile.name,
            archive=report.identity.name,
            archive_class=archive_class.label,
            local_success=report.local_success,
            local_error=report.local_error,
            mirror_attempted=report.mirror_attempted,
            mirror_success=report.mirror_success,
            mirror_error=report.mirror_error,
        )
        return report

    def _next_identity(self, local: BackupStore, profile: GameProfile, archive_class: ArchiveClass) -> ArchiveIdentity:
        now = self._clock()
        identity = identity_for(now, archive_class)
        if local.exists(profile.name, identity):
            # Same class already captured this second: wait for the next one.
            time.sleep(max(0.0, 1.0 - now.microsecond / 1_000_000))
            identity = identity_for(self._clock(), archive_class)
        return identity

    def _run_locked(self, profile: GameProfile, archive_class: ArchiveClass, settings: Settings) -> BackupReport:
        local = open_store(settings, Location.LOCAL)
        identity = self._next_identity(local, profile, archive_class)
        purge_messages: List[str] = []

        # 1. Local capture. Failure ends the run with nothing else touched.
        try:
            local_archive = local.capture(profile.name, profile.source_dir, identity)
        except (SaveWardenError, OSError) as e:
            return BackupReport(
                profile_name=profile.name,
                identity=identity,
                finished_at=self._clock(),
                local_success=False,
                local_error=str(e),
            )

        # 2. Local retention
        self._apply_retention(local, profile.name, settings, purge_messages)

        # 3. Mirror copy, taken from the archive just written
        mirror_attempted = False
        mirror_success = False
        mirror_error: Optional[str] = None
        mirror = open_store(settings, Location.MIRROR) if profile.mirror_enabled else None
        if mirror is not None:
            mirror_attempted = True
            try:
                mirror.capture(profile.name, local_archive, identity)
                mirror_success = True
            except (SaveWardenError, OSError) as e:
                mirror_error = str(e)

        # 4. Mirror retention
        if mirror_success:
            self._apply_retention(mirror, profile.name, settings, purge_messages)

        return BackupReport(
            profile_name=profile.name,
            identity=identity,
            finished_at=self._clock(),
            local_success=True,
            mirror_attempted=mirror_attempted,
            mirror_success=mirror_success,
            mirror_error=mirror_error,
            purge_messages=purge_messages,
        )

    def _apply_retention(self, store: BackupStore, profile_name: str, settings: Settings, messages: List[str]) -> None:
        label = store.location.label
        limits = settings.limits.for_location(store.location)
        try:
            archives = store.list_archives(profile_name)
        except OSError as e:
            messages.append(f"      [PURGE:{label}] FAILED to list backups: {e}")
            return

        plan = plan_purge(archives, limits)
        for archive_class, doomed in plan.items():
            if not doomed:
                continue
            limit = limits.for_class(archive_class)
            messages.append(
                f"      [PURGE:{label}] {archive_class.label}-save limit ({limit}) exceeded. "
                f"Deleting {len(doomed)} oldest..."
            )
            for outcome in store.purge(profile_name, doomed):
                if outcome.ok:
                    messages.append(f"         - Deleting: {outcome.identity.name}")
                else:
                    messages.append(
                        f"      [PURGE:{label}] FAILED to delete {archive_class.label} "
                        f"{outcome.identity.name}: {outcome.error}"
                    )
                    self._audit.log(
                        "purge_failed",
                        profile=profile_name,
                        location=store.location.value,
                        archive=outcome.identity.name,
                        error=outcome.error,
                    )
