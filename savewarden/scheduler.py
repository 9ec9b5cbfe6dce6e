"""
Auto-save scheduler: runs an automatic backup every ``auto_save_interval`` seconds.
"""
import threading
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore

from .audit import AuditLogger
from .errors import SchedulerError
from .models import ArchiveClass, BackupReport, GameProfile
from .orchestrator import BackupOrchestrator

# Late ticks run once, coalesced, however late they are.
JOB_DEFAULTS = {"coalesce": True, "max_instances": 1, "misfire_grace_time": None}


class AutoSaveScheduler:
    """
    Two states, Running and Stopped. ``start`` may only be called while
    stopped. ``stop`` sets the session's cancellation token and blocks until
    any backup in flight has finished.
    """

    def __init__(
        self,
        orchestrator: BackupOrchestrator,
        on_report: Optional[Callable[[BackupReport], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._orchestrator = orchestrator
        self._on_report = on_report
        self._on_error = on_error
        self._scheduler: Optional[BackgroundScheduler] = None
        self._cancel: Optional[threading.Event] = None
        self._profile: Optional[GameProfile] = None
        self._audit = AuditLogger()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    @property
    def profile(self) -> Optional[GameProfile]:
        return self._profile

    def start(self, profile: GameProfile) -> None:
        if self.running:
            raise SchedulerError(
                f"Auto-save is already running for '{self._profile.name}'. Stop it before starting another."
            )

        cancel = threading.Event()
        scheduler = BackgroundScheduler(job_defaults=JOB_DEFAULTS)
        scheduler.add_job(
            self._tick,
            "interval",
            seconds=profile.auto_save_interval,
            args=[profile, cancel],
            id=f"autosave:{profile.name}",
        )
        scheduler.start()

        self._scheduler = scheduler
        self._cancel = cancel
        self._profile = profile
        self._audit.log("scheduler_start", profile=profile.name, interval=profile.auto_save_interval)

    def stop(self) -> None:
        """Cancel the loop and wait for it. Safe to call when already stopped."""
        if not self.running:
            return
        scheduler, profile = self._scheduler, self._profile
        self._cancel.set()
        self._scheduler = None
        self._cancel = None
        self._profile = None
        scheduler.shutdown(wait=True)
        self._audit.log("scheduler_stop", profile=profile.name)

    def _tick(self, profile: GameProfile, cancel: threading.Event) -> None:
        if cancel.is_set():
            return
        try:
            # The profile lock is reentrant; a tick that waited on it re-checks the token.
            with self._orchestrator.lock_for(profile.name):
                if cancel.is_set():
                    return
                report = self._orchestrator.run_backup(profile, ArchiveClass.AUTO)
            if self._on_report:
                self._on_report(report)
        except Exception as e:
            # A failed tick never ends the loop.
            self._audit.log("scheduler_tick_failed", profile=profile.name, error=str(e))
            if self._on_error:
                self._on_error(e)
