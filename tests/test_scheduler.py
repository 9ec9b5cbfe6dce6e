import threading
import time

import pytest

from savewarden.errors import SchedulerError
from savewarden.models import ArchiveClass, Location
from savewarden.orchestrator import BackupOrchestrator
from savewarden.scheduler import AutoSaveScheduler
from savewarden.store import open_store


class RecordingOrchestrator:
    """Stands in for BackupOrchestrator; optionally fails or stalls."""
    def __init__(self, fail_first: bool = False, delay: float = 0.0):
        self.calls = []
        self.fail_first = fail_first
        self.delay = delay
        self.started = threading.Event()
        self.finished = threading.Event()
        self.lock = threading.RLock()

    def lock_for(self, profile_name):
        return self.lock

    def run_backup(self, profile, archive_class):
        self.calls.append(archive_class)
        self.started.set()
        if self.delay:
            time.sleep(self.delay)
        self.finished.set()
        if self.fail_first and len(self.calls) == 1:
            raise OSError("file locked by another process")
        return archive_class

def _wait_for(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False

def test_start_stop_states(profile):
    scheduler = AutoSaveScheduler(RecordingOrchestrator())
    assert not scheduler.running

    scheduler.start(profile.model_copy(update={"auto_save_interval": 3600}))
    assert scheduler.running
    assert scheduler.profile.name == profile.name

    with pytest.raises(SchedulerError):
        scheduler.start(profile)

    scheduler.stop()
    assert not scheduler.running
    scheduler.stop()

def test_restart_after_stop(profile):
    scheduler = AutoSaveScheduler(RecordingOrchestrator())
    scheduler.start(profile.model_copy(update={"auto_save_interval": 3600}))
    scheduler.stop()
    scheduler.start(profile.model_copy(update={"auto_save_interval": 3600}))
    assert scheduler.running
    scheduler.stop()

def test_ticks_run_auto_backups(profile):
    orch = RecordingOrchestrator()
    reports = []
    scheduler = AutoSaveScheduler(orch, on_report=reports.append)
    scheduler.start(profile)
    try:
        assert _wait_for(lambda: len(reports) >= 2)
    finally:
        scheduler.stop()
    assert set(orch.calls) == {ArchiveClass.AUTO}

def test_failed_tick_does_not_stop_the_loop(profile):
    orch = RecordingOrchestrator(fail_first=True)
    errors = []
    scheduler = AutoSaveScheduler(orch, on_error=errors.append)
    scheduler.start(profile)
    try:
        assert _wait_for(lambda: len(orch.calls) >= 2)
    finally:
        scheduler.stop()
    assert len(errors) == 1
    assert "file locked" in str(errors[0])

def test_stop_waits_for_backup_in_flight(profile):
    orch = RecordingOrchestrator(delay=0.8)
    scheduler = AutoSaveScheduler(orch)
    scheduler.start(profile)
    assert orch.started.wait(10)

    scheduler.stop()

    assert orch.finished.is_set()

def test_no_ticks_after_stop(profile):
    orch = RecordingOrchestrator()
    scheduler = AutoSaveScheduler(orch)
    scheduler.start(profile)
    scheduler.stop()
    count = len(orch.calls)

    time.sleep(1.5)

    assert len(orch.calls) == count

def test_basic_lifecycle_keeps_newest_two(settings, profile):
    reports = []
    three = threading.Event()

    def collect(report):
        reports.append(report)
        if len(reports) >= 3:
            three.set()

    scheduler = AutoSaveScheduler(BackupOrchestrator(settings), on_report=collect)
    scheduler.start(profile)
    try:
        assert three.wait(15)
    finally:
        scheduler.stop()

    store = open_store(settings, Location.LOCAL)
    remaining = store.list_archives(profile.name)
    first = reports[0].identity
    assert all(r.local_success for r in reports)
    assert len(remaining) == 2
    assert all(a.archive_class is ArchiveClass.AUTO for a in remaining)
    assert all(a.epoch > first.epoch for a in remaining)
    assert not store.archive_path(profile.name, first).exists()

def test_late_ticks_are_never_dropped(profile):
    scheduler = AutoSaveScheduler(RecordingOrchestrator())
    scheduler.start(profile.model_copy(update={"auto_save_interval": 3600}))
    try:
        job = scheduler._scheduler.get_jobs()[0]
        assert job.misfire_grace_time is None
        assert job.coalesce is True
        assert job.max_instances == 1
    finally:
        scheduler.stop()

def test_tick_waiting_on_the_profile_lock_skips_after_stop(profile):
    orch = RecordingOrchestrator()
    scheduler = AutoSaveScheduler(orch)

    orch.lock.acquire()
    scheduler.start(profile)
    time.sleep(1.5)
    stopper = threading.Thread(target=scheduler.stop)
    stopper.start()
    assert _wait_for(lambda: not scheduler.running)
    orch.lock.release()

    stopper.join(10)
    assert not stopper.is_alive()
    assert orch.calls == []
