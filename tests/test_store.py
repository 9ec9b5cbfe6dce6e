import os
import shutil
import sys
from datetime import datetime
from pathlib import Path

import pytest

from savewarden.errors import CaptureFailedError, ProfileExistsError, SourceUnavailableError
from savewarden.models import ArchiveClass, Location
from savewarden.naming import identity_for
from savewarden.store import BackupStore, open_store

PROFILE = "Hollow Knight"


def ident(second: int, archive_class: ArchiveClass = ArchiveClass.AUTO):
    return identity_for(datetime(2024, 5, 1, 10, 0, second), archive_class)

@pytest.fixture
def store(tmp_path: Path) -> BackupStore:
    return BackupStore(tmp_path / "Backups")

def test_capture_copies_full_tree(store: BackupStore, save_dir: Path):
    identity = ident(1)
    target = store.capture(PROFILE, save_dir, identity)

    assert target == store.root / PROFILE / identity.name
    assert (target / "slot1" / "save.dat").read_bytes() == b"\x00\x01level=3"
    assert (target / "options.ini").read_text() == "volume=7"

def test_capture_missing_source(store: BackupStore, tmp_path: Path):
    with pytest.raises(SourceUnavailableError):
        store.capture(PROFILE, tmp_path / "nope", ident(1))
    assert not store.root.exists()

def test_capture_failure_leaves_no_partial_archive(store: BackupStore, save_dir: Path, monkeypatch):
    real_copytree = shutil.copytree
    copied = []

    def copy_then_fail(src, dst, *args, **kwargs):
        if copied:
            raise OSError(28, "No space left on device")
        copied.append(src)
        return shutil.copy2(src, dst)

    # shutil recurses through the module-level name, so this also covers subfolders.
    def flaky_copytree(src, dst, *args, **kwargs):
        return real_copytree(src, dst, symlinks=False, copy_function=copy_then_fail)

    monkeypatch.setattr(shutil, "copytree", flaky_copytree)
    identity = ident(2)

    with pytest.raises(CaptureFailedError) as exc:
        store.capture(PROFILE, save_dir, identity)

    assert "No space left on device" in str(exc.value)
    assert copied
    assert not (store.root / PROFILE / identity.name).exists()

def test_capture_never_overwrites_existing_archive(store: BackupStore, save_dir: Path):
    identity = ident(3)
    target = store.capture(PROFILE, save_dir, identity)
    (save_dir / "options.ini").write_text("volume=0")

    with pytest.raises(CaptureFailedError, match="already exists"):
        store.capture(PROFILE, save_dir, identity)

    assert (target / "options.ini").read_text() == "volume=7"

@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
def test_capture_stores_symlinks_as_plain_copies(store: BackupStore, save_dir: Path, tmp_path: Path):
    outside = tmp_path / "shared.cfg"
    outside.write_text("shared")
    os.symlink(outside, save_dir / "link.cfg")

    target = store.capture(PROFILE, save_dir, ident(4))

    assert not (target / "link.cfg").is_symlink()
    assert (target / "link.cfg").read_text() == "shared"

def test_list_archives_missing_location_is_empty(store: BackupStore):
    assert store.list_archives(PROFILE) == []

def test_list_archives_sorted_and_filtered(store: BackupStore, save_dir: Path):
    for second, cls in ((30, ArchiveClass.MANUAL), (10, ArchiveClass.AUTO), (20, ArchiveClass.AUTO)):
        store.capture(PROFILE, save_dir, ident(second, cls))
    base = store.profile_dir(PROFILE)
    (base / "my notes").mkdir()
    (base / "1714557600-[2024-05-01_10-00-00]-A.txt").write_text("not a dir")

    archives = store.list_archives(PROFILE)

    assert [a.epoch for a in archives] == sorted(a.epoch for a in archives)
    assert [a.archive_class for a in archives] == [ArchiveClass.AUTO, ArchiveClass.AUTO, ArchiveClass.MANUAL]

def test_purge_continues_after_a_failure(store: BackupStore, save_dir: Path, monkeypatch):
    doomed = [ident(s) for s in (1, 2, 3)]
    for identity in doomed:
        store.capture(PROFILE, save_dir, identity)

    real_rmtree = shutil.rmtree
    locked = doomed[1].name

    def rmtree(path, *args, **kwargs):
        if Path(path).name == locked:
            raise PermissionError(13, "The process cannot access the file", str(path))
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr(shutil, "rmtree", rmtree)
    outcomes = store.purge(PROFILE, doomed)

    assert [o.ok for o in outcomes] == [True, False, True]
    assert "cannot access" in outcomes[1].error
    assert all(o.location is Location.LOCAL for o in outcomes)
    assert [a.name for a in store.list_archives(PROFILE)] == [locked]

def test_purge_missing_archive_is_reported(store: BackupStore):
    outcomes = store.purge(PROFILE, [ident(9)])
    assert not outcomes[0].ok

def test_remove_profile_tree(store: BackupStore, save_dir: Path):
    assert store.remove_profile_tree(PROFILE) is False
    store.capture(PROFILE, save_dir, ident(1))

    assert store.remove_profile_tree(PROFILE) is True
    assert not store.profile_dir(PROFILE).exists()

def test_rename_profile_tree(store: BackupStore, save_dir: Path):
    identity = ident(1)
    store.capture(PROFILE, save_dir, identity)

    assert store.rename_profile_tree(PROFILE, "Silksong") is True
    assert store.list_archives("Silksong") == [identity]
    assert store.rename_profile_tree("missing", "other") is False

    store.capture(PROFILE, save_dir, identity)
    with pytest.raises(ProfileExistsError):
        store.rename_profile_tree(PROFILE, "Silksong")

def test_open_store(settings, cloud_dir: Path):
    local = open_store(settings, Location.LOCAL)
    mirror = open_store(settings, Location.MIRROR)

    assert local.root == Path(settings.local_root)
    assert mirror.root == cloud_dir / "Game Save Backup Manager"
    assert mirror.location is Location.MIRROR
    assert open_store(settings.model_copy(update={"mirror_root": ""}), Location.MIRROR) is None

def test_interrupted_capture_leaves_no_partial_archive(store: BackupStore, save_dir: Path, monkeypatch):
    real_copytree = shutil.copytree

    def copy_then_interrupt(src, dst, *args, **kwargs):
        real_copytree(src, dst, *args, **kwargs)
        raise KeyboardInterrupt

    monkeypatch.setattr(shutil, "copytree", copy_then_interrupt)
    identity = ident(5)

    with pytest.raises(KeyboardInterrupt):
        store.capture(PROFILE, save_dir, identity)
    assert not (store.root / PROFILE / identity.name).exists()
