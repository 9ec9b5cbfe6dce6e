from datetime import datetime
from pathlib import Path

import pytest

from savewarden.errors import (
    InvalidSelectionError,
    NoArchivesFoundError,
    NoManualArchiveError,
    RestoreFailedError,
    SourceUnavailableError,
)
from savewarden.models import ArchiveClass, Location
from savewarden.naming import identity_for
from savewarden.restore import RestoreSelector
from savewarden.store import open_store


def ident(minute: int, archive_class: ArchiveClass):
    return identity_for(datetime(2024, 6, 1, 9, minute, 0), archive_class)

@pytest.fixture
def selector(settings) -> RestoreSelector:
    return RestoreSelector.from_settings(settings)

def _capture(selector, location, profile, identity, files):
    """Write an archive with the given files straight into a store."""
    path = selector.store(location).archive_path(profile.name, identity)
    for rel, text in files.items():
        (path / rel).parent.mkdir(parents=True, exist_ok=True)
        (path / rel).write_text(text)
    return path

def test_listing_is_newest_first(selector, profile):
    for minute, cls in ((1, ArchiveClass.AUTO), (3, ArchiveClass.MANUAL), (2, ArchiveClass.AUTO)):
        _capture(selector, Location.LOCAL, profile, ident(minute, cls), {"a.txt": "a"})

    listing = selector.list_for_display(Location.LOCAL, profile.name)

    assert [a.created_at.minute for a in listing] == [3, 2, 1]

def test_listing_empty_is_not_an_error(selector, profile, settings):
    assert selector.list_for_display(Location.LOCAL, profile.name) == []
    assert selector.list_for_display(Location.MIRROR, profile.name) == []
    no_mirror = RestoreSelector(open_store(settings, Location.LOCAL))
    assert no_mirror.list_for_display(Location.MIRROR, profile.name) == []

def test_restore_latest_manual_replaces_live_contents(selector, profile, save_dir: Path):
    _capture(selector, Location.LOCAL, profile, ident(1, ArchiveClass.MANUAL), {"slot1/save.dat": "old"})
    newest = ident(5, ArchiveClass.MANUAL)
    archive = _capture(selector, Location.LOCAL, profile, newest, {"slot1/save.dat": "new", "extra/b.txt": "b"})
    # a newer auto save must not be chosen
    _capture(selector, Location.LOCAL, profile, ident(9, ArchiveClass.AUTO), {"slot1/save.dat": "auto"})
    (save_dir / "stray.tmp").write_text("left over")

    restored = selector.restore_latest_manual(profile)

    assert restored == newest
    assert (save_dir / "slot1" / "save.dat").read_text() == "new"
    assert (save_dir / "extra" / "b.txt").read_text() == "b"
    assert not (save_dir / "stray.tmp").exists()
    assert not (save_dir / "options.ini").exists()
    # archive is only read
    assert (archive / "slot1" / "save.dat").read_text() == "new"

def test_restore_latest_manual_uses_name_not_mtime(selector, profile, save_dir: Path):
    older = _capture(selector, Location.LOCAL, profile, ident(1, ArchiveClass.MANUAL), {"f": "older"})
    _capture(selector, Location.LOCAL, profile, ident(2, ArchiveClass.MANUAL), {"f": "newer"})
    (older / "touched").write_text("bumps mtime")

    selector.restore_latest_manual(profile)

    assert (save_dir / "f").read_text() == "newer"

def test_restore_latest_manual_without_manual(selector, profile, save_dir: Path):
    _capture(selector, Location.LOCAL, profile, ident(1, ArchiveClass.AUTO), {"f": "auto"})

    with pytest.raises(NoManualArchiveError):
        selector.restore_latest_manual(profile)
    assert (save_dir / "options.ini").exists()

def test_restore_creates_missing_live_dir(selector, profile, tmp_path: Path):
    live = tmp_path / "fresh" / "saves"
    target = profile.model_copy(update={"source_dir": str(live)})
    identity = ident(1, ArchiveClass.MANUAL)
    _capture(selector, Location.LOCAL, target, identity, {"f": "data"})

    selector.restore_chosen(target, Location.LOCAL, identity)

    assert (live / "f").read_text() == "data"

def test_restore_onto_file_is_refused(selector, profile, tmp_path: Path):
    live = tmp_path / "save-file"
    live.write_text("not a folder")
    target = profile.model_copy(update={"source_dir": str(live)})
    identity = ident(1, ArchiveClass.MANUAL)
    archive = _capture(selector, Location.LOCAL, target, identity, {"f": "data"})

    with pytest.raises(SourceUnavailableError):
        selector.restore_chosen(target, Location.LOCAL, identity)
    assert live.read_text() == "not a folder"
    assert (archive / "f").read_text() == "data"

def test_restore_chosen_from_mirror(selector, profile, save_dir: Path):
    identity = ident(4, ArchiveClass.AUTO)
    _capture(selector, Location.MIRROR, profile, identity, {"cloud.sav": "from cloud"})

    selector.restore_chosen(profile, Location.MIRROR, identity)

    assert [p.name for p in save_dir.iterdir()] == ["cloud.sav"]

def test_restore_chosen_missing_archive(selector, profile):
    with pytest.raises(RestoreFailedError):
        selector.restore_chosen(profile, Location.LOCAL, ident(1, ArchiveClass.MANUAL))

def test_restore_from_unconfigured_mirror(settings, profile):
    selector = RestoreSelector(open_store(settings, Location.LOCAL))
    with pytest.raises(RestoreFailedError):
        selector.restore_chosen(profile, Location.MIRROR, ident(1, ArchiveClass.MANUAL))

def test_pick(selector, profile):
    with pytest.raises(NoArchivesFoundError):
        selector.pick(Location.LOCAL, profile.name, 1)

    for minute in (1, 2, 3):
        _capture(selector, Location.LOCAL, profile, ident(minute, ArchiveClass.AUTO), {"f": str(minute)})

    assert selector.pick(Location.LOCAL, profile.name, 1).created_at.minute == 3
    assert selector.pick(Location.LOCAL, profile.name, 3).created_at.minute == 1
    with pytest.raises(InvalidSelectionError):
        selector.pick(Location.LOCAL, profile.name, 4)
    with pytest.raises(InvalidSelectionError):
        selector.pick(Location.LOCAL, profile.name, 0)
