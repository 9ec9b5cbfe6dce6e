"""
Archive naming scheme.

An archive directory is named ``<epoch-seconds>-[<YYYY-MM-DD_HH-MM-SS>]-<A|M>``.
The epoch prefix makes lexicographic order follow creation order and the
class suffix is the only thing retention looks at.
"""
import re
from datetime import datetime
from typing import Optional

from .models import STAMP_FORMAT, ArchiveClass, ArchiveIdentity

ARCHIVE_NAME_RE = re.compile(r"^(\d+)-\[(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})\]-([AM])$")


def identity_for(instant: datetime, archive_class: ArchiveClass) -> ArchiveIdentity:
    """Build the identity of an archive captured at ``instant``.

    Naive datetimes are taken as local time; the human-readable stamp is
    always rendered in local time.
    """
    local = instant.astimezone()
    return ArchiveIdentity(
        epoch=int(local.timestamp()),
        stamp=local.strftime(STAMP_FORMAT),
        archive_class=archive_class,
    )

def encode(instant: datetime, archive_class: ArchiveClass) -> str:
    """Return the directory name for an archive captured at ``instant``."""
    return identity_for(instant, archive_class).name

def class_of(name: str) -> Optional[ArchiveClass]:
    """Classify a directory name by suffix. ``None`` means unknown."""
    if name.endswith("-A"):
        return ArchiveClass.AUTO
    if name.endswith("-M"):
        return ArchiveClass.MANUAL
    return None

def is_well_formed(name: str) -> bool:
    return ARCHIVE_NAME_RE.match(name) is not None

def decode(name: str) -> Optional[ArchiveIdentity]:
    """Parse a directory name back into an identity, or None if it is not an archive."""
    match = ARCHIVE_NAME_RE.match(name)
    if not match:
        return None
    epoch, stamp, letter = match.groups()
    try:
        datetime.strptime(stamp, STAMP_FORMAT)
    except ValueError:
        return None
    return ArchiveIdentity(epoch=int(epoch), stamp=stamp, archive_class=ArchiveClass(letter))
