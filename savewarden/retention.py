"""
Retention policy: decides which archives fall outside a class quota.
"""
from typing import Dict, Iterable, List, Sequence

from .models import ArchiveClass, ArchiveIdentity, ClassLimits


def select_for_purge(archives: Sequence[ArchiveIdentity], limit: int) -> List[ArchiveIdentity]:
    """
    Return the oldest archives beyond ``limit``.
    ``archives`` must all be of one class at one location. A limit of 0
    means unlimited. Age comes from the epoch prefix, never from mtime.
    """
    if limit < 0:
        raise ValueError(f"Retention limit must be >= 0, got {limit}")
    if limit == 0 or len(archives) <= limit:
        return []
    ordered = sorted(archives, key=lambda a: a.sort_key)
    return ordered[: len(ordered) - limit]

def plan_purge(archives: Iterable[ArchiveIdentity], limits: ClassLimits) -> Dict[ArchiveClass, List[ArchiveIdentity]]:
    """Split a location listing by class and apply each class limit independently."""
    by_class: Dict[ArchiveClass, List[ArchiveIdentity]] = {c: [] for c in ArchiveClass}
    for archive in archives:
        by_class[archive.archive_class].append(archive)
    return {c: select_for_purge(items, limits.for_class(c)) for c, items in by_class.items()}
