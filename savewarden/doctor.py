"""
Doctor diagnostic suite.
"""
import importlib.metadata
import os
from pathlib import Path
from typing import List

from .config import get_config_dir, list_profiles, load_profile, load_settings, local_backup_root, mirror_backup_root
from .models import DoctorCheck, Settings
from .utils import free_space, human_size

LOW_SPACE_BYTES = 1 << 30
CORE_DEPENDENCIES = ("apscheduler", "pydantic", "rich", "typer")


def run_diagnostics() -> List[DoctorCheck]:
    """Execute the health checks synchronously."""
    checks: List[DoctorCheck] = []

    # 1. Config directory
    config_dir = get_config_dir()
    status = "pass" if os.access(config_dir, os.W_OK) else "fail"
    checks.append(DoctorCheck(name="1. Config Directory", status=status, detail=str(config_dir)))

    # 2. Settings
    try:
        settings = load_settings()
        checks.append(DoctorCheck(name="2. Settings File", status="pass", detail="Valid"))
    except Exception as e:
        settings = Settings()
        checks.append(DoctorCheck(name="2. Settings File", status="fail", detail=str(e)))

    # 3. Profile validity
    profiles = list_profiles()
    invalid_count = 0
    for p in profiles:
        try:
            load_profile(p)
        except Exception:
            invalid_count += 1
    if invalid_count == 0:
        checks.append(DoctorCheck(name="3. Profile Schema", status="pass", detail=f"{len(profiles)} profiles valid"))
    else:
        checks.append(DoctorCheck(name="3. Profile Schema", status="fail", detail=f"{invalid_count} profiles corrupted"))

    # 4. Active profile save folder
    if not settings.active_profile:
        checks.append(DoctorCheck(name="4. Active Save Folder", status="warn", detail="No active profile selected"))
    else:
        try:
            source = Path(load_profile(settings.active_profile).source_dir)
            status = "pass" if source.is_dir() else "fail"
            detail = str(source) if source.is_dir() else f"Not found: {source}"
            checks.append(DoctorCheck(name="4. Active Save Folder", status=status, detail=detail))
        except Exception as e:
            checks.append(DoctorCheck(name="4. Active Save Folder", status="fail", detail=str(e)))

    # 5. Local backup root
    local_root = local_backup_root(settings)
    try:
        free = free_space(local_root)
        status = "pass" if free > LOW_SPACE_BYTES else "warn"
        checks.append(DoctorCheck(name="5. Local Backups", status=status, detail=f"{local_root} ({human_size(free)} free)"))
    except Exception as e:
        checks.append(DoctorCheck(name="5. Local Backups", status="fail", detail=str(e)))

    # 6. Mirror root
    mirror_root = mirror_backup_root(settings)
    if mirror_root is None:
        checks.append(DoctorCheck(name="6. Mirror Folder", status="warn", detail="Not configured; mirroring disabled"))
    elif not Path(settings.mirror_root).is_dir():
        checks.append(DoctorCheck(name="6. Mirror Folder", status="fail", detail=f"Not found: {settings.mirror_root}"))
    else:
        checks.append(DoctorCheck(name="6. Mirror Folder", status="pass", detail=str(mirror_root)))

    # 7. Dependencies
    missing = []
    for dist in CORE_DEPENDENCIES:
        try:
            importlib.metadata.version(dist)
        except importlib.metadata.PackageNotFoundError:
            missing.append(dist)
    if missing:
        checks.append(DoctorCheck(name="7. Dependencies", status="fail", detail=f"Missing: {', '.join(missing)}"))
    else:
        checks.append(DoctorCheck(name="7. Dependencies", status="pass", detail="All core requirements met"))

    return checks
