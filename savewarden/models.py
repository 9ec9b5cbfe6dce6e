"""
Pydantic v2 data models for SaveWarden.
"""
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

STAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

INVALID_NAME_CHARS = set('<>:"/\\|?*')
RESERVED_NAMES = {"CON", "PRN", "AUX", "NUL"} | {f"{p}{i}" for p in ("COM", "LPT") for i in range(1, 10)}


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)

class ArchiveClass(str, Enum):
    AUTO = "A"
    MANUAL = "M"

    @property
    def label(self) -> str:
        return "Auto" if self is ArchiveClass.AUTO else "Manual"

class Location(str, Enum):
    LOCAL = "local"
    MIRROR = "mirror"

    @property
    def label(self) -> str:
        return "Local" if self is Location.LOCAL else "Mirror"

def is_valid_segment(name: str) -> bool:
    """Return True if name is usable as a single directory name on every platform."""
    if not name:
        return False
    if any(c in INVALID_NAME_CHARS or ord(c) < 32 for c in name):
        return False
    if name.upper() in RESERVED_NAMES:
        return False
    return name[-1] not in (" ", ".")

class GameProfile(FrozenModel):
    name: str
    source_dir: str
    auto_save_interval: int = Field(600, gt=0)  # seconds
    mirror_enabled: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not is_valid_segment(v):
            raise ValueError(
                'Name must be non-empty, avoid < > : " / \\ | ? * and control characters, '
                "must not be a reserved device name and must not end with a space or dot"
            )
        return v

    @field_validator("source_dir")
    @classmethod
    def validate_source_dir(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Save path cannot be empty")
        return v

class ArchiveIdentity(FrozenModel):
    epoch: int = Field(..., ge=0)
    stamp: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}$")
    archive_class: ArchiveClass

    @property
    def name(self) -> str:
        return f"{self.epoch}-[{self.stamp}]-{self.archive_class.value}"

    @property
    def created_at(self) -> datetime:
        return datetime.strptime(self.stamp, STAMP_FORMAT)

    @property
    def sort_key(self) -> tuple:
        return (self.epoch, self.name)

class ClassLimits(FrozenModel):
    auto: int = Field(0, ge=0)
    manual: int = Field(0, ge=0)

    def for_class(self, archive_class: ArchiveClass) -> int:
        return self.auto if archive_class is ArchiveClass.AUTO else self.manual

class RetentionLimits(FrozenModel):
    # 0 keeps everything for that class/location
    local_auto: int = Field(20, ge=0)
    local_manual: int = Field(0, ge=0)
    mirror_auto: int = Field(10, ge=0)
    mirror_manual: int = Field(25, ge=0)

    def for_location(self, location: Location) -> ClassLimits:
        if location is Location.LOCAL:
            return ClassLimits(auto=self.local_auto, manual=self.local_manual)
        return ClassLimits(auto=self.mirror_auto, manual=self.mirror_manual)

class Settings(FrozenModel):
    limits: RetentionLimits = Field(default_factory=RetentionLimits)
    mirror_root: Optional[str] = None
    local_root: Optional[str] = None
    active_profile: Optional[str] = None

    @property
    def mirror_available(self) -> bool:
        return bool(self.mirror_root and self.mirror_root.strip())

class PurgeOutcome(FrozenModel):
    identity: ArchiveIdentity
    location: Location
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

class BackupReport(FrozenModel):
    profile_name: str
    identity: ArchiveIdentity
    finished_at: datetime
    local_success: bool
    local_error: Optional[str] = None
    mirror_attempted: bool = False
    mirror_success: bool = False
    mirror_error: Optional[str] = None
    purge_messages: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.local_success

    def summary(self) -> str:
        """One-line outcome of the run."""
        head = f"[{self.finished_at:%Y-%m-%d %H:%M:%S}] [{self.identity.archive_class.value}]"
        if not self.local_success:
            return f"{head} Local backup FAILED for {self.identity.name}: {self.local_error}"
        if self.mirror_attempted and self.mirror_success:
            where = "Local + Mirror"
        elif self.mirror_attempted:
            where = f"Local only, mirror copy FAILED: {self.mirror_error}"
        else:
            where = "Local"
        return f"{head} Backup {self.identity.name} completed ({where})."

    def lines(self) -> List[str]:
        return [self.summary(), *self.purge_messages]

class DoctorCheck(FrozenModel):
    name: str
    status: Literal["pass", "warn", "fail"]
    detail: str
