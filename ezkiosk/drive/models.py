from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from ..infrastructure.error_handling import InvalidTransitionError


class JobKind(Enum):
    UPLOAD = "upload"
    SYNC = "sync"

    @property
    def table(self) -> str:
        return "upload_jobs" if self is JobKind.UPLOAD else "sync_jobs"

    @property
    def in_progress_value(self) -> str:
        return "uploading" if self is JobKind.UPLOAD else "syncing"


class JobStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def to_db(self, kind: JobKind) -> str:
        if self is JobStatus.IN_PROGRESS:
            return kind.in_progress_value
        return self.value

    @classmethod
    def from_db(cls, value: Optional[str]) -> "JobStatus":
        if value in ("uploading", "syncing", "in_progress"):
            return cls.IN_PROGRESS
        try:
            return cls(value)
        except ValueError:
            raise InvalidTransitionError(f"Unknown job status: {value!r}", field="status", value=value)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    @property
    def is_retryable(self) -> bool:
        return self in (JobStatus.FAILED, JobStatus.CANCELLED)


ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def check_transition(current: JobStatus, target: JobStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move job from {current.value} to {target.value}",
            field="status",
            value=target.value,
        )


@dataclass
class DriveConfig:
    id: str
    name: str
    client_id: str
    client_secret: str
    refresh_token: str
    is_active: bool = True
    daily_upload_time: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DriveConfig":
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            client_id=row.get("client_id") or "",
            client_secret=row.get("client_secret") or "",
            refresh_token=row.get("refresh_token") or "",
            is_active=bool(row.get("is_active", True)),
            daily_upload_time=row.get("daily_upload_time"),
        )


@dataclass
class FolderMapping:
    kiosk_id: str
    gdrive_config_id: str
    active_folder_id: str
    archive_folder_id: str
    id: Optional[str] = None
    kiosk_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FolderMapping":
        kiosk = row.get("kiosks") or {}
        return cls(
            id=row.get("id"),
            kiosk_id=row["kiosk_id"],
            gdrive_config_id=row.get("gdrive_config_id") or "",
            active_folder_id=row["active_folder_id"],
            archive_folder_id=row["archive_folder_id"],
            kiosk_name=kiosk.get("name") if isinstance(kiosk, Mapping) else None,
        )


@dataclass
class Kiosk:
    id: str
    name: str
    location: Optional[str] = None


@dataclass
class SyncResult:
    files_activated: int = 0
    files_archived: int = 0
    files_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def files_synced(self) -> int:
        return self.files_activated + self.files_archived

    def to_row(self) -> Dict[str, int]:
        return {
            "files_synced": self.files_synced,
            "files_archived": self.files_archived,
            "files_activated": self.files_activated,
        }


@dataclass
class FolderStructure:
    kiosk_id: str
    kiosk_name: str
    active_folder_id: Optional[str] = None
    archive_folder_id: Optional[str] = None
    status: str = "ready"
    folder_path: Optional[str] = None
    id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class JobRunSummary:
    kind: JobKind
    completed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.completed) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "processed": self.processed,
            "completed": len(self.completed),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }
