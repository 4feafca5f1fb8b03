"""Kiosk Google Drive folders: upload jobs, sync jobs and lifecycle reconciliation."""

from .models import JobKind, JobStatus, SyncResult, FolderMapping, FolderStructure, DriveConfig, Kiosk
from .jobs import JobStore
from .reconciler import FolderReconciler
from .service import GoogleDriveService

__all__ = [
    "JobKind",
    "JobStatus",
    "SyncResult",
    "FolderMapping",
    "FolderStructure",
    "DriveConfig",
    "Kiosk",
    "JobStore",
    "FolderReconciler",
    "GoogleDriveService",
]
