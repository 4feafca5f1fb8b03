"""
Upload and sync job rows.

Jobs are persisted work items in ``upload_jobs`` / ``sync_jobs``; an external
trigger polls the pending ones. Status changes go through the transition
table in ``models`` and terminal rows are never reopened: a retry inserts a
new pending row pointing at its predecessor through ``retry_of``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..infrastructure.error_handling import InvalidTransitionError, ValidationError
from ..infrastructure.supabase_helpers import fetch_one, insert_row, log_supabase_error, rows
from ..utils import iso_now, now_utc, to_iso
from .models import JobKind, JobStatus, check_transition

logger = logging.getLogger(__name__)

UPLOAD_TYPES = ("scheduled", "immediate", "sync")
FOLDER_TYPES = ("active", "archive")
SYNC_TYPES = ("hourly", "manual", "campaign_status")

_UPLOAD_WORK_FIELDS = ("gdrive_config_id", "kiosk_id", "campaign_id", "media_asset_id", "upload_type", "folder_type")
_SYNC_WORK_FIELDS = ("gdrive_config_id", "kiosk_id", "sync_type")


class JobStore:
    def __init__(self, client: Any) -> None:
        self.client = client

    # ------------------------------------------------------------- creation

    def schedule_upload(
        self,
        gdrive_config_id: str,
        kiosk_id: str,
        campaign_id: str,
        media_asset_id: str,
        scheduled_time: Any = None,
        upload_type: str = "scheduled",
        folder_type: str = "active",
    ) -> Dict[str, Any]:
        if upload_type not in UPLOAD_TYPES:
            raise ValidationError(f"Invalid upload_type: {upload_type}", field="upload_type", value=upload_type)
        if folder_type not in FOLDER_TYPES:
            raise ValidationError(f"Invalid folder_type: {folder_type}", field="folder_type", value=folder_type)
        return insert_row(self.client, JobKind.UPLOAD.table, {
            "gdrive_config_id": gdrive_config_id,
            "kiosk_id": kiosk_id,
            "campaign_id": campaign_id,
            "media_asset_id": media_asset_id,
            "scheduled_time": to_iso(scheduled_time) or iso_now(),
            "upload_type": upload_type,
            "folder_type": folder_type,
            "status": JobStatus.PENDING.to_db(JobKind.UPLOAD),
        })

    def create_sync_job(self, gdrive_config_id: str, kiosk_id: str, sync_type: str = "hourly") -> Dict[str, Any]:
        if sync_type not in SYNC_TYPES:
            raise ValidationError(f"Invalid sync_type: {sync_type}", field="sync_type", value=sync_type)
        return insert_row(self.client, JobKind.SYNC.table, {
            "gdrive_config_id": gdrive_config_id,
            "kiosk_id": kiosk_id,
            "sync_type": sync_type,
            "status": JobStatus.PENDING.to_db(JobKind.SYNC),
        })

    # -------------------------------------------------------------- queries

    def _list(self, kind: JobKind, order_column: str, descending: bool, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = self.client.table(kind.table).select("*")
        for column, value in filters.items():
            if value is not None:
                query = query.eq(column, value)
        try:
            return rows(query.order(order_column, desc=descending).execute())
        except Exception as e:
            log_supabase_error("select", kind.table, e)
            raise

    def get_upload_jobs(
        self,
        kiosk_id: Optional[str] = None,
        campaign_id: Optional[str] = None,
        status: Optional[str] = None,
        upload_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return self._list(JobKind.UPLOAD, "scheduled_time", True, {
            "kiosk_id": kiosk_id,
            "campaign_id": campaign_id,
            "status": status,
            "upload_type": upload_type,
        })

    def get_sync_jobs(
        self,
        kiosk_id: Optional[str] = None,
        status: Optional[str] = None,
        sync_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return self._list(JobKind.SYNC, "created_at", True, {
            "kiosk_id": kiosk_id,
            "status": status,
            "sync_type": sync_type,
        })

    def pending_upload_jobs(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Pending uploads whose ``scheduled_time`` has passed, oldest first."""
        cutoff = to_iso(now or now_utc())
        try:
            response = (
                self.client.table(JobKind.UPLOAD.table)
                .select("*")
                .eq("status", JobStatus.PENDING.value)
                .lte("scheduled_time", cutoff)
                .order("scheduled_time")
                .execute()
            )
        except Exception as e:
            log_supabase_error("select", JobKind.UPLOAD.table, e)
            raise
        return rows(response)

    def pending_sync_jobs(self) -> List[Dict[str, Any]]:
        try:
            response = (
                self.client.table(JobKind.SYNC.table)
                .select("*")
                .eq("status", JobStatus.PENDING.value)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            log_supabase_error("select", JobKind.SYNC.table, e)
            raise
        return rows(response)

    def get_job(self, kind: JobKind, job_id: str) -> Dict[str, Any]:
        job = fetch_one(self.client, kind.table, "*", id=job_id)
        if job is None:
            raise ValidationError(f"{kind.value} job {job_id} not found", field="id", value=job_id)
        return job

    # ---------------------------------------------------------- transitions

    def transition(self, kind: JobKind, job_id: str, target: JobStatus, **fields: Any) -> Dict[str, Any]:
        job = self.get_job(kind, job_id)
        current_value = job.get("status")
        current = JobStatus.from_db(current_value)
        check_transition(current, target)

        data = {"status": target.to_db(kind), "updated_at": iso_now()}
        data.update(fields)
        try:
            updated = rows(
                self.client.table(kind.table)
                .update(data)
                .eq("id", job_id)
                .eq("status", current_value)
                .execute()
            )
        except Exception as e:
            log_supabase_error("update", kind.table, e, {"id": job_id, "status": data["status"]})
            raise
        if not updated:
            raise InvalidTransitionError(
                f"{kind.value} job {job_id} changed status concurrently (was {current_value})",
                field="status",
                value=target.value,
            )
        logger.debug(f"{kind.value} job {job_id}: {current_value} -> {data['status']}")
        return updated[0]

    def mark_in_progress(self, kind: JobKind, job_id: str) -> Dict[str, Any]:
        return self.transition(kind, job_id, JobStatus.IN_PROGRESS, started_at=iso_now())

    def mark_completed(self, kind: JobKind, job_id: str, **result: Any) -> Dict[str, Any]:
        return self.transition(kind, job_id, JobStatus.COMPLETED, completed_at=iso_now(), **result)

    def mark_failed(self, kind: JobKind, job_id: str, error_message: str) -> Dict[str, Any]:
        return self.transition(
            kind, job_id, JobStatus.FAILED, error_message=error_message or "Unknown error", completed_at=iso_now()
        )

    def cancel_job(self, kind: JobKind, job_id: str) -> Dict[str, Any]:
        """Cancel a pending or running job. An in-flight Drive request is not interrupted."""
        return self.transition(kind, job_id, JobStatus.CANCELLED, completed_at=iso_now())

    def retry_job(self, kind: JobKind, job_id: str) -> Dict[str, Any]:
        job = self.get_job(kind, job_id)
        status = JobStatus.from_db(job.get("status"))
        if not status.is_retryable:
            raise InvalidTransitionError(
                f"Only failed or cancelled jobs can be retried ({kind.value} job {job_id} is {job.get('status')})",
                field="status",
                value=job.get("status"),
            )

        work_fields = _UPLOAD_WORK_FIELDS if kind is JobKind.UPLOAD else _SYNC_WORK_FIELDS
        data = {key: job.get(key) for key in work_fields if job.get(key) is not None}
        data["status"] = JobStatus.PENDING.value
        data["retry_of"] = job_id
        if kind is JobKind.UPLOAD:
            data["scheduled_time"] = iso_now()

        new_job = insert_row(self.client, kind.table, data)
        logger.info(f"🔁 Retrying {kind.value} job {job_id} as {new_job.get('id')}")
        return new_job
