"""
Google Drive kiosk service.

Owns the Drive configuration rows, the per-kiosk folder tree
(``EZ Kiosk Ads / Kiosks / <kiosk> / {Active, Archive}``), the upload and
sync job processors polled by the worker, the bulk "sync all folders"
operation, host ad delivery and the database-side asset lifecycle.

Interactive operations (test connection, create folders, sync all) log
failures and return a success flag plus message; the job processors isolate
failures per job and mark the row failed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import requests

from ..config import (
    APPROVED_ASSET_STATUS,
    DEFAULT_TIMEZONE,
    DRIVE_ACTIVE_FOLDER_NAME,
    DRIVE_ARCHIVE_FOLDER_NAME,
    DRIVE_KIOSKS_FOLDER_NAME,
    DRIVE_LIST_PAGE_SIZE,
    DRIVE_ROOT_FOLDER_NAME,
    validate_time_string,
)
from ..infrastructure.error_handling import (
    ConfigurationError,
    DriveApiError,
    InvalidTransitionError,
    ValidationError,
)
from ..infrastructure.supabase_helpers import (
    fetch_one,
    log_supabase_error,
    insert_row,
    public_storage_url,
    rows,
    update_rows,
)
from ..integrations.google_drive import GoogleDriveClient
from ..integrations.slack import alert_job_failures
from ..utils import iso_now, next_daily_run, to_iso
from .jobs import JobStore
from .models import DriveConfig, FolderMapping, FolderStructure, JobKind, JobRunSummary, Kiosk
from .reconciler import CAMPAIGNS_TABLE, FOLDER_MAPPINGS_TABLE, MEDIA_ASSETS_TABLE, FolderReconciler
from .uploads import host_ad_media_asset, upload_asset_to_drive

logger = logging.getLogger(__name__)

CONFIGS_TABLE = "google_drive_configs"
KIOSKS_TABLE = "kiosks"
HOST_ADS_TABLE = "host_ads"
HOST_AD_ASSIGNMENTS_TABLE = "host_ad_assignments"

# upload_jobs.campaign_id is required; host ads belong to no campaign
HOST_AD_CAMPAIGN_ID = "00000000-0000-0000-0000-000000000000"

LIFECYCLE_PROCEDURES = ("archive_expired_assets", "delete_old_archived_assets")


class GoogleDriveService:
    def __init__(
        self,
        client: Any,
        drive_factory: Optional[Callable[[DriveConfig], GoogleDriveClient]] = None,
        session: Optional[requests.Session] = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self.client = client
        self.session = session
        self.timezone = timezone
        self.jobs = JobStore(client)
        self._drive_factory = drive_factory or GoogleDriveClient.from_config
        self._drives: Dict[str, GoogleDriveClient] = {}

    # -------------------------------------------------------- configuration

    def get_config(self, config_id: Optional[str] = None) -> Optional[DriveConfig]:
        """First active configuration, optionally narrowed to ``config_id``."""
        query = self.client.table(CONFIGS_TABLE).select("*").eq("is_active", True)
        if config_id:
            query = query.eq("id", config_id)
        try:
            data = rows(query.execute())
        except Exception as e:
            log_supabase_error("select", CONFIGS_TABLE, e, {"id": config_id})
            return None
        return DriveConfig.from_row(data[0]) if data else None

    def save_config(
        self,
        name: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        is_active: bool = True,
        daily_upload_time: Optional[str] = None,
    ) -> Optional[str]:
        payload: Dict[str, Any] = {
            "name": name,
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "is_active": is_active,
        }
        if daily_upload_time is not None:
            payload["daily_upload_time"] = validate_time_string(daily_upload_time)
        try:
            data = rows(self.client.table(CONFIGS_TABLE).upsert(payload, on_conflict="name").execute())
        except Exception as e:
            log_supabase_error("upsert", CONFIGS_TABLE, e, {"name": name})
            return None
        return data[0].get("id") if data else None

    def update_config(self, config_id: str, **fields: Any) -> bool:
        if fields.get("daily_upload_time") is not None:
            fields["daily_upload_time"] = validate_time_string(fields["daily_upload_time"])
        fields["updated_at"] = iso_now()
        try:
            update_rows(self.client, CONFIGS_TABLE, fields, id=config_id)
        except Exception:
            return False
        self._drives.pop(config_id, None)
        return True

    def drive_for(self, config: DriveConfig) -> GoogleDriveClient:
        drive = self._drives.get(config.id)
        if drive is None:
            drive = self._drives[config.id] = self._drive_factory(config)
        return drive

    def test_connection(self, config_id: Optional[str] = None) -> Dict[str, Any]:
        config = self.get_config(config_id)
        if config is None:
            return {"success": False, "message": "No active Google Drive configuration found"}
        try:
            drive = self.drive_for(config)
        except ValueError as e:
            return {"success": False, "message": str(e)}
        return drive.test_connection()

    # --------------------------------------------------------------- folders

    def get_mapping(self, kiosk_id: str, config_id: str) -> Optional[FolderMapping]:
        row = fetch_one(self.client, FOLDER_MAPPINGS_TABLE, "*", kiosk_id=kiosk_id, gdrive_config_id=config_id)
        return FolderMapping.from_row(row) if row else None

    def create_kiosk_folders(self, config_id: str, kiosks: Iterable[Union[Kiosk, Mapping[str, Any]]]) -> List[FolderStructure]:
        config = self.get_config(config_id)
        if config is None:
            logger.error(f"No active Google Drive configuration {config_id}, cannot create kiosk folders")
            return []

        drive = self.drive_for(config)
        try:
            root = drive.ensure_folder(DRIVE_ROOT_FOLDER_NAME, None, DRIVE_LIST_PAGE_SIZE)
            kiosks_folder = drive.ensure_folder(DRIVE_KIOSKS_FOLDER_NAME, root.id, DRIVE_LIST_PAGE_SIZE)
        except DriveApiError as e:
            logger.error(f"Error creating kiosk folders: {e}")
            return []

        results: List[FolderStructure] = []
        for kiosk in kiosks:
            if isinstance(kiosk, Mapping):
                kiosk = Kiosk(id=kiosk["id"], name=kiosk.get("name") or kiosk["id"], location=kiosk.get("location"))
            folder_path = f"{DRIVE_ROOT_FOLDER_NAME} > {DRIVE_KIOSKS_FOLDER_NAME} > {kiosk.name} > [Active/Archive]"
            try:
                kiosk_folder = drive.ensure_folder(kiosk.name, kiosks_folder.id, DRIVE_LIST_PAGE_SIZE)
                active = drive.ensure_folder(DRIVE_ACTIVE_FOLDER_NAME, kiosk_folder.id, DRIVE_LIST_PAGE_SIZE)
                archive = drive.ensure_folder(DRIVE_ARCHIVE_FOLDER_NAME, kiosk_folder.id, DRIVE_LIST_PAGE_SIZE)
                saved = rows(
                    self.client.table(FOLDER_MAPPINGS_TABLE)
                    .upsert(
                        {
                            "kiosk_id": kiosk.id,
                            "gdrive_config_id": config.id,
                            "active_folder_id": active.id,
                            "archive_folder_id": archive.id,
                        },
                        on_conflict="kiosk_id,gdrive_config_id",
                    )
                    .execute()
                )
            except Exception as e:
                logger.error(f"Error creating folders for kiosk {kiosk.name}: {e}")
                results.append(FolderStructure(
                    kiosk_id=kiosk.id, kiosk_name=kiosk.name, status="error", folder_path=folder_path, error=str(e),
                ))
                continue

            results.append(FolderStructure(
                id=saved[0].get("id") if saved else None,
                kiosk_id=kiosk.id,
                kiosk_name=kiosk.name,
                active_folder_id=active.id,
                archive_folder_id=archive.id,
                status="ready",
                folder_path=folder_path,
            ))
            logger.info(f"📁 Folders ready for kiosk {kiosk.name}")
        return results

    def _active_mappings(self) -> List[FolderMapping]:
        configs = rows(self.client.table(CONFIGS_TABLE).select("id").eq("is_active", True).execute())
        config_ids = [c["id"] for c in configs]
        if not config_ids:
            return []
        mapping_rows = rows(
            self.client.table(FOLDER_MAPPINGS_TABLE).select("*").in_("gdrive_config_id", config_ids).execute()
        )
        kiosk_ids = list({r["kiosk_id"] for r in mapping_rows})
        names: Dict[str, str] = {}
        if kiosk_ids:
            kiosks = rows(self.client.table(KIOSKS_TABLE).select("id, name").in_("id", kiosk_ids).execute())
            names = {k["id"]: k.get("name") for k in kiosks}
        mappings = []
        for row in mapping_rows:
            mapping = FolderMapping.from_row(row)
            mapping.kiosk_name = names.get(mapping.kiosk_id) or "Unknown"
            mappings.append(mapping)
        return mappings

    def get_folder_structure_status(self) -> List[FolderStructure]:
        try:
            mappings = self._active_mappings()
        except Exception as e:
            log_supabase_error("select", FOLDER_MAPPINGS_TABLE, e)
            return []
        return [
            FolderStructure(
                id=m.id,
                kiosk_id=m.kiosk_id,
                kiosk_name=m.kiosk_name,
                active_folder_id=m.active_folder_id,
                archive_folder_id=m.archive_folder_id,
                status="ready",
                folder_path=f"{DRIVE_ROOT_FOLDER_NAME} > {DRIVE_KIOSKS_FOLDER_NAME} > {m.kiosk_name} > [Active/Archive]",
            )
            for m in mappings
        ]

    # ------------------------------------------------------- job processing

    def _run_job(self, kind: JobKind, job: Dict[str, Any], work: Callable[[Dict[str, Any]], Dict[str, Any]], summary: JobRunSummary) -> None:
        job_id = job["id"]
        try:
            self.jobs.mark_in_progress(kind, job_id)
        except InvalidTransitionError as e:
            logger.warning(f"Skipping {kind.value} job {job_id}: {e}")
            summary.skipped.append(job_id)
            return

        try:
            result = work(job)
            self.jobs.mark_completed(kind, job_id, **result)
        except InvalidTransitionError as e:
            logger.warning(f"{kind.value} job {job_id} changed state while running: {e}")
            summary.skipped.append(job_id)
            return
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Error processing {kind.value} job {job_id}: {message}")
            summary.failed[job_id] = message
            try:
                self.jobs.mark_failed(kind, job_id, message)
            except InvalidTransitionError as te:
                logger.warning(f"Could not mark {kind.value} job {job_id} failed: {te}")
            return
        summary.completed.append(job_id)

    def _require_config_and_mapping(self, job: Dict[str, Any]) -> tuple:
        config = self.get_config(job.get("gdrive_config_id"))
        if config is None:
            raise ConfigurationError("No active Google Drive configuration found")
        mapping = self.get_mapping(job["kiosk_id"], config.id)
        if mapping is None:
            raise ConfigurationError("Kiosk folder mapping not found")
        return config, mapping

    def _storage_url(self, bucket: str, path: str) -> Optional[str]:
        return public_storage_url(self.client, bucket, path)

    def _upload_job(self, job: Dict[str, Any]) -> Dict[str, Any]:
        config, mapping = self._require_config_and_mapping(job)
        asset = fetch_one(self.client, MEDIA_ASSETS_TABLE, "*", id=job["media_asset_id"])
        if asset is None:
            raise ValidationError(f"Media asset {job['media_asset_id']} not found", field="media_asset_id")

        folder_id = mapping.archive_folder_id if job.get("folder_type") == "archive" else mapping.active_folder_id
        file_id = upload_asset_to_drive(asset, folder_id, self.drive_for(config), self._storage_url, self.session)
        update_rows(self.client, MEDIA_ASSETS_TABLE, {"gdrive_file_id": file_id}, id=asset["id"])
        return {"gdrive_file_id": file_id}

    def _sync_job(self, job: Dict[str, Any]) -> Dict[str, Any]:
        config, mapping = self._require_config_and_mapping(job)
        result = FolderReconciler(self.client, self.drive_for(config)).sync_kiosk_files(job["kiosk_id"], mapping)
        fields: Dict[str, Any] = result.to_row()
        if result.errors:
            fields["error_message"] = "; ".join(result.errors)[:1000]
        return fields

    def process_scheduled_uploads(self, now: Optional[datetime] = None) -> JobRunSummary:
        summary = JobRunSummary(JobKind.UPLOAD)
        pending = self.jobs.pending_upload_jobs(now)
        for job in pending:
            self._run_job(JobKind.UPLOAD, job, self._upload_job, summary)
        if pending:
            logger.info(f"Upload jobs processed: {summary.to_dict()}")
        alert_job_failures("upload", len(summary.failed), len(pending))
        return summary

    def process_sync_jobs(self) -> JobRunSummary:
        summary = JobRunSummary(JobKind.SYNC)
        pending = self.jobs.pending_sync_jobs()
        for job in pending:
            self._run_job(JobKind.SYNC, job, self._sync_job, summary)
        if pending:
            logger.info(f"Sync jobs processed: {summary.to_dict()}")
        alert_job_failures("sync", len(summary.failed), len(pending))
        return summary

    # ------------------------------------------------------------ scheduling

    def schedule_immediate_upload(
        self,
        campaign_id: str,
        kiosk_ids: Iterable[str],
        upload_type: str = "immediate",
        scheduled_time: Optional[Union[str, datetime]] = None,
    ) -> List[str]:
        campaign = fetch_one(self.client, CAMPAIGNS_TABLE, "id", id=campaign_id)
        if campaign is None:
            raise ValidationError("Campaign not found", field="campaign_id", value=campaign_id)
        assets = rows(
            self.client.table(MEDIA_ASSETS_TABLE)
            .select("id")
            .eq("campaign_id", campaign_id)
            .eq("status", APPROVED_ASSET_STATUS)
            .execute()
        )
        if not assets:
            raise ValidationError("No approved media assets found for campaign", field="campaign_id", value=campaign_id)

        config = self.get_config()
        if config is None:
            logger.error("No active Google Drive configuration found, nothing scheduled")
            return []

        job_ids = []
        for kiosk_id in kiosk_ids:
            for asset in assets:
                job = self.jobs.schedule_upload(
                    config.id, kiosk_id, campaign_id, asset["id"], scheduled_time, upload_type, "active",
                )
                job_ids.append(job["id"])
        logger.info(f"Scheduled {len(job_ids)} upload job(s) for campaign {campaign_id}")
        return job_ids

    def direct_upload_campaign_assets(self, campaign_id: str, kiosk_ids: Iterable[str]) -> int:
        """
        Upload a campaign's approved assets straight into each mapped kiosk's Active folder.

        Fallback for when queued jobs cannot be used. Best effort: kiosks without
        a folder mapping are skipped and a failed asset does not stop the rest.
        Returns the number of files uploaded.
        """
        config = self.get_config()
        if config is None:
            logger.error("No active Google Drive configuration found, direct upload skipped")
            return 0

        assets = rows(
            self.client.table(MEDIA_ASSETS_TABLE)
            .select("id, file_name, file_path, file_url, metadata")
            .eq("campaign_id", campaign_id)
            .eq("status", APPROVED_ASSET_STATUS)
            .execute()
        )
        if not assets:
            return 0

        drive = self.drive_for(config)
        uploaded = 0
        for kiosk_id in kiosk_ids:
            mapping = self.get_mapping(kiosk_id, config.id)
            if mapping is None:
                logger.warning(f"No folder mapping for kiosk {kiosk_id}, direct upload skipped")
                continue
            for asset in assets:
                try:
                    upload_asset_to_drive(asset, mapping.active_folder_id, drive, self._storage_url, self.session)
                except Exception as e:
                    logger.error(f"Direct upload failed for asset {asset.get('file_name')} kiosk {kiosk_id}: {e}")
                    continue
                uploaded += 1
        logger.info(f"Direct upload of campaign {campaign_id}: {uploaded} file(s)")
        return uploaded

    def schedule_daily_uploads(self, now: Optional[datetime] = None) -> int:
        config = self.get_config()
        if config is None or not config.daily_upload_time:
            logger.info("No daily upload time configured")
            return 0

        upload_time = validate_time_string(config.daily_upload_time)
        campaigns = rows(
            self.client.table(CAMPAIGNS_TABLE).select("id, name, selected_kiosk_ids, status").eq("status", "active").execute()
        )
        if not campaigns:
            logger.info("No active campaigns found for daily upload")
            return 0

        assets = rows(
            self.client.table(MEDIA_ASSETS_TABLE)
            .select("id, campaign_id")
            .in_("campaign_id", [c["id"] for c in campaigns])
            .eq("status", APPROVED_ASSET_STATUS)
            .execute()
        )
        if not assets:
            logger.info("No approved media assets found for daily upload")
            return 0

        run_at = next_daily_run(upload_time, self.timezone, now)
        scheduled = 0
        for campaign in campaigns:
            campaign_assets = [a for a in assets if a.get("campaign_id") == campaign["id"]]
            for kiosk_id in campaign.get("selected_kiosk_ids") or []:
                for asset in campaign_assets:
                    self.jobs.schedule_upload(config.id, kiosk_id, campaign["id"], asset["id"], run_at, "scheduled", "active")
                    scheduled += 1

        logger.info(f"Scheduled {scheduled} daily upload(s) for {run_at.isoformat()}")
        return scheduled

    def upload_approved_host_ad(self, host_ad_id: str, now: Optional[datetime] = None) -> List[str]:
        """
        Queue immediate uploads of an approved host ad to the kiosks it is assigned to right now.

        The ad is registered as a synthetic approved media asset so the regular
        upload processor can deliver it. Returns the queued job ids.
        """
        host_ad = fetch_one(self.client, HOST_ADS_TABLE, "id, name, media_url, media_type, duration", id=host_ad_id)
        if host_ad is None or not host_ad.get("media_url"):
            raise ValidationError("Host ad not found", field="host_ad_id", value=host_ad_id)

        now_iso = to_iso(now) or iso_now()
        assignments = rows(
            self.client.table(HOST_AD_ASSIGNMENTS_TABLE)
            .select("kiosk_id")
            .eq("ad_id", host_ad_id)
            .lte("start_date", now_iso)
            .gte("end_date", now_iso)
            .execute()
        )
        kiosk_ids = list(dict.fromkeys(a["kiosk_id"] for a in assignments if a.get("kiosk_id")))
        if not kiosk_ids:
            logger.info(f"Host ad {host_ad_id} has no current kiosk assignments, nothing to upload")
            return []

        config = self.get_config()
        if config is None:
            logger.error("No active Google Drive configuration found, host ad not queued")
            return []

        asset = insert_row(self.client, MEDIA_ASSETS_TABLE, host_ad_media_asset(host_ad))
        job_ids = [
            self.jobs.schedule_upload(
                config.id, kiosk_id, HOST_AD_CAMPAIGN_ID, asset["id"], now_iso, "immediate", "active",
            )["id"]
            for kiosk_id in kiosk_ids
        ]
        logger.info(f"Queued host ad {host_ad_id} for {len(job_ids)} kiosk(s)")
        return job_ids

    # -------------------------------------------------------------- bulk ops

    def sync_all_folders(self, sync_type: str = "manual") -> Dict[str, Any]:
        """Queue a sync job per mapped kiosk of the active configurations and process them."""
        try:
            mappings = self._active_mappings()
        except Exception as e:
            log_supabase_error("select", FOLDER_MAPPINGS_TABLE, e)
            return {"success": False, "message": str(e) or "Unknown error occurred", "folders_synced": 0, "errors": [str(e)]}

        if not mappings:
            return {"success": False, "message": "No Google Drive folders found to sync", "folders_synced": 0, "errors": []}

        errors: List[str] = []
        created: Dict[str, FolderMapping] = {}
        for mapping in mappings:
            try:
                job = self.jobs.create_sync_job(mapping.gdrive_config_id, mapping.kiosk_id, sync_type)
                created[job["id"]] = mapping
            except Exception as e:
                errors.append(f"Failed to sync kiosk {mapping.kiosk_name}: {e}")

        summary = self.process_sync_jobs()
        folders_synced = sum(1 for job_id in summary.completed if job_id in created)
        for job_id, message in summary.failed.items():
            if job_id in created:
                errors.append(f"Failed to sync kiosk {created[job_id].kiosk_name}: {message}")

        success = not errors
        message = (
            f"Successfully synced {folders_synced} folders"
            if success
            else f"Synced {folders_synced} folders with {len(errors)} errors"
        )
        return {"success": success, "message": message, "folders_synced": folders_synced, "errors": errors}

    def restore_asset(self, asset_id: str, drive_file_id: str) -> int:
        config = self.get_config()
        if config is None:
            raise ConfigurationError("No active Google Drive configuration found")
        return FolderReconciler(self.client, self.drive_for(config)).restore_asset(asset_id, drive_file_id, config.id)

    def process_asset_lifecycle(self) -> Dict[str, Any]:
        """Run the database procedures that archive expired assets and purge old archived ones."""
        results: Dict[str, Any] = {}
        for procedure in LIFECYCLE_PROCEDURES:
            try:
                response = self.client.rpc(procedure, {}).execute()
            except Exception as e:
                log_supabase_error("rpc", procedure, e)
                raise
            results[procedure] = getattr(response, "data", None)
            logger.info(f"Asset lifecycle step {procedure} completed")
        return results
