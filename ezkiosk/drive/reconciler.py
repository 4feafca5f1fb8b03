"""
Drive folder lifecycle reconciliation.

For one kiosk, approved assets of current campaigns (active/pending) belong in
the kiosk's Active folder and approved assets of expired campaigns
(completed/paused) belong in its Archive folder. Moves are issued without
checking where the file currently lives; re-parenting to the same folder is a
no-op on the Drive side, so repeated or overlapping passes converge.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from ..config import APPROVED_ASSET_STATUS, CURRENT_CAMPAIGN_STATUSES, EXPIRED_CAMPAIGN_STATUSES
from ..infrastructure.error_handling import ValidationError
from ..infrastructure.supabase_helpers import fetch_one, log_supabase_error, rows
from ..integrations.drive_errors import log_drive_error
from ..integrations.google_drive import GoogleDriveClient
from .models import FolderMapping, SyncResult

logger = logging.getLogger(__name__)

CAMPAIGNS_TABLE = "campaigns"
MEDIA_ASSETS_TABLE = "media_assets"
FOLDER_MAPPINGS_TABLE = "kiosk_gdrive_folders"


class FolderReconciler:
    def __init__(self, client: Any, drive: GoogleDriveClient) -> None:
        self.client = client
        self.drive = drive

    def _campaign_ids(self, kiosk_id: str, statuses: Iterable[str]) -> List[str]:
        try:
            response = (
                self.client.table(CAMPAIGNS_TABLE)
                .select("id, status, end_date, selected_kiosk_ids")
                .contains("selected_kiosk_ids", [kiosk_id])
                .in_("status", list(statuses))
                .execute()
            )
        except Exception as e:
            log_supabase_error("select", CAMPAIGNS_TABLE, e, {"kiosk_id": kiosk_id})
            raise
        return [c["id"] for c in rows(response)]

    def _approved_assets(self, campaign_ids: List[str]) -> List[Dict[str, Any]]:
        if not campaign_ids:
            return []
        try:
            response = (
                self.client.table(MEDIA_ASSETS_TABLE)
                .select("*")
                .in_("campaign_id", campaign_ids)
                .eq("status", APPROVED_ASSET_STATUS)
                .execute()
            )
        except Exception as e:
            log_supabase_error("select", MEDIA_ASSETS_TABLE, e)
            raise
        return rows(response)

    def _move_asset(self, asset: Dict[str, Any], from_folder_id: str, to_folder_id: str, result: SyncResult) -> bool:
        asset_id = asset.get("id")
        file_id = asset.get("gdrive_file_id")
        if not file_id:
            logger.warning(f"No Google Drive file ID found for asset {asset_id}, skipping move operation")
            result.files_skipped += 1
            return False
        try:
            self.drive.move_file(file_id, from_folder_id, to_folder_id)
        except Exception as e:
            info = log_drive_error(e, f"Move asset {asset_id}")
            result.errors.append(f"asset {asset_id}: {info.message}")
            return False
        logger.info(f"Moved asset {asset_id} to folder {to_folder_id}")
        return True

    def sync_kiosk_files(self, kiosk_id: str, mapping: FolderMapping) -> SyncResult:
        current_ids = self._campaign_ids(kiosk_id, CURRENT_CAMPAIGN_STATUSES)
        expired_ids = self._campaign_ids(kiosk_id, EXPIRED_CAMPAIGN_STATUSES)
        result = SyncResult()

        for asset in self._approved_assets(current_ids):
            if self._move_asset(asset, mapping.archive_folder_id, mapping.active_folder_id, result):
                result.files_activated += 1

        for asset in self._approved_assets(expired_ids):
            if self._move_asset(asset, mapping.active_folder_id, mapping.archive_folder_id, result):
                result.files_archived += 1

        logger.info(
            f"Kiosk {kiosk_id}: {result.files_activated} activated, {result.files_archived} archived, "
            f"{result.files_skipped} skipped, {len(result.errors)} errors"
        )
        return result

    def restore_asset(self, asset_id: str, drive_file_id: str, gdrive_config_id: str) -> int:
        """Move an archived asset back to the Active folder of every mapped kiosk of its campaign."""
        asset = fetch_one(self.client, MEDIA_ASSETS_TABLE, "id, campaign_id", id=asset_id)
        if not asset or not asset.get("campaign_id"):
            raise ValidationError(f"Asset {asset_id} has no campaign", field="asset_id", value=asset_id)
        campaign = fetch_one(self.client, CAMPAIGNS_TABLE, "id, selected_kiosk_ids", id=asset["campaign_id"])
        kiosk_ids = (campaign or {}).get("selected_kiosk_ids") or []
        if not kiosk_ids:
            raise ValidationError(f"Campaign kiosk information not found for asset {asset_id}", field="asset_id", value=asset_id)

        restored = 0
        for kiosk_id in kiosk_ids:
            row = fetch_one(self.client, FOLDER_MAPPINGS_TABLE, "*", kiosk_id=kiosk_id, gdrive_config_id=gdrive_config_id)
            if not row:
                logger.warning(f"No folder mapping for kiosk {kiosk_id}, skipping restore")
                continue
            mapping = FolderMapping.from_row(row)
            self.drive.move_file(drive_file_id, mapping.archive_folder_id, mapping.active_folder_id)
            restored += 1

        logger.info(f"Asset {asset_id} restored to {restored} kiosk folder(s)")
        return restored
