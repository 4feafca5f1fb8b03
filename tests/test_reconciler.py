"""Tests for Drive folder lifecycle reconciliation."""

import pytest

from ezkiosk.drive.models import FolderMapping
from ezkiosk.drive.reconciler import FolderReconciler
from ezkiosk.infrastructure.error_handling import ValidationError

ACTIVE = "folder-active"
ARCHIVE = "folder-archive"


@pytest.fixture
def mapping():
    return FolderMapping(kiosk_id="k1", gdrive_config_id="cfg", active_folder_id=ACTIVE, archive_folder_id=ARCHIVE)


def _campaign(db, campaign_id, status, kiosks=("k1",)):
    db.seed("campaigns", {"id": campaign_id, "status": status, "selected_kiosk_ids": list(kiosks)})


def _asset(db, asset_id, campaign_id, gdrive_file_id=None, status="approved"):
    db.seed("media_assets", {
        "id": asset_id, "campaign_id": campaign_id, "status": status,
        "file_name": f"{asset_id}.png", "gdrive_file_id": gdrive_file_id,
    })


def test_completed_campaign_is_archived(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C", "completed")
    _asset(fake_db, "A", "C", gdrive_file_id="gf-A")

    result = FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)

    assert fake_drive.moves == [("gf-A", ACTIVE, ARCHIVE)]
    assert result.files_archived == 1
    assert result.files_activated == 0
    assert result.files_synced == 1


def test_current_campaigns_are_activated(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C1", "active")
    _campaign(fake_db, "C2", "pending")
    _campaign(fake_db, "C3", "paused")
    _asset(fake_db, "A1", "C1", "gf-1")
    _asset(fake_db, "A2", "C2", "gf-2")
    _asset(fake_db, "A3", "C3", "gf-3")

    result = FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)

    assert ("gf-1", ARCHIVE, ACTIVE) in fake_drive.moves
    assert ("gf-2", ARCHIVE, ACTIVE) in fake_drive.moves
    assert ("gf-3", ACTIVE, ARCHIVE) in fake_drive.moves
    assert (result.files_activated, result.files_archived) == (2, 1)


def test_other_kiosks_and_unapproved_assets_ignored(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C1", "active", kiosks=("k2",))
    _campaign(fake_db, "C2", "active")
    _campaign(fake_db, "C3", "draft")
    _asset(fake_db, "A1", "C1", "gf-1")
    _asset(fake_db, "A2", "C2", "gf-2", status="pending_review")
    _asset(fake_db, "A3", "C3", "gf-3")

    result = FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)

    assert fake_drive.moves == []
    assert result.files_synced == 0


def test_reconcile_is_idempotent(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C", "active")
    _asset(fake_db, "A", "C", "gf-A")
    reconciler = FolderReconciler(fake_db, fake_drive)

    first = reconciler.sync_kiosk_files("k1", mapping)
    second = reconciler.sync_kiosk_files("k1", mapping)

    assert first == second
    assert set(fake_drive.moves) == {("gf-A", ARCHIVE, ACTIVE)}


def test_asset_without_drive_id_is_skipped(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C", "completed")
    _asset(fake_db, "A1", "C", gdrive_file_id=None)
    _asset(fake_db, "A2", "C", gdrive_file_id="gf-2")

    result = FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)

    assert result.files_synced == 1
    assert result.files_skipped == 1
    assert result.errors == []


def test_move_failure_is_isolated(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C", "completed")
    _asset(fake_db, "A1", "C", "gf-bad")
    _asset(fake_db, "A2", "C", "gf-good")
    fake_drive.failing_files.add("gf-bad")

    result = FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)

    assert fake_drive.moves == [("gf-good", ACTIVE, ARCHIVE)]
    assert result.files_archived == 1
    assert len(result.errors) == 1
    assert "A1" in result.errors[0]


def test_campaign_read_failure_propagates(fake_db, fake_drive, mapping):
    fake_db.fail("campaigns", "select")

    with pytest.raises(RuntimeError):
        FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)


def test_restore_asset_moves_to_active_for_mapped_kiosks(fake_db, fake_drive):
    _campaign(fake_db, "C", "active", kiosks=("k1", "k2"))
    _asset(fake_db, "A", "C", "gf-A")
    fake_db.seed("kiosk_gdrive_folders", {
        "kiosk_id": "k1", "gdrive_config_id": "cfg", "active_folder_id": ACTIVE, "archive_folder_id": ARCHIVE,
    })

    restored = FolderReconciler(fake_db, fake_drive).restore_asset("A", "gf-A", "cfg")

    assert restored == 1
    assert fake_drive.moves == [("gf-A", ARCHIVE, ACTIVE)]


def test_restore_unknown_asset_raises(fake_db, fake_drive):
    with pytest.raises(ValidationError):
        FolderReconciler(fake_db, fake_drive).restore_asset("missing", "gf", "cfg")


def test_unexpected_move_error_does_not_stop_the_pass(fake_db, fake_drive, mapping):
    _campaign(fake_db, "C", "completed")
    _asset(fake_db, "A1", "C", "gf-garbled")
    _asset(fake_db, "A2", "C", "gf-good")
    fake_drive.raising_files["gf-garbled"] = ValueError("Expecting value: line 1 column 1 (char 0)")

    result = FolderReconciler(fake_db, fake_drive).sync_kiosk_files("k1", mapping)

    assert fake_drive.moves == [("gf-good", ACTIVE, ARCHIVE)]
    assert result.files_archived == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("asset A1:")
