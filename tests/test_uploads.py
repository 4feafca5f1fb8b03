import base64
from unittest.mock import MagicMock

import pytest

from ezkiosk.drive.uploads import (
    host_ad_media_asset,
    infer_mime_type,
    resolve_asset_source,
    storage_object_path,
    upload_asset_to_drive,
)
from ezkiosk.infrastructure.error_handling import UploadSourceError


def _storage(bucket, path):
    return f"https://fake.supabase.co/storage/v1/object/public/{bucket}/{path}"


@pytest.mark.parametrize("name, expected", [
    ("ad.JPG", "image/jpeg"),
    ("promo.mov", "video/quicktime"),
    ("brief.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    ("archive.tar.gz", "application/octet-stream"),
    ("README", "application/octet-stream"),
    (None, "application/octet-stream"),
])
def test_infer_mime_type(name, expected):
    assert infer_mime_type(name) == expected


class TestResolveAssetSource:
    def test_file_url_wins(self):
        asset = {"file_url": "https://cdn/x.png", "metadata": {"publicUrl": "https://meta/x.png"}, "file_path": "a/x.png"}
        assert resolve_asset_source(asset, _storage).url == "https://cdn/x.png"

    def test_metadata_public_url_next(self):
        asset = {"metadata": {"publicUrl": "https://meta/x.png"}, "file_path": "a/x.png"}
        assert resolve_asset_source(asset, _storage).url == "https://meta/x.png"

    def test_absolute_file_path_used_directly(self):
        asset = {"file_path": "HTTPS://elsewhere/x.png"}
        assert resolve_asset_source(asset, _storage).url == "HTTPS://elsewhere/x.png"

    def test_relative_file_path_uses_media_bucket(self):
        source = resolve_asset_source({"file_path": "campaigns/c1/x.png"}, _storage)
        assert source.url.endswith("/media-assets/campaigns/c1/x.png")

    def test_base64_data_last(self):
        payload = base64.b64encode(b"png-bytes").decode()
        source = resolve_asset_source({"file_data": payload})
        assert source.data == b"png-bytes"
        assert source.url is None

    def test_nothing_usable_raises(self):
        with pytest.raises(UploadSourceError):
            resolve_asset_source({"id": "m1", "file_url": "", "metadata": {}})


def test_upload_asset_to_drive(fake_drive):
    session = MagicMock()
    session.get.return_value = MagicMock(ok=True, content=b"video-bytes")
    asset = {"id": "m1", "file_name": "spot.mp4", "file_url": "https://cdn/spot.mp4"}

    file_id = upload_asset_to_drive(asset, "folder-active", fake_drive, _storage, session)

    assert file_id.startswith("drive-file-")
    assert fake_drive.uploads == [("spot.mp4", "video/mp4", "folder-active", b"video-bytes")]
    session.get.assert_called_once()


def test_upload_fails_on_bad_download(fake_drive):
    session = MagicMock()
    session.get.return_value = MagicMock(ok=False, status_code=403, reason="Forbidden")

    with pytest.raises(UploadSourceError):
        upload_asset_to_drive({"id": "m1", "file_name": "a.png", "file_url": "https://cdn/a.png"}, "f", fake_drive, None, session)
    assert fake_drive.uploads == []


def test_storage_object_path():
    url = "https://x.supabase.co/storage/v1/object/public/media-assets/host/ads/a.png"
    assert storage_object_path(url) == "host/ads/a.png"
    assert storage_object_path("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"


class TestHostAdMediaAsset:
    def test_image_without_extension_defaults_to_png(self):
        row = host_ad_media_asset({"id": "ha1", "name": "Lobby Ad", "media_type": "image",
                                   "media_url": "https://cdn.example.com/render?size=large"})

        assert row["file_name"] == "Lobby_Ad.png"
        assert row["mime_type"] == "image/png"
        assert row["file_type"] == "image"
        assert row["file_size"] == 0

    def test_video_keeps_url_extension(self):
        row = host_ad_media_asset({"id": "ha2", "name": "Promo", "media_type": "video", "duration": 30,
                                   "media_url": "https://cdn.example.com/clips/promo.webm?token=abc"})

        assert row["file_name"] == "Promo.webm"
        assert row["mime_type"] == "video/webm"
        assert row["duration"] == 30
        assert row["file_path"] == "https://cdn.example.com/clips/promo.webm?token=abc"
