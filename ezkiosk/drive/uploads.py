from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from ..config import APPROVED_ASSET_STATUS, MEDIA_ASSETS_BUCKET
from ..infrastructure.error_handling import UploadSourceError
from ..integrations.google_drive import GoogleDriveClient

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60
DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "avi": "video/avi",
    "mov": "video/quicktime",
    "webm": "video/webm",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)

# (bucket, path) -> public URL
StorageUrlBuilder = Callable[[str, str], Optional[str]]


@dataclass(frozen=True)
class AssetSource:
    url: Optional[str] = None
    data: Optional[bytes] = None
    origin: str = ""


def infer_mime_type(file_name: Optional[str]) -> str:
    if not file_name or "." not in file_name:
        return DEFAULT_MIME_TYPE
    return MIME_TYPES.get(file_name.rsplit(".", 1)[-1].lower(), DEFAULT_MIME_TYPE)


def storage_object_path(url: str, bucket: str = MEDIA_ASSETS_BUCKET) -> str:
    """Object path inside ``bucket`` for a public storage URL; other URLs are returned unchanged."""
    marker = f"/storage/v1/object/public/{bucket}/"
    index = url.find(marker)
    return url[index + len(marker):] if index != -1 else url


def host_ad_media_asset(host_ad: Mapping[str, Any]) -> Dict[str, Any]:
    """Approved ``media_assets`` row standing in for a host ad's media file."""
    url = host_ad["media_url"]
    is_video = host_ad.get("media_type") == "video"
    tail = url.split("?")[0].rsplit("/", 1)[-1] or "asset"
    extension = tail.rsplit(".", 1)[-1] if "." in tail else ("mp4" if is_video else "png")
    base = re.sub(r"[^a-z0-9_-]+", "_", host_ad.get("name") or "host-ad", flags=re.IGNORECASE)
    file_name = f"{base}.{extension}"
    mime_type = infer_mime_type(file_name)
    if mime_type == DEFAULT_MIME_TYPE:
        mime_type = "video/mp4" if is_video else "image/png"
    return {
        "file_name": file_name,
        "file_path": storage_object_path(url),
        "file_size": 0,
        "file_type": "video" if is_video else "image",
        "mime_type": mime_type,
        "dimensions": {"width": 0, "height": 0},
        "duration": host_ad.get("duration"),
        "status": APPROVED_ASSET_STATUS,
        "metadata": {"source": "host_ad", "host_ad_id": host_ad["id"]},
    }


def _non_empty_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def resolve_asset_source(asset: Mapping[str, Any], storage_url_builder: Optional[StorageUrlBuilder] = None) -> AssetSource:
    """
    Pick where to read an asset's bytes from.

    Order: ``file_url``, ``metadata.publicUrl``, ``file_path`` (used as-is when it
    is already an http(s) URL, otherwise resolved in the media-assets bucket),
    then base64 ``file_data``.
    """
    file_url = _non_empty_str(asset.get("file_url"))
    if file_url:
        return AssetSource(url=file_url, origin="file_url")

    metadata = asset.get("metadata")
    public_url = _non_empty_str(metadata.get("publicUrl")) if isinstance(metadata, Mapping) else None
    if public_url:
        return AssetSource(url=public_url, origin="metadata.publicUrl")

    file_path = _non_empty_str(asset.get("file_path"))
    if file_path:
        if _HTTP_RE.match(file_path):
            return AssetSource(url=file_path, origin="file_path")
        if storage_url_builder is not None:
            storage_url = storage_url_builder(MEDIA_ASSETS_BUCKET, file_path)
            if storage_url:
                return AssetSource(url=storage_url, origin="storage")

    file_data = _non_empty_str(asset.get("file_data"))
    if file_data:
        try:
            return AssetSource(data=base64.b64decode(file_data, validate=True), origin="file_data")
        except (binascii.Error, ValueError) as e:
            raise UploadSourceError(f"Invalid base64 file_data for asset {asset.get('id')}: {e}") from e

    raise UploadSourceError(f"No accessible URL or data for upload (asset {asset.get('id')})")


def fetch_asset_bytes(source: AssetSource, session: Optional[requests.Session] = None) -> bytes:
    if source.data is not None:
        return source.data
    http = session or requests
    try:
        response = http.get(source.url, timeout=DOWNLOAD_TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise UploadSourceError(f"Failed to fetch file: {e}") from e
    if not response.ok:
        raise UploadSourceError(f"Failed to fetch file: {response.status_code} {response.reason}")
    return response.content


def upload_asset_to_drive(
    asset: Mapping[str, Any],
    folder_id: str,
    drive: GoogleDriveClient,
    storage_url_builder: Optional[StorageUrlBuilder] = None,
    session: Optional[requests.Session] = None,
) -> str:
    file_name = asset.get("file_name") or f"asset-{asset.get('id')}"
    logger.info(f"Uploading {file_name} to folder {folder_id}")

    source = resolve_asset_source(asset, storage_url_builder)
    data = fetch_asset_bytes(source, session)
    uploaded = drive.upload_file(data, file_name, infer_mime_type(file_name), folder_id)

    logger.info(f"✅ Uploaded {file_name} ({len(data)} bytes via {source.origin}) with ID: {uploaded.id}")
    return uploaded.id
