from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional

from supabase import create_client

from .error_handling import ConfigurationError

logger = logging.getLogger(__name__)

_SAMPLE_KEYS = (
    "id",
    "kiosk_id",
    "host_id",
    "campaign_id",
    "media_asset_id",
    "gdrive_config_id",
    "status",
)


def get_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Any:
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")
    if not (url and key):
        raise ConfigurationError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_ANON_KEY) must be set"
        )
    return create_client(url, key)


def _sample_payload(payload: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return None
    sample = {key: payload[key] for key in _SAMPLE_KEYS if key in payload}
    return sample or None


def log_supabase_error(operation: str, table: str, error: Any, payload: Optional[Dict[str, Any]] = None) -> None:
    code: Optional[str] = None
    details: Optional[str] = None

    if isinstance(error, dict):
        code = error.get("code")
        details = error.get("details") or error.get("hint")
    else:
        code = getattr(error, "code", None)
        details = getattr(error, "details", None) or getattr(error, "hint", None)
        for arg in getattr(error, "args", ()):
            if isinstance(arg, dict):
                code = code or arg.get("code")
                details = details or arg.get("details") or arg.get("hint")

    message = str(error)
    suggestions: List[str] = []

    column_match = re.search(r"Could not find the '([^']+)' column", message)
    if column_match:
        suggestions.append(
            f"Supabase schema cache is missing column '{column_match.group(1)}' on {table}. Apply the latest migrations."
        )
    if "Could not find the table" in message:
        suggestions.append(f"Table {table} does not exist. Run the database migrations.")
    if code == "PGRST204" and not suggestions:
        suggestions.append("Supabase schema cache may be stale. Trigger a schema refresh.")

    logger.error(
        "SUPABASE ERROR [%s.%s] code=%s message=%s details=%s suggestions=%s sample=%s",
        table,
        operation,
        code or "unknown",
        message,
        details or "n/a",
        "; ".join(suggestions) or "n/a",
        _sample_payload(payload),
    )


def rows(response: Any) -> List[Dict[str, Any]]:
    data = getattr(response, "data", None) if response is not None else None
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


def first_row(response: Any) -> Optional[Dict[str, Any]]:
    data = rows(response)
    return data[0] if data else None


def fetch_one(client: Any, table: str, columns: str = "*", **filters: Any) -> Optional[Dict[str, Any]]:
    query = client.table(table).select(columns)
    for column, value in filters.items():
        query = query.eq(column, value)
    return first_row(query.limit(1).execute())


def insert_row(client: Any, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        response = client.table(table).insert(data).execute()
    except Exception as e:
        log_supabase_error("insert", table, e, data)
        raise
    row = first_row(response)
    if row is None:
        raise RuntimeError(f"Insert into {table} returned no row")
    return row


def update_rows(client: Any, table: str, data: Dict[str, Any], **filters: Any) -> List[Dict[str, Any]]:
    query = client.table(table).update(data)
    for column, value in filters.items():
        query = query.eq(column, value)
    try:
        return rows(query.execute())
    except Exception as e:
        log_supabase_error("update", table, e, data)
        raise


def public_storage_url(client: Any, bucket: str, path: str) -> Optional[str]:
    try:
        response = client.storage.from_(bucket).get_public_url(path)
    except Exception as e:
        logger.warning(f"Could not resolve public URL for {bucket}/{path}: {e}")
        response = None

    if isinstance(response, dict):
        url = response.get("publicUrl") or response.get("publicURL") or response.get("url")
    else:
        url = response

    if not url:
        supabase_url = os.getenv("SUPABASE_URL", "").rstrip("/")
        if supabase_url:
            url = f"{supabase_url}/storage/v1/object/public/{bucket}/{path.lstrip('/')}"
    return url or None
