"""
Google Drive error classification.

Maps raw API/OAuth failures onto a stable code, a retryable flag and the
action an operator should take.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriveErrorInfo:
    code: str
    message: str
    details: Optional[str]
    retryable: bool
    action: str


_PATTERNS = (
    ("invalid_grant", DriveErrorInfo(
        "INVALID_GRANT",
        "Invalid refresh token. The token may have expired or been revoked.",
        "Re-authenticate with Google Drive to get a new refresh token.",
        False, "REAUTHENTICATE",
    )),
    ("invalid_client", DriveErrorInfo(
        "INVALID_CLIENT",
        "Invalid client credentials. Please check your Client ID and Secret.",
        "Verify the OAuth 2.0 credentials in the Google Cloud Console.",
        False, "CHECK_CREDENTIALS",
    )),
    ("access_denied", DriveErrorInfo(
        "ACCESS_DENIED",
        "Access denied. Insufficient permissions for the requested operation.",
        "Ensure the Google Drive API is enabled and the account has proper permissions.",
        False, "CHECK_PERMISSIONS",
    )),
    ("quotaExceeded", DriveErrorInfo(
        "QUOTA_EXCEEDED",
        "Google Drive API quota exceeded. Please try again later.",
        "The daily API quota has been exceeded. Wait for the quota to reset.",
        True, "RETRY_LATER",
    )),
    ("rateLimitExceeded", DriveErrorInfo(
        "RATE_LIMIT_EXCEEDED",
        "Rate limit exceeded. Too many requests in a short time.",
        "Wait before making another request.",
        True, "RETRY_WITH_BACKOFF",
    )),
    ("userRateLimitExceeded", DriveErrorInfo(
        "RATE_LIMIT_EXCEEDED",
        "Rate limit exceeded. Too many requests in a short time.",
        "Wait before making another request.",
        True, "RETRY_WITH_BACKOFF",
    )),
    ("fileNotFound", DriveErrorInfo(
        "FILE_NOT_FOUND",
        "File not found in Google Drive.",
        "The file may have been deleted or moved.",
        False, "CHECK_FILE_EXISTS",
    )),
    ("insufficientFilePermissions", DriveErrorInfo(
        "INSUFFICIENT_PERMISSIONS",
        "Insufficient permissions to access the file.",
        "The file may be owned by another user or have restricted access.",
        False, "CHECK_FILE_PERMISSIONS",
    )),
)

REQUEST_TIMEOUT_CODE = "REQUEST_TIMEOUT"

_TIMEOUT_MARKERS = ("timeout", "timed out")
_NETWORK_MARKERS = ("network", "connection")


def classify_error(error: Any) -> DriveErrorInfo:
    message = str(error) if error is not None else "Unknown error"

    for marker, info in _PATTERNS:
        if marker in message:
            return info

    lowered = message.lower()
    if any(marker in lowered for marker in _TIMEOUT_MARKERS):
        return DriveErrorInfo(
            REQUEST_TIMEOUT_CODE,
            "Request to Google Drive timed out.",
            "The operation may have completed on the Drive side; check before repeating it.",
            True, "RETRY",
        )
    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return DriveErrorInfo(
            "NETWORK_ERROR",
            "Network error occurred while communicating with Google Drive.",
            "Check connectivity and try again.",
            True, "RETRY",
        )

    status_code = getattr(error, "status_code", None)
    if status_code == 404:
        return DriveErrorInfo(
            "FILE_NOT_FOUND", "File not found in Google Drive.", message, False, "CHECK_FILE_EXISTS",
        )
    if status_code in (401, 403):
        return DriveErrorInfo(
            "ACCESS_DENIED", "Access denied by Google Drive.", message, False, "CHECK_PERMISSIONS",
        )

    return DriveErrorInfo(
        "UNKNOWN_ERROR",
        "An unknown error occurred with Google Drive API.",
        message,
        True, "RETRY",
    )


def log_drive_error(error: Any, context: str = "Google Drive Operation") -> DriveErrorInfo:
    info = classify_error(error)
    log = logger.warning if info.retryable else logger.error
    log(
        "%s failed: %s (code=%s retryable=%s action=%s details=%s)",
        context, info.message, info.code, info.retryable, info.action, info.details,
    )
    return info
