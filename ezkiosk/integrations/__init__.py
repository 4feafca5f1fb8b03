"""
EZ KIOSK INTEGRATIONS
External service integrations

This package contains:
- google_drive: Google Drive v3 client
- drive_errors: Drive error classification
- slack: Slack notifications and alerts
"""

from .google_drive import GoogleDriveClient, DriveFile
from .drive_errors import DriveErrorInfo, classify_error, log_drive_error
from .slack import notify, alert_error, alert_job_failures

__all__ = [
    'GoogleDriveClient', 'DriveFile',
    'DriveErrorInfo', 'classify_error', 'log_drive_error',
    'notify', 'alert_error', 'alert_job_failures'
]
