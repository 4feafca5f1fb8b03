"""
EZ KIOSK INFRASTRUCTURE
Core infrastructure and utilities

This package contains:
- error_handling: Exception taxonomy and retry with backoff
- supabase_helpers: Supabase client and query helpers
- scheduler: Background task scheduling
"""

# Note: only error_handling is imported here; config depends on it and scheduler depends on config

from .error_handling import (
    EzKioskError, ConfigurationError, ValidationError, InvalidTransitionError,
    UploadSourceError, SplitUnavailableError, DriveApiError,
    RetryConfig, RetryHandler, is_retryable
)

__all__ = [
    'EzKioskError', 'ConfigurationError', 'ValidationError', 'InvalidTransitionError',
    'UploadSourceError', 'SplitUnavailableError', 'DriveApiError',
    'RetryConfig', 'RetryHandler', 'is_retryable'
]
