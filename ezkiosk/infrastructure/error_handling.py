from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class EzKioskError(Exception):
    """Base class for errors raised by ezkiosk."""


class ConfigurationError(EzKioskError):
    """Missing Drive/payment configuration or kiosk folder mapping."""


class ValidationError(EzKioskError, ValueError):
    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.message = message
        self.field = field
        self.value = value
        super().__init__(message)


class InvalidTransitionError(ValidationError):
    pass


class UploadSourceError(EzKioskError):
    """No URL or inline data could be resolved for a media asset."""


class SplitUnavailableError(EzKioskError):
    pass


class DriveApiError(EzKioskError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: str = "UNKNOWN_ERROR",
        retryable: bool = True,
        action: str = "RETRY",
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.retryable = retryable
        self.action = action
        super().__init__(message)


@dataclass
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple = (Exception,)
    should_retry: Optional[Callable[[Exception], bool]] = None


class RetryHandler:
    def __init__(self, config: Optional[RetryConfig] = None, sleep: Callable[[float], None] = time.sleep) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep

    def execute(self, func: Callable[..., T], *args, **kwargs) -> T:
        last_exception: Optional[Exception] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                return func(*args, **kwargs)
            except self.config.retryable_exceptions as e:
                last_exception = e
                if self.config.should_retry and not self.config.should_retry(e):
                    raise
                if attempt < self.config.max_retries:
                    delay = self._calculate_delay(attempt)
                    logger.warning(
                        f"Retry attempt {attempt + 1}/{self.config.max_retries} "
                        f"after {delay:.2f}s: {e}"
                    )
                    self._sleep(delay)
                else:
                    logger.error(f"Max retries ({self.config.max_retries}) exceeded")
        raise last_exception or EzKioskError("Retry failed")

    def _calculate_delay(self, attempt: int) -> float:
        delay = self.config.initial_delay * (
            self.config.exponential_base ** attempt
        )
        delay = min(delay, self.config.max_delay)
        if self.config.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return delay


def is_retryable(error: Exception) -> bool:
    return bool(getattr(error, "retryable", False))
