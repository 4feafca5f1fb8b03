from __future__ import annotations

import logging
import os
from typing import Literal, Optional

import requests

logger = logging.getLogger(__name__)

ENVBOOL = lambda v, d=False: (os.getenv(v, str(int(d))) or "").lower() in ("1", "true", "yes", "y")
ENVF = lambda v, d: float(os.getenv(v, str(d)) or d)

SLACK_TIMEOUT = ENVF("SLACK_TIMEOUT", 10.0)
MAX_TEXT_LEN = 3000

_SEVERITY_PREFIX = {"info": "", "warn": "⚠️ ", "error": "🚨 "}


def _slack_enabled_now() -> bool:
    return ENVBOOL("SLACK_ENABLED") and bool(os.getenv("SLACK_WEBHOOK_URL"))


def _truncate(s: str, limit: int) -> str:
    return s if len(s) <= limit else s[: limit - 1] + "…"


def notify(text: str, severity: Literal["info", "warn", "error"] = "info", webhook_url: Optional[str] = None) -> bool:
    """Post ``text`` to the operator channel. Always logs; posting is best-effort."""
    log_level = {"info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}.get(severity, logging.INFO)
    logger.log(log_level, "[slack %s] %s", severity, text)

    url = webhook_url or os.getenv("SLACK_WEBHOOK_URL")
    if not (webhook_url or _slack_enabled_now()) or not url:
        return False

    payload = {"text": _truncate(_SEVERITY_PREFIX.get(severity, "") + text, MAX_TEXT_LEN)}
    try:
        response = requests.post(url, json=payload, timeout=SLACK_TIMEOUT)
        response.raise_for_status()
        return True
    except requests.exceptions.RequestException as e:
        logger.warning(f"Slack notification failed: {e}")
        return False


def alert_error(error_msg: str) -> bool:
    return notify(f"Something went wrong: {error_msg}", severity="error")


def alert_job_failures(job_kind: str, failed: int, total: int) -> bool:
    if failed <= 0:
        return False
    return notify(f"{failed}/{total} {job_kind} job(s) failed in the last run", severity="warn")
