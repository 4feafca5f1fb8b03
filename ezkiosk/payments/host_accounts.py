from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..infrastructure.supabase_helpers import fetch_one, log_supabase_error, update_rows

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"


def is_payable(profile: Optional[Mapping[str, Any]]) -> bool:
    """A host can receive transfers only with a connected account id and the connect flag set."""
    if not profile:
        return False
    return bool(profile.get("stripe_connect_account_id")) and profile.get("stripe_connect_enabled") is True


def is_stripe_connect_enabled(client: Any, host_id: str) -> bool:
    try:
        profile = fetch_one(
            client,
            PROFILES_TABLE,
            "stripe_connect_enabled, stripe_connect_account_id",
            id=host_id,
        )
    except Exception as e:
        log_supabase_error("select", PROFILES_TABLE, e, {"id": host_id})
        return False
    return is_payable(profile)


def enable_stripe_connect(client: Any, host_id: str, account_id: str) -> Dict[str, Any]:
    if not account_id:
        raise ValueError("Stripe Connect account id is required")
    updated = update_rows(
        client,
        PROFILES_TABLE,
        {"stripe_connect_enabled": True, "stripe_connect_account_id": account_id},
        id=host_id,
    )
    logger.info(f"Enabled Stripe Connect for host {host_id}")
    return updated[0] if updated else {}
