"""
Host commission split for Stripe Connect payments.

Decides whether a client payment covering a set of kiosks is routed to a
single host's connected account, and computes the host commission and the
platform application fee in minor currency units.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..config import COMMISSION_RATE_MAX, COMMISSION_RATE_MIN, DEFAULT_COMMISSION_RATE
from ..infrastructure.supabase_helpers import log_supabase_error, rows
from .host_accounts import PROFILES_TABLE, is_payable

logger = logging.getLogger(__name__)

HOST_KIOSKS_TABLE = "host_kiosks"


class SplitOutcome(Enum):
    SPLIT = "split"
    NO_SPLIT = "no_split"
    ERROR = "error"


@dataclass(frozen=True)
class HostSplit:
    host_id: str
    destination_account_id: str
    commission_rate: float
    host_commission_amount: int
    platform_fee_amount: int
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_stripe_params(self) -> Dict[str, Any]:
        return {
            "transfer_data": {"destination": self.destination_account_id},
            "application_fee_amount": self.platform_fee_amount,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class SplitDecision:
    outcome: SplitOutcome
    reason: str = ""
    split: Optional[HostSplit] = None

    @property
    def should_split(self) -> bool:
        return self.outcome is SplitOutcome.SPLIT and self.split is not None

    @classmethod
    def ok(cls, split: HostSplit) -> "SplitDecision":
        return cls(SplitOutcome.SPLIT, "single payable host", split)

    @classmethod
    def no_split(cls, reason: str) -> "SplitDecision":
        return cls(SplitOutcome.NO_SPLIT, reason)

    @classmethod
    def error(cls, reason: str) -> "SplitDecision":
        return cls(SplitOutcome.ERROR, reason)


@dataclass
class _HostAggregate:
    host_id: str
    account_id: str
    commission_rate: float
    kiosk_ids: set = field(default_factory=set)


def parse_commission_rate(raw: Any, default: float = DEFAULT_COMMISSION_RATE) -> float:
    """Parse a stored commission percentage, falling back to ``default`` and clamping to [0, 100]."""
    if raw is None or raw == "":
        value = default
    else:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            value = default
        if not math.isfinite(value):
            value = default
    return min(max(value, COMMISSION_RATE_MIN), COMMISSION_RATE_MAX)


def compute_commission(amount: int, rate: float) -> tuple:
    host_amount = int(
        (Decimal(amount) * Decimal(str(rate)) / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return host_amount, amount - host_amount


def _unique_ids(kiosk_ids: Union[str, Iterable[Any], None]) -> List[str]:
    if isinstance(kiosk_ids, str):
        kiosk_ids = [kiosk_ids]
    seen: Dict[str, None] = {}
    for kiosk_id in kiosk_ids or ():
        if kiosk_id:
            seen.setdefault(str(kiosk_id), None)
    return list(seen)


def calculate_host_split(
    client: Any,
    kiosk_ids: Union[str, Iterable[Any], None],
    amount: Any,
    metadata: Optional[Mapping[str, Any]] = None,
    default_rate: float = DEFAULT_COMMISSION_RATE,
) -> SplitDecision:
    unique_kiosk_ids = _unique_ids(kiosk_ids)
    if not unique_kiosk_ids:
        return SplitDecision.no_split("no kiosks")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        return SplitDecision.no_split("amount must be a positive integer")

    try:
        assignments = rows(
            client.table(HOST_KIOSKS_TABLE)
            .select("kiosk_id, host_id, commission_rate")
            .in_("kiosk_id", unique_kiosk_ids)
            .eq("status", "active")
            .execute()
        )
    except Exception as e:
        log_supabase_error("select", HOST_KIOSKS_TABLE, e)
        return SplitDecision.error(f"host kiosk lookup failed: {e}")

    if not assignments:
        return SplitDecision.no_split("no active host assignments")

    host_ids = list(dict.fromkeys(a.get("host_id") for a in assignments if a.get("host_id")))
    if not host_ids:
        return SplitDecision.no_split("no active host assignments")

    try:
        profiles = rows(
            client.table(PROFILES_TABLE)
            .select("id, stripe_connect_account_id, stripe_connect_enabled")
            .in_("id", host_ids)
            .execute()
        )
    except Exception as e:
        log_supabase_error("select", PROFILES_TABLE, e)
        return SplitDecision.error(f"host profile lookup failed: {e}")

    profile_map = {p.get("id"): p for p in profiles}
    hosts: Dict[str, _HostAggregate] = {}
    for assignment in assignments:
        host_id = assignment.get("host_id")
        profile = profile_map.get(host_id)
        if not is_payable(profile):
            continue
        host = hosts.get(host_id)
        if host is None:
            host = hosts[host_id] = _HostAggregate(
                host_id=host_id,
                account_id=profile["stripe_connect_account_id"],
                commission_rate=parse_commission_rate(assignment.get("commission_rate"), default_rate),
            )
        host.kiosk_ids.add(str(assignment.get("kiosk_id")))

    if not hosts:
        return SplitDecision.no_split("no payable host")
    if len(hosts) > 1:
        return SplitDecision.no_split(f"{len(hosts)} payable hosts involved")

    host = next(iter(hosts.values()))
    uncovered = [k for k in unique_kiosk_ids if k not in host.kiosk_ids]
    if uncovered:
        return SplitDecision.no_split(f"kiosks not owned by host {host.host_id}: {', '.join(uncovered)}")

    host_amount, platform_fee = compute_commission(amount, host.commission_rate)
    if platform_fee < 0:
        logger.error(f"Negative platform fee {platform_fee} for host {host.host_id} (rate={host.commission_rate})")
        return SplitDecision.error("negative platform fee")

    overlay = {str(k): str(v) for k, v in (metadata or {}).items()}
    overlay.update({
        "host_split_enabled": "true",
        "host_commission_rate": f"{host.commission_rate:.2f}",
        "host_commission_amount_cents": str(host_amount),
        "platform_fee_amount_cents": str(platform_fee),
        "host_stripe_account_id": host.account_id,
    })

    return SplitDecision.ok(HostSplit(
        host_id=host.host_id,
        destination_account_id=host.account_id,
        commission_rate=host.commission_rate,
        host_commission_amount=host_amount,
        platform_fee_amount=platform_fee,
        metadata=overlay,
    ))


def get_host_split_config(
    client: Any,
    kiosk_ids: Union[str, Iterable[Any], None],
    amount: Any,
    metadata: Optional[Mapping[str, Any]] = None,
    default_rate: float = DEFAULT_COMMISSION_RATE,
) -> Optional[Dict[str, Any]]:
    """Stripe ``transfer_data``/``application_fee_amount``/``metadata`` for a split, or ``None``.

    ``None`` means charge the full amount to the platform. Never raises.
    """
    try:
        decision = calculate_host_split(client, kiosk_ids, amount, metadata, default_rate)
    except Exception as e:
        logger.error(f"Error calculating host split config: {e}", exc_info=True)
        return None
    if decision.outcome is SplitOutcome.ERROR:
        logger.error(f"Host split unavailable, falling back to platform fee: {decision.reason}")
    if not decision.should_split:
        return None
    return decision.split.to_stripe_params()
