"""
PaymentIntent creation for campaign checkouts.

Host split parameters are overlaid on the base intent when a single payable
host owns every kiosk in the booking; otherwise the full amount settles to
the platform account.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, Mapping, Optional

import stripe

from ..config import DEFAULT_COMMISSION_RATE
from ..infrastructure.error_handling import SplitUnavailableError
from .host_split import SplitDecision, SplitOutcome, calculate_host_split

logger = logging.getLogger(__name__)


def _ensure_api_key() -> None:
    if not stripe.api_key:
        stripe.api_key = os.getenv("STRIPE_SECRET_KEY")


def build_payment_intent_params(
    amount: int,
    currency: str,
    decision: Optional[SplitDecision],
    metadata: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "amount": amount,
        "currency": (currency or "usd").lower(),
        "automatic_payment_methods": {"enabled": True},
        "metadata": {str(k): str(v) for k, v in (metadata or {}).items()},
    }
    if decision is not None and decision.should_split:
        params.update(decision.split.to_stripe_params())
    return params


def create_split_payment_intent(
    client: Any,
    amount: int,
    currency: str,
    kiosk_ids: Iterable[Any],
    metadata: Optional[Mapping[str, Any]] = None,
    abort_on_error: bool = False,
    idempotency_key: Optional[str] = None,
    default_rate: float = DEFAULT_COMMISSION_RATE,
) -> Dict[str, Any]:
    """
    Create a Stripe PaymentIntent, routing the host commission when eligible.

    A lookup failure during the split decision charges the full amount to the
    platform unless ``abort_on_error`` is set, in which case
    ``SplitUnavailableError`` is raised and no intent is created.
    """
    decision = calculate_host_split(client, kiosk_ids, amount, metadata, default_rate)
    if decision.outcome is SplitOutcome.ERROR:
        if abort_on_error:
            raise SplitUnavailableError(decision.reason)
        logger.error(f"Host split unavailable, charging platform only: {decision.reason}")
    elif decision.outcome is SplitOutcome.NO_SPLIT:
        logger.info(f"No host split: {decision.reason}")

    params = build_payment_intent_params(amount, currency, decision, metadata)
    _ensure_api_key()
    try:
        if idempotency_key:
            intent = stripe.PaymentIntent.create(**params, idempotency_key=idempotency_key)
        else:
            intent = stripe.PaymentIntent.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating payment intent: {e}")
        raise

    if decision.should_split:
        logger.info(
            f"✅ PaymentIntent {intent.id}: {decision.split.host_commission_amount} to host "
            f"{decision.split.host_id}, fee {decision.split.platform_fee_amount}"
        )
    return {
        "payment_intent_id": intent.id,
        "client_secret": intent.client_secret,
        "status": intent.status,
        "host_split": decision.should_split,
        "split_outcome": decision.outcome.value,
    }
