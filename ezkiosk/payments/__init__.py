"""Stripe Connect host commission splits."""

from .host_split import HostSplit, SplitDecision, SplitOutcome, calculate_host_split, get_host_split_config
from .host_accounts import enable_stripe_connect, is_payable, is_stripe_connect_enabled
from .checkout import build_payment_intent_params, create_split_payment_intent

__all__ = [
    "HostSplit",
    "SplitDecision",
    "SplitOutcome",
    "calculate_host_split",
    "get_host_split_config",
    "enable_stripe_connect",
    "is_payable",
    "is_stripe_connect_enabled",
    "build_payment_intent_params",
    "create_split_payment_intent",
]
