"""
Tests for the host commission split calculator.

Verifies that calculate_host_split:
- Splits a payment with the single payable host owning every kiosk
- Falls back to no split for unpayable, multiple or partial hosts
- Clamps commission rates into [0, 100] and defaults unparseable rates to 70
- Never queries for empty kiosk lists or non-positive amounts
- Reports lookup failures as ERROR rather than NO_SPLIT
"""

from pathlib import Path

import pytest

from ezkiosk.config import default_commission_rate, load_settings
from ezkiosk.payments.host_split import (
    SplitOutcome,
    calculate_host_split,
    compute_commission,
    get_host_split_config,
    parse_commission_rate,
)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


def _host(db, host_id, account_id="acct_host", enabled=True):
    db.seed("profiles", {"id": host_id, "stripe_connect_account_id": account_id, "stripe_connect_enabled": enabled})


def _assign(db, kiosk_id, host_id, rate=70, status="active"):
    db.seed("host_kiosks", {"kiosk_id": kiosk_id, "host_id": host_id, "commission_rate": rate, "status": status})


class TestCalculateHostSplit:
    def test_single_host_split(self, fake_db):
        """10000 cents at 70% -> 7000 to host, 3000 platform fee."""
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", 70)

        decision = calculate_host_split(fake_db, ["k1"], 10000)

        assert decision.outcome is SplitOutcome.SPLIT
        split = decision.split
        assert split.destination_account_id == "acct_H"
        assert split.host_commission_amount == 7000
        assert split.platform_fee_amount == 3000

    def test_stripe_params_shape(self, fake_db):
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", "72.5")

        config = get_host_split_config(fake_db, ["k1", "k1"], 999, {"campaign_id": "c1", "slots": 3})

        assert config["transfer_data"] == {"destination": "acct_H"}
        assert config["application_fee_amount"] == 999 - 724
        assert config["metadata"] == {
            "campaign_id": "c1",
            "slots": "3",
            "host_split_enabled": "true",
            "host_commission_rate": "72.50",
            "host_commission_amount_cents": "724",
            "platform_fee_amount_cents": "275",
            "host_stripe_account_id": "acct_H",
        }

    def test_connect_disabled_means_no_split(self, fake_db):
        _host(fake_db, "H", "acct_H", enabled=False)
        _assign(fake_db, "k1", "H")

        decision = calculate_host_split(fake_db, ["k1"], 10000)

        assert decision.outcome is SplitOutcome.NO_SPLIT
        assert get_host_split_config(fake_db, ["k1"], 10000) is None

    def test_missing_account_id_means_no_split(self, fake_db):
        _host(fake_db, "H", None)
        _assign(fake_db, "k1", "H")

        assert calculate_host_split(fake_db, ["k1"], 10000).outcome is SplitOutcome.NO_SPLIT

    def test_multiple_hosts_no_split(self, fake_db):
        _host(fake_db, "A", "acct_A")
        _host(fake_db, "B", "acct_B")
        _assign(fake_db, "k1", "A", 80)
        _assign(fake_db, "k2", "B", 60)

        decision = calculate_host_split(fake_db, ["k1", "k2"], 10000)

        assert decision.outcome is SplitOutcome.NO_SPLIT
        assert get_host_split_config(fake_db, ["k1", "k2"], 10000) is None

    def test_uncovered_kiosk_no_split(self, fake_db):
        """A kiosk without an active assignment blocks the split."""
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H")
        _assign(fake_db, "k2", "H", status="inactive")

        decision = calculate_host_split(fake_db, ["k1", "k2"], 10000)

        assert decision.outcome is SplitOutcome.NO_SPLIT
        assert "k2" in decision.reason

    def test_kiosk_of_unpayable_host_blocks_split(self, fake_db):
        _host(fake_db, "A", "acct_A")
        _host(fake_db, "B", "acct_B", enabled=False)
        _assign(fake_db, "k1", "A")
        _assign(fake_db, "k2", "B")

        assert calculate_host_split(fake_db, ["k1", "k2"], 10000).outcome is SplitOutcome.NO_SPLIT

    def test_no_assignments(self, fake_db):
        assert calculate_host_split(fake_db, ["k1"], 10000).outcome is SplitOutcome.NO_SPLIT

    @pytest.mark.parametrize("kiosk_ids, amount", [
        ([], 10000),
        (None, 10000),
        ([None, ""], 10000),
        (["k1"], 0),
        (["k1"], -5),
        (["k1"], None),
    ])
    def test_trivial_inputs_do_not_query(self, fake_db, kiosk_ids, amount):
        decision = calculate_host_split(fake_db, kiosk_ids, amount)

        assert decision.outcome is SplitOutcome.NO_SPLIT
        assert fake_db.calls == []

    @pytest.mark.parametrize("rate, expected_host", [(-5, 0), (150, 10000), (0, 0), (100, 10000)])
    def test_rate_is_clamped(self, fake_db, rate, expected_host):
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", rate)

        split = calculate_host_split(fake_db, ["k1"], 10000).split

        assert split.host_commission_amount == expected_host
        assert split.platform_fee_amount == 10000 - expected_host

    @pytest.mark.parametrize("raw", [None, "", "abc", float("nan"), float("inf")])
    def test_unusable_rate_defaults_to_seventy(self, fake_db, raw):
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", raw)

        split = calculate_host_split(fake_db, ["k1"], 10000).split

        assert split.commission_rate == 70.0
        assert split.host_commission_amount == 7000

    @pytest.mark.parametrize("amount", [1, 3, 7, 99, 333, 10001, 123457])
    @pytest.mark.parametrize("rate", [0, 12.5, 33.33, 70, 99.99, 100])
    def test_amounts_always_add_up(self, fake_db, amount, rate):
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", rate)

        split = calculate_host_split(fake_db, ["k1"], amount).split

        assert split.host_commission_amount + split.platform_fee_amount == amount
        assert split.platform_fee_amount >= 0

    def test_assignment_lookup_failure_is_error(self, fake_db):
        fake_db.fail("host_kiosks", "select")

        decision = calculate_host_split(fake_db, ["k1"], 10000)

        assert decision.outcome is SplitOutcome.ERROR
        assert get_host_split_config(fake_db, ["k1"], 10000) is None

    def test_profile_lookup_failure_is_error(self, fake_db):
        _assign(fake_db, "k1", "H")
        fake_db.fail("profiles", "select")

        assert calculate_host_split(fake_db, ["k1"], 10000).outcome is SplitOutcome.ERROR

    def test_single_kiosk_id_string(self, fake_db):
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", 70)

        config = get_host_split_config(fake_db, "k1", 10000)

        assert config["transfer_data"] == {"destination": "acct_H"}
        assert config["application_fee_amount"] == 3000

    def test_configured_default_rate_applies_to_missing_rates(self, fake_db, tmp_path):
        settings_path = tmp_path / "settings.yaml"
        settings_path.write_text("payments:\n  default_commission_rate: 50\n")
        settings = load_settings(str(settings_path), str(CONFIG_DIR / "schema.settings.yaml"))
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", None)

        config = get_host_split_config(fake_db, ["k1"], 10000, default_rate=default_commission_rate(settings))

        assert config["metadata"]["host_commission_rate"] == "50.00"
        assert config["application_fee_amount"] == 5000

    def test_stored_rate_wins_over_configured_default(self, fake_db):
        _host(fake_db, "H", "acct_H")
        _assign(fake_db, "k1", "H", 80)

        split = calculate_host_split(fake_db, ["k1"], 10000, default_rate=50).split

        assert split.host_commission_amount == 8000


class TestCommissionArithmetic:
    def test_half_rounds_up(self):
        assert compute_commission(5, 50) == (3, 2)
        assert compute_commission(15, 50) == (8, 7)

    def test_parse_rate(self):
        assert parse_commission_rate("80") == 80.0
        assert parse_commission_rate(-1) == 0.0
        assert parse_commission_rate("250") == 100.0
        assert parse_commission_rate("bad", default=55) == 55
