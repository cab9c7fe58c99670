import pytest

from swing_engine.alerts import (
    check_entry_zone_proximity, check_exit_conditions, check_position_status,
    check_watchlist_zones, generate_morning_glance,
)


def alert_types(alerts):
    return [a["type"] for a in alerts]


class TestExitConditions:
    position = {"current_sl": 95, "current_target": 110}

    def test_stop_hit(self):
        alerts = check_exit_conditions(self.position, 94)
        assert alert_types(alerts) == ["STOP_HIT"]
        assert alerts[0]["severity"] == "critical"
        assert alerts[0]["action_required"] is True

    def test_near_stop(self):
        assert alert_types(check_exit_conditions(self.position, 95.5)) == ["NEAR_STOP"]

    def test_target_hit_and_beyond(self):
        alerts = check_exit_conditions(self.position, 112)
        assert alert_types(alerts) == ["TARGET_HIT", "BEYOND_TARGET"]

    def test_near_target(self):
        assert alert_types(check_exit_conditions(self.position, 109.5)) == ["NEAR_TARGET"]

    def test_high_volatility(self):
        alerts = check_exit_conditions(self.position, 100, atr=4)
        assert alert_types(alerts) == ["HIGH_VOLATILITY"]
        assert alerts[0]["atr_pct"] == 4

    def test_quiet(self):
        assert check_exit_conditions(self.position, 100, atr=1) == []

    def test_invalid_price(self):
        assert check_exit_conditions(self.position, None) == []


class TestEntryZoneProximity:
    zone = {"low": 99, "high": 101}

    def test_in_zone(self):
        result = check_entry_zone_proximity(100, self.zone)
        assert result["inZone"] is True
        assert result["distancePct"] == 0
        assert result["alert"]["type"] == "IN_ENTRY_ZONE"

    def test_approaching_from_above(self):
        result = check_entry_zone_proximity(102, self.zone)
        assert result["approaching"] is True
        assert result["direction"] == "above"
        assert result["alert"]["type"] == "APPROACHING_ZONE"

    def test_far_below(self):
        result = check_entry_zone_proximity(90, self.zone)
        assert result["approaching"] is False
        assert result["direction"] == "below"
        assert result["alert"] is None

    def test_missing_zone(self):
        result = check_entry_zone_proximity(100, None)
        assert result["direction"] == "unknown"


class TestPositionStatus:
    def test_significant_loss(self):
        result = check_position_status(95, 100, 10)
        assert result["pnl"] == -50.0
        assert result["pnl_pct"] == -5.0
        assert result["status"] == "SIGNIFICANT_LOSS"
        assert result["needs_attention"] is True

    @pytest.mark.parametrize("price,status", [
        (97, "IN_DRAWDOWN"),
        (99, "FLAT"),
        (101, "FLAT"),
        (102, "IN_PROFIT"),
        (105, "GOOD_PROFIT"),
        (112, "STRONG_PROFIT"),
    ])
    def test_bands(self, price, status):
        assert check_position_status(price, 100, 1)["status"] == status

    def test_profit_does_not_need_attention(self):
        assert check_position_status(112, 100)["needs_attention"] is False

    def test_invalid(self):
        assert check_position_status(100, 0) == {"error": "Invalid inputs"}


class TestSummaries:
    def test_morning_glance(self):
        positions = [
            {"instrument_key": "A", "actual_entry": 100, "current_sl": 95, "current_target": 120, "qty": 10},
            {"instrument_key": "B", "actual_entry": 50, "current_sl": 45, "current_target": 60, "qty": 4},
        ]
        glance = generate_morning_glance(positions, {"A": 94, "B": 55})
        assert glance["total_positions"] == 2
        assert glance["total_pnl"] == -40
        assert glance["attention_count"] == 1
        assert glance["summary"] == "1 position(s) need attention"
        first = glance["positions"][0]
        assert "STOP_HIT" in alert_types(first["all_alerts"])

    def test_morning_glance_empty(self):
        assert generate_morning_glance([])["summary"] == "No open positions"

    def test_watchlist_sorted(self):
        watchlist = [
            {"symbol": "FAR", "entry_zone": {"low": 99, "high": 101}},
            {"symbol": "NEAR", "entry_zone": {"low": 99, "high": 101}},
            {"symbol": "IN", "entry_zone": {"low": 99, "high": 101}},
            {"symbol": "NOPRICE", "entry_zone": {"low": 99, "high": 101}},
        ]
        prices = {"FAR": 102.5, "NEAR": 101.5, "IN": 100}
        triggered = check_watchlist_zones(watchlist, prices)
        assert [t["symbol"] for t in triggered] == ["IN", "NEAR", "FAR"]

    def test_watchlist_wrong_type(self):
        assert check_watchlist_zones("nope") == []
