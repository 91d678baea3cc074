"""Unit tests for PortfolioRebalancer."""

from datetime import datetime
from decimal import Decimal

import pytest
import pytz

from coinpulse.portfolio.base import (
    Portfolio,
    PortfolioAsset,
    RebalanceAction,
    RiskProfile,
    TradeDirection,
)
from coinpulse.portfolio.justification import JustificationTemplate
from coinpulse.portfolio.rebalancer import (
    PortfolioRebalancer,
    generate_actions,
    round_units,
    unit_precision,
)
from coinpulse.portfolio.targets import TARGET_ALLOCATIONS, get_target_allocations
from coinpulse.utils.exceptions import RebalanceError


@pytest.fixture
def rebalancer():
    """Create PortfolioRebalancer with default threshold."""
    return PortfolioRebalancer({"materiality_threshold": 2})


def single_asset_portfolio(asset_id, allocation, total="100000", amount="1"):
    return Portfolio(
        assets=[
            PortfolioAsset(
                asset_id=asset_id,
                symbol=asset_id[:3].upper(),
                amount=Decimal(amount),
                value_usd=Decimal(total) * Decimal(allocation) / 100,
                allocation_percent=Decimal(allocation),
            )
        ],
        total_value_usd=Decimal(total),
    )


class TestTargetAllocations:
    """Test the target tables."""

    def test_moderate_table(self):
        """Test the moderate targets."""
        assert get_target_allocations(RiskProfile.MODERATE) == {
            "bitcoin": Decimal("40"),
            "ethereum": Decimal("25"),
            "cardano": Decimal("12"),
            "solana": Decimal("8"),
            "polkadot": Decimal("7"),
            "tether": Decimal("8"),
        }

    def test_conservative_holds_stablecoins(self):
        """Test hyphenated ids are kept."""
        targets = get_target_allocations("conservative")
        assert targets["usd-coin"] == Decimal("5")
        assert targets["tether"] == Decimal("20")

    def test_returns_copy(self):
        """Test callers cannot mutate the shared tables."""
        get_target_allocations("aggressive")["bitcoin"] = Decimal("0")
        assert TARGET_ALLOCATIONS[RiskProfile.AGGRESSIVE]["bitcoin"] == Decimal("45")

    def test_unknown_profile_falls_back(self, caplog):
        """Test unknown profiles use moderate and log a warning."""
        targets = get_target_allocations("yolo")

        assert targets == get_target_allocations(RiskProfile.MODERATE)
        assert "Unknown risk profile 'yolo'" in caplog.text


class TestUnitRounding:
    """Test unit precision tiers."""

    @pytest.mark.parametrize(
        "price, places",
        [("0.000009", 6), ("0.0099", 6), ("0.01", 4), ("0.5", 4), ("1", 2), ("40000", 2)],
    )
    def test_unit_precision(self, price, places):
        """Test tier boundaries are exclusive ceilings."""
        assert unit_precision(Decimal(price)) == places

    def test_round_half_up(self):
        """Test rounding is half-up at the tier's precision."""
        assert round_units(Decimal("0.125"), Decimal("40000")) == Decimal("0.13")
        assert round_units(Decimal("123.45675"), Decimal("0.5")) == Decimal("123.4568")
        assert round_units(Decimal("1.0000005"), Decimal("0.001")) == Decimal("1.000001")


class TestRebalancerConfig:
    """Test configuration handling."""

    def test_default_threshold(self):
        """Test the default materiality threshold is 2 points."""
        assert PortfolioRebalancer().materiality_threshold == Decimal("2")

    def test_negative_threshold(self):
        """Test negative thresholds are rejected."""
        with pytest.raises(RebalanceError, match="materiality_threshold"):
            PortfolioRebalancer({"materiality_threshold": -1})


class TestGenerateActions:
    """Test action generation."""

    def test_moderate_example(self, rebalancer, example_portfolio, quotes):
        """Test only the cardano drift of -3 points is material."""
        actions = rebalancer.generate_actions(
            example_portfolio, quotes, RiskProfile.MODERATE
        )

        assert len(actions) == 1
        action = actions[0]
        assert action.asset_id == "cardano"
        assert action.direction == TradeDirection.SELL
        assert action.allocation_delta_percent == Decimal("3")
        assert action.units_to_trade == Decimal("6000")
        assert action.justification_template is JustificationTemplate.TAKE_PROFIT
        assert action.justification == (
            "Take profit after 3.40% gain to rebalance portfolio"
        )

    def test_aggressive_example(self, rebalancer, example_portfolio, quotes):
        """Test actions are sized per price tier and sorted by asset id."""
        actions = rebalancer.generate_actions(example_portfolio, quotes, "aggressive")

        assert [a.asset_id for a in actions] == ["bitcoin", "cardano", "ethereum"]
        btc, ada, eth = actions
        assert btc.direction == TradeDirection.BUY
        assert btc.units_to_trade == Decimal("0.13")
        assert btc.justification_template is JustificationTemplate.MOMENTUM
        assert ada.direction == TradeDirection.SELL
        assert ada.units_to_trade == Decimal("14000")
        assert eth.units_to_trade == Decimal("2.50")
        assert eth.justification == (
            "Buy the dip while price is down 1.25% to optimize position"
        )

    @pytest.mark.parametrize(
        "allocation, expected_actions",
        [("38", 0), ("42", 0), ("37.99", 1), ("42.01", 1)],
    )
    def test_threshold_is_strict(self, rebalancer, quotes, allocation, expected_actions):
        """Test a drift equal to the threshold is not material."""
        portfolio = single_asset_portfolio("bitcoin", allocation)

        actions = rebalancer.generate_actions(portfolio, quotes, "moderate")

        assert len(actions) == expected_actions

    def test_untargeted_assets_untouched(self, rebalancer, quote_factory):
        """Test assets missing from the table are never traded."""
        portfolio = single_asset_portfolio("dogecoin", "90")
        quotes = [quote_factory("dogecoin", "0.08")]

        assert rebalancer.generate_actions(portfolio, quotes, "moderate") == []

    def test_unpriced_asset_skipped(self, rebalancer, example_portfolio, quotes):
        """Test no action is emitted for an asset without a positive price."""
        del quotes["cardano"]

        actions = rebalancer.generate_actions(example_portfolio, quotes, "moderate")

        assert actions == []

    def test_zero_price_suppressed(
        self, rebalancer, example_portfolio, quotes, quote_factory
    ):
        """Test a quote priced at zero suppresses the material cardano sell."""
        quotes["cardano"] = quote_factory("cardano", "0", "3.40", "ADA")

        assert rebalancer.calculate_drift(example_portfolio, "moderate")[
            "cardano"
        ] == Decimal("-3")
        assert rebalancer.generate_actions(example_portfolio, quotes, "moderate") == []

    def test_sub_cent_units(self, rebalancer, quote_factory):
        """Test sub-cent assets get six decimal places."""
        portfolio = single_asset_portfolio("solana", "2", total="1000")
        quotes = [quote_factory("solana", "0.003", "1")]

        (action,) = rebalancer.generate_actions(portfolio, quotes, "moderate")

        assert action.units_to_trade == Decimal("20000.000000")
        assert action.units_to_trade.as_tuple().exponent == -6

    def test_unknown_profile_falls_back(self, rebalancer, example_portfolio, quotes):
        """Test unknown profiles behave like moderate."""
        assert rebalancer.generate_actions(
            example_portfolio, quotes, "unknown"
        ) == rebalancer.generate_actions(example_portfolio, quotes, "moderate")

    def test_module_level_shortcut(self, example_portfolio, quotes):
        """Test generate_actions works without constructing a rebalancer."""
        actions = generate_actions(example_portfolio, quotes, "moderate")
        assert [a.asset_id for a in actions] == ["cardano"]

    def test_should_rebalance(self, rebalancer, example_portfolio):
        """Test should_rebalance mirrors material drift."""
        assert rebalancer.should_rebalance(example_portfolio, "moderate")
        assert not rebalancer.should_rebalance(
            single_asset_portfolio("bitcoin", "40"), "moderate"
        )

    def test_calculate_drift(self, rebalancer, example_portfolio):
        """Test drift is target minus current for held targeted assets."""
        drift = rebalancer.calculate_drift(example_portfolio, "moderate")

        assert drift == {
            "bitcoin": Decimal("0"),
            "ethereum": Decimal("0"),
            "cardano": Decimal("-3"),
            "solana": Decimal("-2"),
            "polkadot": Decimal("2"),
        }


class TestApplyActions:
    """Test applying accepted actions."""

    def test_apply_sell(self, rebalancer, example_portfolio, quotes):
        """Test a sell reduces amount and allocation."""
        now = datetime(2024, 1, 1, tzinfo=pytz.utc)
        actions = rebalancer.generate_actions(example_portfolio, quotes, "moderate")

        result = rebalancer.apply_actions(example_portfolio, actions, now=now)

        cardano = result.get_asset("cardano")
        assert cardano.amount == Decimal("24000")
        assert cardano.allocation_percent == Decimal("12")
        assert result.last_rebalanced_at == now
        assert result.get_asset("bitcoin") == example_portfolio.get_asset("bitcoin")
        assert example_portfolio.get_asset("cardano").amount == Decimal("30000")

    def test_amount_never_negative(self, rebalancer):
        """Test selling more than held clamps to zero."""
        portfolio = single_asset_portfolio("bitcoin", "50", amount="0.1")
        action = RebalanceAction(
            asset_id="bitcoin",
            symbol="BTC",
            direction=TradeDirection.SELL,
            allocation_delta_percent=Decimal("10"),
            units_to_trade=Decimal("0.5"),
            justification="test",
        )

        result = rebalancer.apply_actions(portfolio, [action])

        assert result.assets[0].amount == Decimal("0")
        assert result.assets[0].allocation_percent == Decimal("40")
        assert result.last_rebalanced_at is not None

    def test_unheld_action_ignored(self, rebalancer, example_portfolio, caplog):
        """Test actions for assets not held are logged and skipped."""
        action = RebalanceAction(
            asset_id="tether",
            symbol="USDT",
            direction=TradeDirection.BUY,
            allocation_delta_percent=Decimal("8"),
            units_to_trade=Decimal("8000"),
            justification="test",
        )

        result = rebalancer.apply_actions(example_portfolio, [action])

        assert result.get_asset("tether") is None
        assert "Ignoring action for tether" in caplog.text


class TestRebalanceAction:
    """Test action validation."""

    def test_delta_must_be_positive(self):
        """Test zero deltas are rejected."""
        with pytest.raises(ValueError, match="allocation_delta_percent"):
            RebalanceAction(
                asset_id="bitcoin",
                symbol="BTC",
                direction=TradeDirection.BUY,
                allocation_delta_percent=Decimal("0"),
                units_to_trade=Decimal("1"),
                justification="test",
            )

    def test_signed_values_and_to_dict(self):
        """Test sells carry negative signed values."""
        action = RebalanceAction(
            asset_id="cardano",
            symbol="ADA",
            direction=TradeDirection.SELL,
            allocation_delta_percent=Decimal("3"),
            units_to_trade=Decimal("6000.0000"),
            justification="Take profit",
        )

        assert action.signed_delta == Decimal("-3")
        assert action.signed_units == Decimal("-6000")
        assert action.to_dict()["direction"] == "sell"
        assert action.to_dict()["units_to_trade"] == "6000.0000"
