"""Unit tests for the justification decision table."""

from decimal import Decimal

import pytest

from coinpulse.portfolio.base import RiskProfile, TradeDirection
from coinpulse.portfolio.justification import (
    DECISION_TABLE,
    JustificationTemplate,
    Trend,
    build_justification,
    select_template,
)

BUY, SELL = TradeDirection.BUY, TradeDirection.SELL
UP, DOWN = Trend.UP, Trend.DOWN
C, M = RiskProfile.CONSERVATIVE, RiskProfile.MODERATE
A, VA = RiskProfile.AGGRESSIVE, RiskProfile.VERY_AGGRESSIVE


class TestTrend:
    """Test trend classification."""

    @pytest.mark.parametrize(
        "change, expected",
        [("3.2", UP), ("0.0001", UP), ("0", DOWN), ("-1.5", DOWN)],
    )
    def test_from_change(self, change, expected):
        """Test zero change counts as a down trend."""
        assert Trend.from_change(Decimal(change)) is expected


class TestDecisionTable:
    """Test template selection covers every combination."""

    def test_table_is_complete(self):
        """Test every (direction, trend, profile) has an entry."""
        assert len(DECISION_TABLE) == len(TradeDirection) * len(Trend) * len(RiskProfile)

    @pytest.mark.parametrize(
        "direction, trend, profile, expected",
        [
            (BUY, UP, C, JustificationTemplate.GRADUAL_INCREASE),
            (BUY, UP, M, JustificationTemplate.GRADUAL_INCREASE),
            (BUY, UP, A, JustificationTemplate.MOMENTUM),
            (BUY, UP, VA, JustificationTemplate.MOMENTUM),
            (BUY, DOWN, C, JustificationTemplate.BUY_THE_DIP),
            (BUY, DOWN, M, JustificationTemplate.BUY_THE_DIP),
            (BUY, DOWN, A, JustificationTemplate.BUY_THE_DIP),
            (BUY, DOWN, VA, JustificationTemplate.BUY_THE_DIP),
            (SELL, UP, C, JustificationTemplate.TAKE_PROFIT),
            (SELL, UP, M, JustificationTemplate.TAKE_PROFIT),
            (SELL, UP, A, JustificationTemplate.TAKE_PROFIT),
            (SELL, UP, VA, JustificationTemplate.TAKE_PROFIT),
            (SELL, DOWN, C, JustificationTemplate.LIMIT_LOSS),
            (SELL, DOWN, M, JustificationTemplate.LIMIT_LOSS),
            (SELL, DOWN, A, JustificationTemplate.ROTATE_OUT),
            (SELL, DOWN, VA, JustificationTemplate.ROTATE_OUT),
        ],
    )
    def test_select_template(self, direction, trend, profile, expected):
        """Test the template chosen for each combination."""
        assert select_template(direction, trend, profile) is expected


class TestBuildJustification:
    """Test rendered justification text."""

    def test_momentum_text(self):
        """Test the 24h change is rounded to two decimals."""
        justification = build_justification(BUY, Decimal("5.678"), A)

        assert justification.template is JustificationTemplate.MOMENTUM
        assert justification.text == "Capitalize on strong momentum (5.68% 24h change)"

    def test_buy_the_dip_uses_absolute_change(self):
        """Test the dip template shows the magnitude of the drop."""
        justification = build_justification(BUY, Decimal("-3.125"), M)

        assert justification.text == (
            "Buy the dip while price is down 3.13% to optimize position"
        )

    def test_limit_loss_keeps_sign(self):
        """Test the loss template shows the signed change."""
        justification = build_justification(SELL, Decimal("-2"), C)

        assert justification.text == "Reduce exposure to minimize further loss (-2.00%)"

    def test_rotate_out_has_no_figure(self):
        """Test templates without placeholders render verbatim."""
        justification = build_justification(SELL, Decimal("-7.5"), VA)

        assert justification.text == JustificationTemplate.ROTATE_OUT.value

    def test_deterministic(self):
        """Test the same inputs give the same text."""
        first = build_justification(SELL, Decimal("4.2"), A)
        second = build_justification(SELL, Decimal("4.2"), A)

        assert first == second
        assert first.text == "Take profit after 4.20% gain to rebalance portfolio"
