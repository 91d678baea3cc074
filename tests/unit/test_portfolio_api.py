"""Unit tests for PortfolioAPI."""

from datetime import datetime
from decimal import Decimal

import pytest
import pytz

from coinpulse.api.portfolio_api import PortfolioAPI
from coinpulse.portfolio.base import RiskProfile
from coinpulse.portfolio.rebalancer import PortfolioRebalancer


class TestPortfolioAPIInit:
    """Test cases for PortfolioAPI initialization."""

    def test_default_initialization(self) -> None:
        """Test PortfolioAPI with default configuration."""
        api = PortfolioAPI()

        assert isinstance(api.rebalancer, PortfolioRebalancer)
        assert api.rebalancer.materiality_threshold == Decimal("2")

    def test_custom_rebalancer(self) -> None:
        """Test PortfolioAPI with custom rebalancer."""
        api = PortfolioAPI(PortfolioRebalancer({"materiality_threshold": 5}))

        assert api.rebalancer.materiality_threshold == Decimal("5")


class TestEvaluate:
    """Test cases for evaluate method."""

    @pytest.fixture
    def api(self) -> PortfolioAPI:
        """Create PortfolioAPI instance."""
        return PortfolioAPI()

    def test_evaluate_revalues_before_deciding(
        self, api: PortfolioAPI, example_portfolio, quotes
    ) -> None:
        """Test actions are computed from current prices, not stored values."""
        result = api.evaluate(example_portfolio, quotes, "moderate")

        portfolio = result["portfolio"]
        assert portfolio.total_value_usd == Decimal("95000")
        assert [a.asset_id for a in result["actions"]] == [
            "bitcoin",
            "cardano",
            "solana",
        ]
        assert result["risk_profile"] is RiskProfile.MODERATE

    def test_evaluate_risk_score(
        self, api: PortfolioAPI, example_portfolio, quotes
    ) -> None:
        """Test the risk score is stored on the returned portfolio."""
        result = api.evaluate(example_portfolio, quotes, RiskProfile.MODERATE)

        assert result["risk_score"] == 9
        assert result["portfolio"].risk_score == 9
        assert result["cash_percent"] < Decimal("0.0001")

    def test_evaluate_unknown_profile(
        self, api: PortfolioAPI, example_portfolio, quotes
    ) -> None:
        """Test unknown profiles are reported as the fallback used."""
        result = api.evaluate(example_portfolio, list(quotes.values()), "reckless")

        assert result["risk_profile"] is RiskProfile.MODERATE

    def test_evaluate_logs_context(
        self, api: PortfolioAPI, example_portfolio, quotes, caplog
    ) -> None:
        """Test evaluation logs its outcome with context."""
        with caplog.at_level("INFO", logger="coinpulse.api.portfolio_api"):
            api.evaluate(example_portfolio, quotes, "moderate")

        assert "Portfolio evaluated | total_value_usd=95000" in caplog.text
        assert "actions=3" in caplog.text


class TestRebalance:
    """Test cases for rebalance method."""

    def test_rebalance_applies_actions(self, example_portfolio, quotes) -> None:
        """Test accepted actions update holdings and the timestamp."""
        api = PortfolioAPI()
        now = datetime(2024, 6, 1, tzinfo=pytz.utc)
        result = api.evaluate(example_portfolio, quotes, "aggressive")

        rebalanced = api.rebalance(result["portfolio"], result["actions"], now=now)

        assert rebalanced.last_rebalanced_at == now
        bitcoin = rebalanced.get_asset("bitcoin")
        assert bitcoin.amount > example_portfolio.get_asset("bitcoin").amount
