"""Pure computations over trades, leads and clients."""

from advisorhub.analysis.returns import TradeRecord, ReturnsReport, aggregate_returns, calculate_trade_return
from advisorhub.analysis.dashboard import trade_accuracy, revenue_series, onboarding_series, plan_distribution

__all__ = [
    "TradeRecord", "ReturnsReport", "aggregate_returns", "calculate_trade_return",
    "trade_accuracy", "revenue_series", "onboarding_series", "plan_distribution",
]
