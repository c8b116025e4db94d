"""Client performance: trade P&L aggregation, equity curves, XIRR-like return.

Only exited trades count. The overall curve tracks the growth of a baseline
amount (100 by default) with one point per calendar month; the last-10 and
year-to-date curves are cumulative from zero within their own window.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo

BASELINE_VALUE = 100.0
TRAILING_WINDOW = 10
XIRR_MIN_YEARS = 0.1  # ~36.5 days
XIRR_SHORT_MULTIPLIER = 10
SECONDS_PER_YEAR = 365 * 24 * 60 * 60


@dataclass
class TradeRecord:
    entry: str | float | None
    exit_price: str | float | None
    trade_type: str  # "BUY" or "SELL"
    status: str  # "ACTIVE" or "EXITED"
    created_at: datetime

    @property
    def is_exited(self) -> bool:
        return self.status == "EXITED"


@dataclass
class PerformancePoint:
    date: str
    value: float


@dataclass
class PerformanceMetrics:
    total_returns: float = 0.0
    last_ten_trades_return: float = 0.0
    this_year_return: float = 0.0
    last_ten_trades_percentage: float = 0.0
    this_year_percentage: float = 0.0
    overall_growth_percent: float = 0.0
    xirr: float = 0.0


@dataclass
class ReturnsReport:
    overall: list[PerformancePoint] = field(default_factory=list)
    last_ten_trades: list[PerformancePoint] = field(default_factory=list)
    this_year: list[PerformancePoint] = field(default_factory=list)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    trade_count: int = 0


def parse_price(value) -> float | None:
    """Interpret a stored price. Blank, non-numeric and non-finite values give None."""
    if value is None or value == "":
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(price) or math.isinf(price):
        return None
    return price


def round_one_decimal(value: float) -> float:
    """Round to one decimal place, halves rounded up (dashboard convention)."""
    return math.floor(value * 10 + 0.5) / 10


def calculate_trade_return(trade: TradeRecord) -> float:
    """Signed return of one trade: exit - entry for BUY, entry - exit for SELL.

    Zero when the trade has not exited or either price is unusable.
    """
    if not trade.is_exited:
        return 0.0
    entry = parse_price(trade.entry)
    exit_price = parse_price(trade.exit_price)
    if entry is None or exit_price is None:
        return 0.0
    if trade.trade_type.upper() == "BUY":
        return exit_price - entry
    return entry - exit_price


def calculate_xirr(
    trades: list[TradeRecord],
    now: datetime | None = None,
    baseline: float = BASELINE_VALUE,
) -> float:
    """Approximate annualized return in percent.

    Total return relative to the baseline, divided by the years elapsed since
    the earliest trade. Under XIRR_MIN_YEARS the total is multiplied by 10.
    """
    if not trades:
        return 0.0
    now = _as_utc(now or datetime.now(timezone.utc))

    total_return = sum(calculate_trade_return(t) for t in trades)
    oldest = min(_as_utc(t.created_at) for t in trades)
    years = (now - oldest).total_seconds() / SECONDS_PER_YEAR

    if years < XIRR_MIN_YEARS:
        return total_return * XIRR_SHORT_MULTIPLIER

    annualized = (total_return / baseline) / years
    return round_one_decimal(annualized * 100)


def aggregate_returns(
    trades: list[TradeRecord],
    now: datetime | None = None,
    baseline: float = BASELINE_VALUE,
    tz: tzinfo = timezone.utc,
) -> ReturnsReport:
    """Build the performance report for one client's trades.

    Args:
        trades: Trades in any order; non-exited ones are ignored.
        now: Reference time for the current year and XIRR (defaults to now).
        baseline: Starting value of the overall curve.
        tz: Time zone used for month, day and week buckets.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    exited = sorted((t for t in trades if t.is_exited), key=lambda t: _as_utc(t.created_at))

    report = ReturnsReport(trade_count=len(exited))
    report.metrics.total_returns = baseline
    if not exited:
        return report

    # Overall: cumulative from the baseline, last value per month
    cumulative = baseline
    monthly: dict[str, float] = {}
    for trade in exited:
        cumulative += calculate_trade_return(trade)
        monthly[_local(trade.created_at, tz).strftime("%Y-%m")] = cumulative
    report.overall = [PerformancePoint(date=k, value=v) for k, v in sorted(monthly.items())]

    # Trailing window: cumulative from zero, one point per trade
    recent = exited[-TRAILING_WINDOW:]
    recent_value = 0.0
    for trade in recent:
        recent_value += calculate_trade_return(trade)
        report.last_ten_trades.append(PerformancePoint(
            date=_local(trade.created_at, tz).strftime("%Y-%m-%d"),
            value=recent_value,
        ))

    # Year to date: cumulative from zero, last value per ISO week
    current_year = now.astimezone(tz).year
    this_year = [t for t in exited if _local(t.created_at, tz).year == current_year]
    year_value = 0.0
    weekly: dict[str, float] = {}
    for trade in this_year:
        year_value += calculate_trade_return(trade)
        iso_year, iso_week, _ = _local(trade.created_at, tz).isocalendar()
        weekly[f"{iso_year}-W{iso_week:02d}"] = year_value
    report.this_year = [PerformancePoint(date=k, value=v) for k, v in sorted(weekly.items())]

    total_return = cumulative - baseline
    last_ten_return = recent_value
    this_year_return = year_value

    last_ten_pct = (last_ten_return / TRAILING_WINDOW) * 100 if recent else 0.0
    this_year_pct = (this_year_return / len(this_year)) * 100 if this_year else 0.0
    growth_pct = (total_return / baseline) * 100

    report.metrics = PerformanceMetrics(
        total_returns=cumulative,
        last_ten_trades_return=last_ten_return,
        this_year_return=this_year_return,
        last_ten_trades_percentage=round_one_decimal(last_ten_pct),
        this_year_percentage=round_one_decimal(this_year_pct),
        overall_growth_percent=round_one_decimal(growth_pct),
        xirr=calculate_xirr(exited, now=now, baseline=baseline),
    )
    return report


def _as_utc(dt: datetime) -> datetime:
    # Naive timestamps are stored in UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _local(dt: datetime, tz: tzinfo) -> datetime:
    return _as_utc(dt).astimezone(tz)
