"""Advisor dashboard statistics: trade accuracy, revenue, onboarding, plan mix."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo

from advisorhub.analysis.returns import (
    TradeRecord, calculate_trade_return, parse_price, round_one_decimal,
)

PLANS = ("standard", "premium", "elite")


@dataclass
class AccuracyResult:
    accuracy: int  # percent of exited trades that were profitable
    completed_trades: int
    profitable_trades: int
    change_vs_baseline: int


@dataclass
class SeriesPoint:
    date: str
    value: float


@dataclass
class SeriesResult:
    points: list[SeriesPoint] = field(default_factory=list)
    total: float = 0.0
    percentage_change: float = 0.0


@dataclass
class ExitedTrade:
    """Trade record plus the date it was closed, for revenue bucketing."""
    record: TradeRecord
    exit_date: datetime | None = None


@dataclass
class OnboardedLead:
    stage: str
    updated_at: datetime


def _js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _local_date(dt: datetime, tz: tzinfo) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).strftime("%Y-%m-%d")


def _is_profitable(trade: TradeRecord) -> bool:
    entry = parse_price(trade.entry)
    exit_price = parse_price(trade.exit_price)
    if entry is None or not exit_price:
        return False
    if trade.trade_type.upper() == "BUY":
        return exit_price > entry
    return exit_price < entry


def trade_accuracy(trades: list[TradeRecord], baseline: float = 75.0) -> AccuracyResult:
    """Share of exited trades that closed in profit, compared with a baseline accuracy."""
    exited = [t for t in trades if t.is_exited]
    if not exited:
        return AccuracyResult(accuracy=0, completed_trades=0, profitable_trades=0, change_vs_baseline=0)

    profitable = sum(1 for t in exited if _is_profitable(t))
    accuracy = _js_round(profitable / len(exited) * 100)
    change = _js_round((accuracy - baseline) / baseline * 100) if baseline else 0
    return AccuracyResult(
        accuracy=accuracy,
        completed_trades=len(exited),
        profitable_trades=profitable,
        change_vs_baseline=change,
    )


def revenue_series(trades: list[ExitedTrade], tz: tzinfo = timezone.utc) -> SeriesResult:
    """Signed return of exited trades summed per local exit date."""
    daily: dict[str, float] = {}
    for item in trades:
        trade = item.record
        if not trade.is_exited or parse_price(trade.exit_price) is None:
            continue
        if parse_price(trade.entry) is None:
            continue
        day = _local_date(item.exit_date or trade.created_at, tz)
        daily[day] = daily.get(day, 0.0) + calculate_trade_return(trade)

    points = [SeriesPoint(date=d, value=v) for d, v in sorted(daily.items())]
    change = 0.0
    if len(points) >= 2:
        prev, current = points[-2].value, points[-1].value
        if prev != 0:
            change = round_one_decimal((current - prev) / abs(prev) * 100)
    return SeriesResult(points=points, total=sum(p.value for p in points), percentage_change=change)


def onboarding_series(leads: list[OnboardedLead], tz: tzinfo = timezone.utc) -> SeriesResult:
    """Paid (onboarded) leads counted per local date of their last update."""
    counts: dict[str, int] = {}
    onboarded = [lead for lead in leads if lead.stage == "paid"]
    for lead in onboarded:
        day = _local_date(lead.updated_at, tz)
        counts[day] = counts.get(day, 0) + 1

    points = [SeriesPoint(date=d, value=float(v)) for d, v in sorted(counts.items())]
    change = 0.0
    if len(points) >= 2:
        prev, current = points[-2].value, points[-1].value
        if prev == 0:
            change = 0.0 if current == 0 else 100.0
        else:
            change = round_one_decimal((current - prev) / prev * 100)
    return SeriesResult(points=points, total=float(len(onboarded)), percentage_change=change)


def plan_distribution(plans: list[str | None]) -> dict:
    """Count clients per known plan; unknown plans are left out of the total."""
    counts = {plan: 0 for plan in PLANS}
    for plan in plans:
        if plan in counts:
            counts[plan] += 1
    return {"plans": counts, "total": sum(counts.values())}
