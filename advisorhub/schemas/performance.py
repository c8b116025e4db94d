import uuid

from pydantic import BaseModel


class PerformancePoint(BaseModel):
    date: str
    value: float


class PerformanceMetrics(BaseModel):
    total_returns: float
    last_ten_trades_return: float
    this_year_return: float
    last_ten_trades_percentage: float
    this_year_percentage: float
    overall_growth_percent: float
    xirr: float


class PerformanceResponse(BaseModel):
    client_id: uuid.UUID
    overall: list[PerformancePoint]
    last_ten_trades: list[PerformancePoint]
    this_year: list[PerformancePoint]
    metrics: PerformanceMetrics
    trade_count: int
