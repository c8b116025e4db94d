from pydantic import BaseModel


class TradeAccuracyResponse(BaseModel):
    accuracy: int
    completed_trades: int
    profitable_trades: int
    change_vs_baseline: int
    baseline: float


class SeriesPoint(BaseModel):
    date: str
    value: float


class SeriesResponse(BaseModel):
    points: list[SeriesPoint]
    total: float
    percentage_change: float


class PlanDistributionResponse(BaseModel):
    plans: dict[str, int]
    total: int
