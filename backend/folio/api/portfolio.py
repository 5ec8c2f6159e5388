"""
Portfolio API Router.

Regional holdings CRUD plus the valued view (live price, NAV, weight, P/L and
trailing returns) for USD, CAD and INTL portfolios.
"""
import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from folio.api.deps import get_history_service, get_holding_service, get_region, get_valuation_service
from folio.core.errors import HoldingNotFoundError
from folio.core.types import Region, StockType
from folio.services.history_service import PortfolioHistoryService, TimeRange
from folio.services.stores.base import HoldingStore
from folio.services.valuation_service import PortfolioValuationService, summarize_portfolio

router = APIRouter()

# ---------- Pydantic Schemas ----------

class HoldingCreate(BaseModel):
    symbol: str = Field(min_length=1, max_length=20)
    company: str = Field(min_length=1, max_length=200)
    stock_type: StockType = StockType.COMP
    rating: int = Field(default=1, ge=1, le=4)
    sector: Optional[str] = Field(default=None, max_length=100)
    quantity: float = Field(default=0, ge=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)


class HoldingUpdate(BaseModel):
    symbol: Optional[str] = Field(default=None, min_length=1, max_length=20)
    company: Optional[str] = Field(default=None, min_length=1, max_length=200)
    stock_type: Optional[StockType] = None
    rating: Optional[int] = Field(default=None, ge=1, le=4)
    sector: Optional[str] = Field(default=None, max_length=100)
    quantity: Optional[float] = Field(default=None, ge=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)


class HoldingResponse(BaseModel):
    id: int
    symbol: str
    region: str
    company: str
    stock_type: str
    rating: int
    sector: Optional[str]
    quantity: float
    purchase_price: Optional[float]

    class Config:
        from_attributes = True


class ValuedHoldingResponse(BaseModel):
    id: Optional[int]
    symbol: str
    company: Optional[str]
    stock_type: Optional[str]
    rating: Optional[int]
    sector: Optional[str]
    quantity: float
    purchase_price: Optional[float]
    current_price: float
    price_source: str
    net_asset_value: float
    portfolio_percentage: float
    profit_loss: float
    daily_change_percent: Optional[float] = None
    mtd_return: Optional[float] = None
    ytd_return: Optional[float] = None
    six_month_return: Optional[float] = None
    fifty_two_week_return: Optional[float] = None
    fifty_two_week_range_position: Optional[float] = None
    dividend_yield: Optional[float] = None

    class Config:
        from_attributes = True


class PortfolioSummaryResponse(BaseModel):
    region: str
    total_value: float
    holding_count: int
    unpriced_count: int
    total_cost_basis: float
    unrealized_pnl: float
    mtd_return: Optional[float] = None
    ytd_return: Optional[float] = None
    six_month_return: Optional[float] = None
    fifty_two_week_return: Optional[float] = None

    class Config:
        from_attributes = True


class HistoryPointResponse(BaseModel):
    date: dt.date
    portfolio_value: float
    benchmark_value: float
    portfolio_cumulative_return: float
    benchmark_cumulative_return: float
    portfolio_daily_return: float
    benchmark_daily_return: float
    relative_performance: float

    class Config:
        from_attributes = True


class PortfolioHistoryResponse(BaseModel):
    region: str
    benchmark: str
    time_range: str
    start_date: dt.date
    end_date: dt.date
    points: List[HistoryPointResponse]

    class Config:
        from_attributes = True


# ---------- Endpoints ----------

@router.get("/{region}/stocks", response_model=List[ValuedHoldingResponse])
async def list_stocks(
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
    valuation: PortfolioValuationService = Depends(get_valuation_service),
):
    """Every holding in the region, priced and weighted against the portfolio total."""
    rows = await holdings.list_holdings(region)
    return await valuation.value_portfolio(rows, region)


@router.get("/{region}/stocks/{holding_id}", response_model=ValuedHoldingResponse)
async def get_stock(
    holding_id: int,
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
    valuation: PortfolioValuationService = Depends(get_valuation_service),
):
    """One valued holding; its weight is relative to the whole regional portfolio."""
    rows = await holdings.list_holdings(region)
    if not any(row.id == holding_id for row in rows):
        raise HoldingNotFoundError(holding_id, region.value)
    valued = await valuation.value_portfolio(rows, region)
    return next(item for item in valued if item.id == holding_id)


@router.post("/{region}/stocks", response_model=HoldingResponse, status_code=status.HTTP_201_CREATED)
async def create_stock(
    payload: HoldingCreate,
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
):
    return await holdings.create_holding(region, payload.model_dump())


@router.put("/{region}/stocks/{holding_id}", response_model=HoldingResponse)
async def update_stock(
    holding_id: int,
    payload: HoldingUpdate,
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
):
    """Partial update; only the fields present in the body change."""
    return await holdings.update_holding(holding_id, region, payload.model_dump(exclude_unset=True))


@router.delete("/{region}/stocks/{holding_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stock(
    holding_id: int,
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
):
    await holdings.delete_holding(holding_id, region)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{region}/rebalance", response_model=List[HoldingResponse])
async def rebalance(
    payload: List[HoldingCreate],
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
):
    """Replace the whole regional portfolio with the submitted holdings."""
    seen = set()
    duplicates = set()
    for item in payload:
        symbol = item.symbol.strip().upper()
        if symbol in seen:
            duplicates.add(symbol)
        seen.add(symbol)
    if duplicates:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Duplicate symbols in rebalance: {', '.join(sorted(duplicates))}",
        )
    return await holdings.replace_holdings(region, [item.model_dump() for item in payload])


@router.get("/{region}/summary", response_model=PortfolioSummaryResponse)
async def get_summary(
    region: Region = Depends(get_region),
    holdings: HoldingStore = Depends(get_holding_service),
    valuation: PortfolioValuationService = Depends(get_valuation_service),
):
    """Portfolio totals with NAV-weighted trailing returns."""
    rows = await holdings.list_holdings(region)
    valued = await valuation.value_portfolio(rows, region)
    return summarize_portfolio(valued, region)


@router.get("/{region}/history", response_model=PortfolioHistoryResponse)
async def get_history(
    region: Region = Depends(get_region),
    time_range: TimeRange = Query(default=TimeRange.ONE_YEAR, alias="range", description="1W, 1M, YTD or 1Y"),
    holdings: HoldingStore = Depends(get_holding_service),
    history: PortfolioHistoryService = Depends(get_history_service),
):
    """Daily portfolio value and returns against the region's benchmark."""
    rows = await holdings.list_holdings(region)
    return await history.build_history(rows, region, time_range)
