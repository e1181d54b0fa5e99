from __future__ import annotations
from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class OHLC(BaseModel):
    """One side (bid or ask) of a candle; prices stay as OANDA's strings."""
    model_config = ConfigDict(frozen=True)

    o: str
    h: str
    l: str
    c: str


class Candle(BaseModel):
    model_config = ConfigDict(frozen=True)

    complete: bool
    volume: int
    time: str
    bid: Optional[OHLC] = None
    ask: Optional[OHLC] = None


class CandleSeries(BaseModel):
    """Historical bid/ask candles for one instrument, oldest first."""
    model_config = ConfigDict(frozen=True)

    instrument: str
    granularity: str
    candles: List[Candle] = Field(default_factory=list)

    @property
    def most_recent(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for c in self.candles:
            row = {"time": pd.to_datetime(c.time), "complete": c.complete, "volume": c.volume}
            for side, prices in (("bid", c.bid), ("ask", c.ask)):
                if prices is None:
                    continue
                row[f"{side}_open"] = float(prices.o)
                row[f"{side}_high"] = float(prices.h)
                row[f"{side}_low"] = float(prices.l)
                row[f"{side}_close"] = float(prices.c)
            rows.append(row)
        return pd.DataFrame(rows)


# --- account endpoints ---
class AccountRef(BaseModel):
    id: str
    tags: List[str] = Field(default_factory=list)


class AccountList(BaseModel):
    accounts: List[AccountRef] = Field(default_factory=list)


class AccountSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    alias: Optional[str] = None
    currency: str
    balance: str
    nav: Optional[str] = Field(default=None, alias="NAV")
    unrealized_pl: Optional[str] = Field(default=None, alias="unrealizedPL")
    margin_used: Optional[str] = Field(default=None, alias="marginUsed")
    margin_available: Optional[str] = Field(default=None, alias="marginAvailable")
    open_trade_count: int = Field(default=0, alias="openTradeCount")
    open_position_count: int = Field(default=0, alias="openPositionCount")
    pending_order_count: int = Field(default=0, alias="pendingOrderCount")
    hedging_enabled: bool = Field(default=False, alias="hedgingEnabled")
    created_time: Optional[str] = Field(default=None, alias="createdTime")


class Instrument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str
    display_name: str = Field(alias="displayName")
    pip_location: int = Field(alias="pipLocation")
    display_precision: int = Field(default=5, alias="displayPrecision")
    trade_units_precision: int = Field(default=0, alias="tradeUnitsPrecision")
    minimum_trade_size: Optional[str] = Field(default=None, alias="minimumTradeSize")
    margin_rate: Optional[str] = Field(default=None, alias="marginRate")


class AccountInstruments(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instruments: List[Instrument] = Field(default_factory=list)
    last_transaction_id: Optional[str] = Field(default=None, alias="lastTransactionID")


class AccountDetails(AccountSummary):
    """Full account state; orders, trades and positions are kept as OANDA sent them."""

    pl: Optional[str] = None
    resettable_pl: Optional[str] = Field(default=None, alias="resettablePL")
    financing: Optional[str] = None
    commission: Optional[str] = None
    margin_rate: Optional[str] = Field(default=None, alias="marginRate")
    last_transaction_id: Optional[str] = Field(default=None, alias="lastTransactionID")
    orders: List[Dict[str, Any]] = Field(default_factory=list)
    trades: List[Dict[str, Any]] = Field(default_factory=list)
    positions: List[Dict[str, Any]] = Field(default_factory=list)


class AccountChangeSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    orders_created: List[Dict[str, Any]] = Field(default_factory=list, alias="ordersCreated")
    orders_cancelled: List[Dict[str, Any]] = Field(default_factory=list, alias="ordersCancelled")
    orders_filled: List[Dict[str, Any]] = Field(default_factory=list, alias="ordersFilled")
    orders_triggered: List[Dict[str, Any]] = Field(default_factory=list, alias="ordersTriggered")
    trades_opened: List[Dict[str, Any]] = Field(default_factory=list, alias="tradesOpened")
    trades_reduced: List[Dict[str, Any]] = Field(default_factory=list, alias="tradesReduced")
    trades_closed: List[Dict[str, Any]] = Field(default_factory=list, alias="tradesClosed")
    positions: List[Dict[str, Any]] = Field(default_factory=list)
    transactions: List[Dict[str, Any]] = Field(default_factory=list)


class AccountChangeState(BaseModel):
    """Price-dependent account values as of the changes response."""
    model_config = ConfigDict(populate_by_name=True)

    nav: Optional[str] = Field(default=None, alias="NAV")
    unrealized_pl: Optional[str] = Field(default=None, alias="unrealizedPL")
    margin_used: Optional[str] = Field(default=None, alias="marginUsed")
    margin_available: Optional[str] = Field(default=None, alias="marginAvailable")
    position_value: Optional[str] = Field(default=None, alias="positionValue")
    margin_closeout_percent: Optional[str] = Field(default=None, alias="marginCloseoutPercent")
    orders: List[Dict[str, Any]] = Field(default_factory=list)
    trades: List[Dict[str, Any]] = Field(default_factory=list)
    positions: List[Dict[str, Any]] = Field(default_factory=list)


class AccountChanges(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    changes: AccountChangeSet = Field(default_factory=AccountChangeSet)
    state: AccountChangeState = Field(default_factory=AccountChangeState)
    last_transaction_id: str = Field(alias="lastTransactionID")
