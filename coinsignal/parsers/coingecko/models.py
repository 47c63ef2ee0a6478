from decimal import Decimal

from pydantic import BaseModel


class CoinGeckoSearchCoin(BaseModel):
    id: str
    name: str = ""
    symbol: str = ""
    market_cap_rank: int | None = None
    thumb: str | None = None

    model_config = {"extra": "ignore"}


class CoinGeckoMarket(BaseModel):
    id: str
    symbol: str = ""
    name: str = ""
    current_price: Decimal | None = None
    market_cap: Decimal | None = None
    fully_diluted_valuation: Decimal | None = None
    total_volume: Decimal | None = None
    price_change_percentage_24h: Decimal | None = None

    model_config = {"extra": "ignore"}


class CoinGeckoCoin(BaseModel):
    id: str
    symbol: str = ""
    name: str = ""

    model_config = {"extra": "ignore"}
