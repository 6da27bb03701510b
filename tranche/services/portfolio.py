"""Per-instrument summaries and the portfolio roll-up.

Everything here is derived on demand from the instrument configuration, its
unsettled trades and the cached close; nothing is stored.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlmodel import Session, select

from tranche.models.instrument import Instrument
from tranche.models.price_cache import PriceCacheEntry
from tranche.services import position_ledger, price_cache, strategy_engine
from tranche.services.quote_source import QuoteSource
from tranche.services.trade_book import open_trades
from tranche.services.trading_calendar import TradingCalendar
from tranche.utils.timeutils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SummaryOptions:
    include_fee: bool = False  # fold buy fees into the cost basis used for unrealized P&L


@dataclass
class InstrumentSummary:
    instrument_id: int
    symbol: str
    display_name: str
    variant: str
    seed_amount: float
    tranches: int
    per_trade_amount: float
    sell_target_pct: float
    accumulated_profit: float

    # Price
    current_price: float
    close_date: datetime | None
    rsi: float | None
    rsi_recommend: float | None
    price_is_stale: bool

    # Holdings
    total_quantity: int
    bought_amount: float
    avg_cost: float
    holding_cost: float
    cost_basis: float  # holding_cost, or break-even cost with include_fee
    realized_profit: float
    valuation: float
    unrealized_profit: float
    unrealized_profit_rate: float

    # Strategy
    stage: float
    star_percent: float
    is_first_half: bool
    is_quarter_mode: bool
    regime: str
    buy_orders: list[strategy_engine.OrderGuide] = field(default_factory=list)
    sell_orders: list[strategy_engine.OrderGuide] = field(default_factory=list)


@dataclass
class PortfolioSummary:
    instruments: list[InstrumentSummary]
    total_holding_cost: float
    total_valuation: float
    total_unrealized_profit: float
    total_realized_profit: float
    total_profit_rate: float
    updated_at: datetime


def build_instrument_summary(
    instrument: Instrument,
    trades,
    price: PriceCacheEntry | None,
    options: SummaryOptions | None = None,
    price_is_stale: bool = False,
) -> InstrumentSummary:
    options = options or SummaryOptions()
    agg = position_ledger.aggregate(trades)
    current_price = price.close_price if price else 0.0

    cost_basis = agg.holding_cost
    if options.include_fee:
        cost_basis = agg.break_even_price * agg.current_qty

    valuation = agg.current_qty * current_price
    unrealized = valuation - cost_basis
    unrealized_rate = unrealized / cost_basis * 100 if cost_basis > 0 else 0.0

    stage = strategy_engine.stage_metric(agg.holding_cost, instrument.per_trade_amount)
    state = strategy_engine.PositionState(
        avg_cost=agg.avg_cost,
        total_quantity=agg.current_qty,
        per_trade_amount=instrument.per_trade_amount,
        sell_target_pct=instrument.sell_target_pct,
        tranches=instrument.tranches,
        stage=stage,
    )

    return InstrumentSummary(
        instrument_id=instrument.id,
        symbol=instrument.symbol,
        display_name=instrument.display_name,
        variant=instrument.variant,
        seed_amount=instrument.seed_amount,
        tranches=instrument.tranches,
        per_trade_amount=instrument.per_trade_amount,
        sell_target_pct=instrument.sell_target_pct,
        accumulated_profit=instrument.accumulated_profit,
        current_price=current_price,
        close_date=price.close_date if price else None,
        rsi=price.rsi if price else None,
        rsi_recommend=price.rsi_recommend if price else None,
        price_is_stale=price_is_stale,
        total_quantity=agg.current_qty,
        bought_amount=agg.bought_amount,
        avg_cost=agg.avg_cost,
        holding_cost=agg.holding_cost,
        cost_basis=cost_basis,
        realized_profit=agg.realized_profit,
        valuation=valuation,
        unrealized_profit=unrealized,
        unrealized_profit_rate=unrealized_rate,
        stage=stage,
        star_percent=state.star_percent,
        is_first_half=state.is_first_half,
        is_quarter_mode=state.is_quarter_mode,
        regime=strategy_engine.regime_label(stage, instrument.tranches),
        buy_orders=strategy_engine.buy_guide(state),
        sell_orders=strategy_engine.sell_guide(state),
    )


def build_portfolio(
    summaries: list[InstrumentSummary],
    updated_at: datetime | None = None,
) -> PortfolioSummary:
    total_cost = sum(s.cost_basis for s in summaries)
    total_unrealized = sum(s.unrealized_profit for s in summaries)
    return PortfolioSummary(
        instruments=summaries,
        total_holding_cost=total_cost,
        total_valuation=sum(s.valuation for s in summaries),
        total_unrealized_profit=total_unrealized,
        total_realized_profit=sum(s.realized_profit for s in summaries),
        total_profit_rate=total_unrealized / total_cost * 100 if total_cost > 0 else 0.0,
        updated_at=updated_at or utc_now(),
    )


def summarize_active(
    session: Session,
    options: SummaryOptions | None = None,
    calendar: TradingCalendar | None = None,
    now: datetime | None = None,
) -> PortfolioSummary:
    """Build the portfolio from what is already cached."""
    instruments = session.exec(
        select(Instrument)
        .where(Instrument.is_active == True)  # noqa: E712
        .order_by(Instrument.created_at)
    ).all()

    summaries = []
    for instrument in instruments:
        price = price_cache.get_price(session, instrument.symbol)
        summaries.append(build_instrument_summary(
            instrument,
            open_trades(session, instrument.id),
            price,
            options,
            price_is_stale=price_cache.is_stale(price, now=now, calendar=calendar),
        ))
    return build_portfolio(summaries)


async def assemble_portfolio(
    bind=None,
    source: QuoteSource | None = None,
    options: SummaryOptions | None = None,
    force: bool = False,
    calendar: TradingCalendar | None = None,
    now: datetime | None = None,
) -> tuple[PortfolioSummary, price_cache.RefreshReport | None]:
    """Refresh missing or stale quotes for active instruments, then summarize.

    Without a quote source the summary is built from the cache as is.
    """
    if bind is None:
        from tranche.database import engine as bind

    report = None
    if source is not None:
        with Session(bind) as session:
            symbols = [
                i.symbol for i in session.exec(
                    select(Instrument).where(Instrument.is_active == True)  # noqa: E712
                ).all()
            ]
        report = await price_cache.refresh_prices(
            symbols, source, bind=bind, force=force, calendar=calendar, now=now
        )
        if report.failed:
            logger.warning(f"Showing cached prices for: {', '.join(sorted(report.failed))}")

    with Session(bind) as session:
        summary = summarize_active(session, options, calendar=calendar, now=now)
    return summary, report
