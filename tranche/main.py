"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tranche.config import settings
from tranche.database import create_db_and_tables
from tranche.utils.logging import setup_logging
from tranche.api import instruments, trades, settlements, portfolio, prices, backup, system
from tranche.services.trading_calendar import market_calendar

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()

    coverage = market_calendar.coverage()
    if not coverage["current_year"] or not coverage["next_year"]:
        logger.warning(
            f"Holiday table covers {coverage['years']}; "
            "missing years fall back to weekday-only trading days"
        )

    yield


app = FastAPI(
    title="Tranche Tracker",
    description="Staged-accumulation tracker for leveraged ETFs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(instruments.router)
app.include_router(trades.router)
app.include_router(settlements.router)
app.include_router(portfolio.router)
app.include_router(prices.router)
app.include_router(backup.router)
app.include_router(system.router)
