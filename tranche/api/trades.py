"""Trade journal API."""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlmodel import Session

from tranche.api.deps import http_error
from tranche.database import get_session
from tranche.exceptions import TrancheError
from tranche.schemas.trade import TradeCreate, TradeRead, TradeUpdate
from tranche.services import trade_book

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("", response_model=list[TradeRead])
def list_trades(
    instrument_id: int | None = None,
    settled: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    return trade_book.list_trades(
        session,
        instrument_id=instrument_id,
        settled=settled,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=TradeRead, status_code=201)
def record_trade(
    instrument_id: int,
    data: TradeCreate,
    session: Session = Depends(get_session),
):
    try:
        return trade_book.record_trade(session, instrument_id, data)
    except TrancheError as e:
        raise http_error(e)


@router.put("/{trade_id}", response_model=TradeRead)
def correct_trade(
    trade_id: int,
    data: TradeUpdate,
    session: Session = Depends(get_session),
):
    try:
        return trade_book.correct_trade(session, trade_id, data)
    except TrancheError as e:
        raise http_error(e)


@router.delete("/{trade_id}", status_code=204)
def delete_trade(trade_id: int, session: Session = Depends(get_session)):
    try:
        trade_book.delete_trade(session, trade_id)
    except TrancheError as e:
        raise http_error(e)
