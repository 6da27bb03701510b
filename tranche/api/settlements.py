"""Settlement history API."""

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from tranche.database import get_session
from tranche.models.settlement import Settlement
from tranche.schemas.settlement import SettlementRead
from tranche.services import settlement as settlement_service

router = APIRouter(prefix="/api/settlements", tags=["settlements"])


@router.get("", response_model=list[SettlementRead])
def list_settlements(
    instrument_id: int | None = None,
    symbol: str | None = None,
    session: Session = Depends(get_session),
):
    return settlement_service.list_settlements(session, instrument_id=instrument_id, symbol=symbol)


@router.get("/{settlement_id}", response_model=SettlementRead)
def get_settlement(settlement_id: int, session: Session = Depends(get_session)):
    settlement = session.get(Settlement, settlement_id)
    if not settlement:
        raise HTTPException(status_code=404, detail="Settlement not found")
    return settlement
