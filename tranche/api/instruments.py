"""CRUD API for instruments, plus cycle settle / reopen."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from tranche.api.deps import http_error
from tranche.database import get_session
from tranche.exceptions import TrancheError
from tranche.schemas.instrument import InstrumentCreate, InstrumentRead, InstrumentUpdate
from tranche.schemas.settlement import ReopenRequest, SettlementRead
from tranche.services import instruments as instrument_service
from tranche.services import settlement as settlement_service
from tranche.utils.constants import SUPPORTED_SYMBOLS, VALID_VARIANTS, preset_for

router = APIRouter(prefix="/api/instruments", tags=["instruments"])


@router.get("", response_model=list[InstrumentRead])
def list_instruments(
    active: bool | None = None,
    symbol: str | None = None,
    session: Session = Depends(get_session),
):
    return instrument_service.list_instruments(session, active=active, symbol=symbol)


@router.get("/presets")
def list_presets(symbol: str = "TQQQ"):
    """Default parameters per variant, plus the symbols offered in the picker."""
    return {
        "symbols": SUPPORTED_SYMBOLS,
        "variants": {variant: preset_for(symbol, variant) for variant in VALID_VARIANTS},
    }


@router.post("", response_model=InstrumentRead, status_code=201)
def create_instrument(
    data: InstrumentCreate,
    session: Session = Depends(get_session),
):
    return instrument_service.create_instrument(session, data)


@router.get("/{instrument_id}", response_model=InstrumentRead)
def get_instrument(instrument_id: int, session: Session = Depends(get_session)):
    try:
        return instrument_service.get_instrument(session, instrument_id)
    except TrancheError as e:
        raise http_error(e)


@router.put("/{instrument_id}", response_model=InstrumentRead)
def update_instrument(
    instrument_id: int,
    data: InstrumentUpdate,
    session: Session = Depends(get_session),
):
    try:
        return instrument_service.update_instrument(session, instrument_id, data)
    except TrancheError as e:
        raise http_error(e)


@router.delete("/{instrument_id}", status_code=204)
def delete_instrument(instrument_id: int, session: Session = Depends(get_session)):
    try:
        instrument_service.delete_instrument(session, instrument_id)
    except TrancheError as e:
        raise http_error(e)


@router.post("/{instrument_id}/settle", response_model=SettlementRead, status_code=201)
def settle_instrument(instrument_id: int, session: Session = Depends(get_session)):
    """Close the open cycle: snapshot totals, mark trades settled, deactivate."""
    try:
        return settlement_service.settle_instrument(session, instrument_id)
    except TrancheError as e:
        raise http_error(e)


@router.post("/{instrument_id}/reopen", response_model=InstrumentRead)
def reopen_instrument(
    instrument_id: int,
    body: ReopenRequest | None = None,
    session: Session = Depends(get_session),
):
    try:
        return settlement_service.reopen_instrument(
            session, instrument_id, start_date=body.start_date if body else None
        )
    except TrancheError as e:
        raise http_error(e)
