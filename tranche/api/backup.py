"""Backup API — JSON export and import."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from tranche.api.deps import http_error
from tranche.database import get_session
from tranche.exceptions import TrancheError
from tranche.services import backup as backup_service

router = APIRouter(prefix="/api/backup", tags=["backup"])


@router.get("/export")
def export_backup(session: Session = Depends(get_session)):
    return backup_service.export_backup(session)


@router.post("/import")
def import_backup(
    payload: Any = Body(...),
    session: Session = Depends(get_session),
):
    """Add the records of an exported document; malformed records are skipped and listed."""
    try:
        return backup_service.import_backup(session, payload)
    except TrancheError as e:
        raise http_error(e)
