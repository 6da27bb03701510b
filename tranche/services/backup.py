"""JSON backup export and import.

Instruments are numbered 1..n in the export and trades/settlements point at
those numbers through `stockId`; import maps them onto freshly assigned ids.
A document without a `version` aborts the import; a single malformed record is
skipped and reported without aborting the rest.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError
from sqlmodel import Session, select

from tranche.exceptions import BackupFormatError
from tranche.models.instrument import Instrument
from tranche.models.settlement import Settlement
from tranche.models.trade import Trade
from tranche.schemas.backup import (
    BackupDocument,
    BackupInstrument,
    BackupSettlement,
    BackupTrade,
    format_backup_date,
)
from tranche.services import strategy_engine
from tranche.utils.constants import BACKUP_APP_NAME, BACKUP_FORMAT_VERSION
from tranche.utils.timeutils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SkippedRecord:
    section: str  # "stocks", "trades", "settlements"
    index: int
    reason: str


@dataclass
class ImportResult:
    instruments: int = 0
    trades: int = 0
    settlements: int = 0
    skipped: list[SkippedRecord] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def export_backup(session: Session) -> dict[str, Any]:
    instruments = session.exec(select(Instrument).order_by(Instrument.created_at)).all()
    trades = session.exec(select(Trade).order_by(Trade.trade_date)).all()
    settlements = session.exec(select(Settlement).order_by(Settlement.created_at)).all()

    export_ids = {inst.id: index + 1 for index, inst in enumerate(instruments)}

    return {
        "version": BACKUP_FORMAT_VERSION,
        "appName": BACKUP_APP_NAME,
        "exportedAt": format_backup_date(utc_now()),
        "stocks": [
            {
                "id": export_ids[inst.id],
                "symbol": inst.symbol,
                "nickname": inst.label,
                "version": inst.variant,
                "seedMoney": inst.seed_amount,
                "divisions": inst.tranches,
                "sellTargetPercent": inst.sell_target_pct,
                "compoundRate": inst.compound_pct,
                "currentBuyAmount": inst.per_trade_amount,
                "accumulatedProfit": inst.accumulated_profit,
                "startDate": format_backup_date(inst.start_date),
                "isActive": inst.is_active,
                "createdAt": format_backup_date(inst.created_at),
            }
            for inst in instruments
        ],
        "trades": [
            {
                "id": index + 1,
                "stockId": export_ids.get(trade.instrument_id, 0),
                "tradeDate": format_backup_date(trade.trade_date),
                "tradeType": trade.side,
                "orderType": trade.order_style,
                "price": trade.price,
                "quantity": trade.quantity,
                "fee": trade.fee,
                "amount": trade.amount,
                "isSettlement": trade.is_settled,
                "createdAt": format_backup_date(trade.created_at),
            }
            for index, trade in enumerate(trades)
        ],
        "settlements": [
            {
                "id": index + 1,
                "stockId": export_ids.get(s.instrument_id, 0) if s.instrument_id else 0,
                "symbol": s.symbol,
                "nickname": s.label,
                "version": s.variant,
                "startDate": format_backup_date(s.start_date),
                "endDate": format_backup_date(s.end_date),
                "seedMoney": s.seed_amount,
                "divisions": s.tranches,
                "buyAmountPerTrade": s.per_trade_amount,
                "totalBuyAmount": s.total_buy_amount,
                "totalSellAmount": s.total_sell_amount,
                "totalFee": s.total_fee,
                "profit": s.profit,
                "profitRate": s.profit_rate,
                "buyCount": s.buy_count,
                "sellCount": s.sell_count,
                "tradingDays": s.trading_days,
                "seedUsageRate": s.seed_usage_rate,
                "createdAt": format_backup_date(s.created_at),
            }
            for index, s in enumerate(settlements)
        ],
    }


def dumps_backup(session: Session) -> str:
    return json.dumps(export_backup(session), indent=2, sort_keys=True, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def _load_document(payload: dict | str | bytes) -> BackupDocument:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise BackupFormatError(f"Invalid backup file: {e}") from e
    if not isinstance(payload, dict):
        raise BackupFormatError("Invalid backup file: top level must be an object")
    try:
        return BackupDocument.model_validate(payload)
    except ValidationError as e:
        raise BackupFormatError(f"Invalid backup file: {e.errors()[0]['msg']}") from e


def _reason(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return f"{location}: {first.get('msg', 'invalid')}"


def import_backup(session: Session, payload: dict | str | bytes) -> ImportResult:
    """Add every valid record of a backup document to the database."""
    document = _load_document(payload)
    result = ImportResult()
    id_map: dict[int, int] = {}

    try:
        for index, raw in enumerate(document.stocks):
            try:
                record = BackupInstrument.model_validate(raw)
            except ValidationError as e:
                result.skipped.append(SkippedRecord("stocks", index, _reason(e)))
                continue
            if record.id in id_map:
                result.skipped.append(SkippedRecord("stocks", index, f"duplicate id {record.id}"))
                continue

            floor = strategy_engine.initial_per_trade_amount(record.seed_amount, record.tranches)
            instrument = Instrument(
                symbol=record.symbol,
                label=record.label,
                variant=record.variant,
                seed_amount=record.seed_amount,
                tranches=record.tranches,
                sell_target_pct=record.sell_target_pct,
                compound_pct=record.compound_pct,
                per_trade_amount=max(record.per_trade_amount or floor, floor),
                accumulated_profit=record.accumulated_profit,
                start_date=record.start_date,
                is_active=record.is_active,
                created_at=record.created_at,
            )
            session.add(instrument)
            session.flush()
            id_map[record.id] = instrument.id
            result.instruments += 1

        for index, raw in enumerate(document.trades):
            try:
                record = BackupTrade.model_validate(raw)
            except ValidationError as e:
                result.skipped.append(SkippedRecord("trades", index, _reason(e)))
                continue
            instrument_id = id_map.get(record.instrument_ref)
            if instrument_id is None:
                result.skipped.append(
                    SkippedRecord("trades", index, f"unknown stockId {record.instrument_ref}")
                )
                continue

            session.add(Trade(
                instrument_id=instrument_id,
                side=record.side,
                order_style=record.order_style,
                trade_date=record.trade_date,
                price=record.price,
                quantity=record.quantity,
                fee=record.fee,
                amount=record.price * record.quantity,
                is_settled=record.is_settled,
                created_at=record.created_at,
            ))
            result.trades += 1

        for index, raw in enumerate(document.settlements):
            try:
                record = BackupSettlement.model_validate(raw)
            except ValidationError as e:
                result.skipped.append(SkippedRecord("settlements", index, _reason(e)))
                continue

            session.add(Settlement(
                instrument_id=id_map.get(record.instrument_ref) if record.instrument_ref else None,
                **record.model_dump(exclude={"instrument_ref"}),
            ))
            result.settlements += 1

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Imported backup v{document.version}: {result.instruments} instruments, "
        f"{result.trades} trades, {result.settlements} settlements, "
        f"{len(result.skipped)} skipped"
    )
    return result
