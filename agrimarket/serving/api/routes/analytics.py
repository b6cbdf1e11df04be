"""
Analytics API Endpoints

Dashboard report for the admin back office.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from agrimarket.analytics import (
    DateWindow,
    EventSource,
    InvalidDateRangeError,
    OrderReader,
    PostHogEventSource,
    ReportAssembler,
    ReportPayload,
    SqlOrderReader,
)
from agrimarket.config import get_settings
from agrimarket.database.connection import get_db_dependency

router = APIRouter()
logger = structlog.get_logger(__name__)
settings = get_settings()


class ReportRequest(BaseModel):
    """Requested reporting window, inclusive on both ends"""
    start_date: date
    end_date: date


def get_event_source() -> EventSource:
    return PostHogEventSource()


async def get_order_reader(db: AsyncSession = Depends(get_db_dependency)) -> OrderReader:
    return SqlOrderReader(db)


def get_report_assembler(
    event_source: EventSource = Depends(get_event_source),
    order_reader: OrderReader = Depends(get_order_reader),
) -> ReportAssembler:
    return ReportAssembler(event_source, order_reader)


@router.get("", response_model=ReportPayload)
async def get_report(
    assembler: ReportAssembler = Depends(get_report_assembler),
) -> ReportPayload:
    """
    Report for the default window (the last `ANALYTICS_DEFAULT_WINDOW_DAYS` days).
    """
    window = DateWindow.last_days(settings.analytics.default_window_days)
    logger.info("get_report called", window=str(window))
    return await assembler.build(window)


@router.post("", response_model=ReportPayload)
async def post_report(
    request: ReportRequest,
    assembler: ReportAssembler = Depends(get_report_assembler),
) -> ReportPayload:
    """
    Report for an explicit window. Start after end is rejected with 400.
    """
    try:
        window = DateWindow(start=request.start_date, end=request.end_date)
    except InvalidDateRangeError as e:
        logger.warning("Rejected report window", start_date=str(e.start), end_date=str(e.end))
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("post_report called", window=str(window))
    return await assembler.build(window)
