"""
Reports router: completed-task reports and CSV export.
"""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from taskquest.auth.dependencies import get_current_user_id
from taskquest.models.enums import Granularity
from taskquest.services.reports import ReportService
from taskquest.storage import get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _build(
    user_id: str,
    date_from: Optional[date],
    date_to: Optional[date],
    timeframe: Granularity,
    complexity: Optional[str],
) -> dict:
    start = datetime.combine(date_from, datetime.min.time()) if date_from else None
    end = datetime.combine(date_to, datetime.min.time()) if date_to else None
    if start and end and start > end:
        raise HTTPException(status_code=422, detail="date_from must not be after date_to")
    return ReportService(get_storage(), user_id).build_report(
        date_from=start,
        date_to=end,
        timeframe=timeframe,
        complexity=complexity,
    )


@router.get("")
async def get_report(
    user_id: str = Depends(get_current_user_id),
    date_from: Optional[date] = Query(None, description="First day, defaults to 30 days before date_to"),
    date_to: Optional[date] = Query(None, description="Last day (inclusive), defaults to today"),
    timeframe: Granularity = Query(Granularity.DAILY),
    complexity: Optional[str] = Query(None, description="Complexity filter, 'all' for every task"),
):
    report = _build(user_id, date_from, date_to, timeframe, complexity)
    logger.info("report_served", timeframe=timeframe.value, buckets=len(report["buckets"]))
    return {"success": True, "data": report}


@router.get("/export.csv")
async def export_report_csv(
    user_id: str = Depends(get_current_user_id),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    timeframe: Granularity = Query(Granularity.DAILY),
    complexity: Optional[str] = Query(None),
):
    """Same report as ``GET /reports`` rendered as CSV."""
    report = _build(user_id, date_from, date_to, timeframe, complexity)
    content = ReportService.export_csv(report)
    filename = f"taskquest-report-{timeframe.value}.csv"
    logger.info("report_exported", timeframe=timeframe.value, rows=len(report["buckets"]))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
