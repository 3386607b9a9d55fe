"""
Predictive router: goal completion, workload forecasts, bottlenecks and
productivity insights.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from taskquest.auth.dependencies import get_current_user_id
from taskquest.config import get_settings
from taskquest.models.requests import WorkloadForecastRequest
from taskquest.services.predictive import PredictiveAnalyticsService
from taskquest.storage import RecordNotFoundError, get_storage
from taskquest.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _service(user_id: str) -> PredictiveAnalyticsService:
    settings = get_settings()
    return PredictiveAnalyticsService(
        get_storage(),
        user_id,
        lookback_days=settings.analytics_lookback_days,
        forecast_lookback_days=settings.forecast_lookback_days,
        trend_tolerance=settings.trend_tolerance,
    )


@router.get("/goals/{goal_id}")
async def predict_goal(goal_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        prediction = _service(user_id).predict_goal_completion(goal_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": prediction}


@router.post("/workload")
async def forecast_workload(
    request: WorkloadForecastRequest,
    user_id: str = Depends(get_current_user_id),
):
    forecast = _service(user_id).generate_workload_forecast(
        request.period_type,
        request.periods_ahead,
        request.external_factors,
    )
    logger.info("workload_forecast_served", period_type=request.period_type.value)
    return {"success": True, "data": forecast}


@router.post("/bottlenecks")
async def analyze_bottlenecks(
    user_id: str = Depends(get_current_user_id),
    days: int = Query(30, ge=7, le=365),
):
    bottlenecks = _service(user_id).analyze_bottlenecks(days)
    return {"success": True, "data": {"bottlenecks": bottlenecks, "count": len(bottlenecks)}}


@router.get("/insights")
async def get_productivity_insights(user_id: str = Depends(get_current_user_id)):
    insights = await _service(user_id).get_productivity_insights()
    return {"success": True, "data": insights}
