"""API routes - health and schedule"""

from fastapi import APIRouter, Depends

from core import __version__
from web.models.operations import ScheduleModel
from web.services import ScheduleConfig, get_operation_runner, get_scheduler_service

router = APIRouter()


@router.get("/health")
def health_check(
    scheduler_service=Depends(get_scheduler_service),
    operation_runner=Depends(get_operation_runner),
):
    """
    Health check endpoint for container monitoring.

    Used by Docker HEALTHCHECK and external monitoring tools.
    """
    schedule_status = scheduler_service.get_status()

    return {
        "status": "healthy",
        "version": __version__,
        "scheduler_running": schedule_status.get("running", False),
        "operation_running": operation_runner.is_running,
    }


@router.get("/schedule")
def get_schedule_status(scheduler_service=Depends(get_scheduler_service)):
    """Get current scheduler status (JSON for polling)"""
    return scheduler_service.get_status()


@router.post("/schedule")
def save_schedule(schedule: ScheduleModel, scheduler_service=Depends(get_scheduler_service)):
    """Save schedule settings"""
    config = ScheduleConfig(
        enabled=schedule.enabled,
        schedule_type=schedule.schedule_type,
        interval_hours=schedule.interval_hours,
        cron_expression=schedule.cron_expression,
        verbose=schedule.verbose,
    )
    return scheduler_service.update_config(config)


@router.get("/schedule/validate-cron")
def validate_cron_expression(expression: str, scheduler_service=Depends(get_scheduler_service)):
    """Validate a cron expression (JSON)"""
    return scheduler_service.validate_cron(expression)
