"""Pydantic models for operations"""

from pydantic import BaseModel


class RunRequestModel(BaseModel):
    """Request to start a cleanup run"""
    verbose: bool = False


class ScheduleModel(BaseModel):
    """Schedule settings"""
    enabled: bool = True
    schedule_type: str = "cron"
    interval_hours: int = 24
    cron_expression: str = "0 3 * * *"
    verbose: bool = False
