"""Business logic services"""

from web.services.operation_runner import OperationRunner, OperationState, get_operation_runner
from web.services.scheduler_service import SchedulerService, ScheduleConfig, get_scheduler_service
from web.services.review_service import ReviewService

__all__ = [
    "OperationRunner",
    "OperationState",
    "get_operation_runner",
    "SchedulerService",
    "ScheduleConfig",
    "get_scheduler_service",
    "ReviewService",
]
