"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.notification.app.query import get_notification_use_case
from src.service.ticket_generation.app.command import (
    cancel_generation_job_use_case,
    submit_generation_job_use_case,
)
from src.service.ticket_generation.app.query import (
    get_generation_job_status_use_case,
    list_event_generation_jobs_use_case,
)


WIRE_MODULES: list[ModuleType] = [
    submit_generation_job_use_case,
    cancel_generation_job_use_case,
    get_generation_job_status_use_case,
    list_event_generation_jobs_use_case,
    get_notification_use_case,
]
