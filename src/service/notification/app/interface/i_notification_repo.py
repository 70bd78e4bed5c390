from abc import ABC, abstractmethod
from typing import Optional

from uuid_utils import UUID

from src.service.notification.domain.entity.notification_entity import Notification


class INotificationRepo(ABC):
    """notifications access, bound to the unit-of-work connection"""

    @abstractmethod
    async def insert(self, *, notification: Notification) -> Notification:
        """Returns the row with its generated id"""
        pass

    @abstractmethod
    async def set_external_job_id(self, *, notification_id: int, external_job_id: str) -> None:
        pass

    @abstractmethod
    async def find_by_id(self, *, notification_id: int) -> Optional[Notification]:
        pass

    @abstractmethod
    async def find_by_job_id(self, *, job_id: UUID) -> Optional[Notification]:
        pass

    @abstractmethod
    async def lock_by_id(self, *, notification_id: int) -> Optional[Notification]:
        """SELECT ... FOR UPDATE"""
        pass

    @abstractmethod
    async def lock_by_external_job_id(self, *, external_job_id: str) -> Optional[Notification]:
        """SELECT ... FOR UPDATE by the queue job id stored at dispatch"""
        pass

    @abstractmethod
    async def update(self, *, notification: Notification) -> Notification:
        """Persist counters, state, last_error and finished_at"""
        pass
