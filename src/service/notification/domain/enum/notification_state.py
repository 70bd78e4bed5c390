from enum import StrEnum


class NotificationState(StrEnum):
    PENDING = 'pending'
    SENT = 'sent'
    PARTIAL = 'partial'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self is not NotificationState.PENDING


class NotificationKind(StrEnum):
    TICKET_GENERATION_COMPLETE = 'ticket_generation_complete'


class NotificationChannel(StrEnum):
    EMAIL = 'email'
    SMS = 'sms'
    PUSH = 'push'
