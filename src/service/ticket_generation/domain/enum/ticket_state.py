from enum import StrEnum


class TicketState(StrEnum):
    PENDING = 'pending'
    RENDERED = 'rendered'
    FAILED = 'failed'


class TicketErrorCode(StrEnum):
    RENDER_FAILED = 'render_failed'
    CANCELLED = 'cancelled'
