from enum import StrEnum


class QueueName(StrEnum):
    TICKET_GENERATION = 'ticket_generation_queue'
    TICKET_GENERATION_RESULT = 'ticket_generation_result_queue'
    NOTIFICATION = 'notification_queue'
    NOTIFICATION_RESULT = 'notification_result_queue'
