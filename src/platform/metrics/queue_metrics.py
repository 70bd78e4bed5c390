from prometheus_client import Counter, Gauge, Histogram


class QueueMetrics:
    """
    Queue worker and reconciliation metrics

    Tracks per-queue delivery outcomes and the ticket / notification state
    changes the consumers apply.
    """

    def __init__(self):
        # ========== Queue Worker Metrics ==========
        self.messages_processed = Counter(
            'queue_messages_processed_total',
            'Messages handled successfully',
            ['queue'],
        )

        self.messages_retried = Counter(
            'queue_messages_retried_total',
            'Messages scheduled for another delivery after a handler failure',
            ['queue', 'error_type'],
        )

        self.messages_dead_lettered = Counter(
            'queue_messages_dead_lettered_total',
            'Messages moved to the dead-letter state',
            ['queue', 'error_type'],
        )

        self.handler_duration = Histogram(
            'queue_handler_duration_seconds',
            'Handler execution time per delivery',
            ['queue'],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
        )

        self.in_flight = Gauge(
            'queue_handlers_in_flight',
            'Deliveries currently being handled',
            ['queue'],
        )

        # ========== Reconciliation Metrics ==========
        self.tickets_reconciled = Counter(
            'tickets_reconciled_total',
            'Ticket rows changed by render results',
            ['outcome'],  # rendered / failed
        )

        self.jobs_finished = Counter(
            'generation_jobs_finished_total',
            'Generation jobs reaching a terminal state',
            ['state'],
        )

        self.notifications_finished = Counter(
            'notifications_finished_total',
            'Notifications reaching a terminal state',
            ['state'],
        )

    # ========== Helper Methods ==========

    def record_processed(self, *, queue: str, duration: float) -> None:
        self.messages_processed.labels(queue=queue).inc()
        self.handler_duration.labels(queue=queue).observe(duration)

    def record_failure(
        self, *, queue: str, error_type: str, dead_lettered: bool, duration: float
    ) -> None:
        counter = self.messages_dead_lettered if dead_lettered else self.messages_retried
        counter.labels(queue=queue, error_type=error_type).inc()
        self.handler_duration.labels(queue=queue).observe(duration)

    def record_tickets(self, *, rendered: int, failed: int) -> None:
        if rendered:
            self.tickets_reconciled.labels(outcome='rendered').inc(rendered)
        if failed:
            self.tickets_reconciled.labels(outcome='failed').inc(failed)


# Global metrics instance
metrics = QueueMetrics()
