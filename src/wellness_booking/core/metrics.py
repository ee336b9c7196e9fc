"""
Prometheus metrics for monitoring
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
import time
from functools import wraps
import logging

logger = logging.getLogger(__name__)

# ==================== HTTP Metrics ====================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# ==================== Booking Metrics ====================

bookings_cancelled_total = Counter(
    'bookings_cancelled_total',
    'Booking cancellation attempts by outcome',
    ['cancelled_by', 'outcome']  # outcome: success or an error code
)

seats_released_total = Counter(
    'seats_released_total',
    'Seats returned to event capacity'
)

credits_refunded_total = Counter(
    'credits_refunded_total',
    'Credits refunded on cancellation'
)

# ==================== Waitlist Metrics ====================

waitlist_transitions_total = Counter(
    'waitlist_transitions_total',
    'Waitlist entry state transitions',
    ['to_status']
)

waitlist_reminders_sent_total = Counter(
    'waitlist_reminders_sent_total',
    'Waitlist offer reminders sent'
)

waitlist_sweep_duration_seconds = Histogram(
    'waitlist_sweep_duration_seconds',
    'Time to process expired waitlist offers',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0]
)

# ==================== Notification Metrics ====================

emails_sent_total = Counter(
    'emails_sent_total',
    'Emails dispatched by template and result',
    ['template', 'result']
)


# ==================== Helper Functions ====================

def track_time(metric: Histogram):
    """Decorator to track execution time of a coroutine"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                metric.observe(time.time() - start_time)
        return wrapper
    return decorator


def record_waitlist_transition(to_status: str, count: int = 1):
    if count:
        waitlist_transitions_total.labels(to_status=to_status).inc(count)


def record_cancellation(cancelled_by: str, outcome: str):
    bookings_cancelled_total.labels(cancelled_by=cancelled_by, outcome=outcome).inc()


def get_metrics():
    """Get current metrics in Prometheus format"""
    return generate_latest()


