"""
Background Jobs Module

Handles scheduled tasks for:
- Order auto-delivery
"""

from app.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status
from app.jobs.order_jobs import auto_deliver_shipped_orders

__all__ = [
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
    "auto_deliver_shipped_orders",
]
