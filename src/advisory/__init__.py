"""
Advisory Workflow - coordinates the accountant's review of a tax analysis.

Main exports:
    AdvisoryWorkflow: request / assign / review / cancel state machine
    REVIEW_NOTIFICATION_TYPE: notification type sent when a parecer is ready
"""

from .workflow import (
    AdvisoryWorkflow,
    REVIEW_NOTIFICATION_TITLE,
    REVIEW_NOTIFICATION_TYPE,
)

__all__ = [
    "AdvisoryWorkflow",
    "REVIEW_NOTIFICATION_TITLE",
    "REVIEW_NOTIFICATION_TYPE",
]
