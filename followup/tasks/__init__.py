"""Scheduled tasks for the follow-up engine.

This package contains scheduled jobs that run periodically to handle:
- Firing scheduled dispatches on their send date
- The single follow-up reminder
- Expiry of unanswered dispatches
"""

from followup.tasks.followup_jobs import run_followup_task, run_jobs

__all__ = [
    "run_followup_task",
    "run_jobs",
]
