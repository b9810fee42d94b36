"""
End-of-invocation decision: schedule another run or report completion
"""
import logging

from interfaces import Notifier, Scheduler
from job_model import Job

logger = logging.getLogger(__name__)

ENTRY_POINT = 'run_invocation'


def build_summary(job: Job) -> str:
    """Plain-text completion report"""
    lines = [
        "Folder replication finished.",
        "",
        f"Folders created: {job.folderCount}",
        f"Files transferred: {job.fileCount}",
        f"Failures: {job.failureCount}",
        f"Elapsed time: {job.elapsed_minutes()} minutes",
        f"Total runtime: {job.totalRuntimeMinutes} minutes over {job.invocations} invocation(s)",
    ]

    if job.failures:
        lines.append("")
        lines.append("Items that could not be replicated:")
        for failure in job.failures:
            lines.append(f"  {failure.name} ({failure.sourceId}): {failure.message}")

    return "\n".join(lines)


class Continuation:
    """Schedules at most one follow-up invocation, or sends the completion notice"""

    def __init__(self, scheduler: Scheduler, notifier: Notifier, recipient: str,
                 delay_seconds: int, entry_point: str = ENTRY_POINT):
        """
        Initialize continuation

        Args:
            scheduler: Scheduler with schedule_after/cancel_all
            notifier: Notifier with send
            recipient: Email address for the completion notice
            delay_seconds: Delay before the next invocation
            entry_point: Name of the function the scheduler re-invokes
        """
        self.scheduler = scheduler
        self.notifier = notifier
        self.recipient = recipient
        self.delay_seconds = delay_seconds
        self.entry_point = entry_point

    def conclude(self, job: Job, completed_now: bool) -> str:
        """
        Decide what follows the invocation

        Args:
            job: Job as saved at the end of the invocation
            completed_now: True if this invocation reached the terminal phase

        Returns:
            'scheduled', 'completed' or 'idle'
        """
        self.scheduler.cancel_all()

        if not job.done:
            self.scheduler.schedule_after(self.entry_point, self.delay_seconds)
            logger.info(f"Work remains at phase {job.phase}; next run in {self.delay_seconds}s")
            return 'scheduled'

        if not completed_now:
            return 'idle'

        subject = (f"Folder replication complete: {job.fileCount} files, "
                   f"{job.failureCount} failures")
        self.notifier.send(self.recipient, subject, build_summary(job))
        return 'completed'
