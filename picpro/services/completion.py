"""Completion detection over an order's generation jobs.

Pure functions: callers load the jobs and act on the verdict.
"""
import enum
from collections import Counter
from picpro.models import GenerationJob


class Completion(enum.Enum):
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


def _status(job):
    return job["status"] if isinstance(job, dict) else job.status


def evaluate(jobs):
    """An order is complete once it has jobs and every one is terminal.

    An empty job list is never complete, even though every one of its
    (zero) members is terminal. A set of jobs that all failed is complete.
    """
    statuses = [_status(job) for job in jobs]
    if not statuses:
        return Completion.INCOMPLETE
    if all(status in GenerationJob.TERMINAL_STATUSES for status in statuses):
        return Completion.COMPLETE
    return Completion.INCOMPLETE


def is_complete(jobs):
    return evaluate(jobs) is Completion.COMPLETE


def summarize(jobs):
    counts = Counter(_status(job) for job in jobs)
    return {
        "total": sum(counts.values()),
        "pending": counts[GenerationJob.PENDING],
        "processing": counts[GenerationJob.PROCESSING],
        "completed": counts[GenerationJob.COMPLETED],
        "failed": counts[GenerationJob.FAILED],
    }
