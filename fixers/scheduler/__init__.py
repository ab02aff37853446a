"""Background jobs."""

from fixers.scheduler.jobs import create_scheduler

__all__ = ["create_scheduler"]
