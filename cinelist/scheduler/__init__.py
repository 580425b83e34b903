"""Scheduling adapters."""

from .apsched_adapter import HARVEST_JOB_ID, SYNC_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "HARVEST_JOB_ID", "SYNC_JOB_ID"]
