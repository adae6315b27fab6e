"""
API Package - Exports all API routers
"""

from taskledger.api import tasks, task_dependencies, time_logs, productivity, events

__all__ = ["tasks", "task_dependencies", "time_logs", "productivity", "events"]
