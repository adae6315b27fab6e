"""
Utilities Package - Helper functions and tools

This package contains:
- event_logger.py: activity event recording and subscriber dispatch
"""

from taskledger.utils.event_logger import (
    DomainEvent,
    diff_fields,
    record_event,
    subscribe,
    unsubscribe,
)

__all__ = [
    "DomainEvent",
    "diff_fields",
    "record_event",
    "subscribe",
    "unsubscribe",
]
