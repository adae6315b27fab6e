"""
taskledger - task relationship graph and time-tracking ledger

Usage:
    from taskledger.services import time_ledger
    from taskledger.core.config import settings
"""

__version__ = "1.0.0"  # Application version
