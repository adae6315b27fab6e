"""
Core Package - Configuration, errors, identity and security

IMPORTANT: Only import config and security here.
Dependencies must be imported directly to avoid circular imports.
"""

from taskledger.core.config import settings, get_settings
from taskledger.core.security import create_access_token, decode_token

__all__ = [
    "settings",
    "get_settings",
    "create_access_token",
    "decode_token",
]
