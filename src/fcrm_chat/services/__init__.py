"""Service layer for fcrm_chat.

This module exports the main service entry points.
"""

from fcrm_chat.services.session_store import SessionStore, UserProfile

__all__ = [
    "SessionStore",
    "UserProfile",
]
