"""Utility functions for fcrm_chat.

This module contains internal utility functions.
"""

from fcrm_chat.utils.cancellation import CancelToken
from fcrm_chat.utils.signing import generate_signature, verify_signature

__all__ = [
    "CancelToken",
    "generate_signature",
    "verify_signature",
]
