"""Request signing for fcrm_chat.

Every REST call is stamped with an HMAC of the app key so the backend
can verify the caller holds the app secret.
"""

import hashlib
import hmac

__all__ = [
    "generate_signature",
    "verify_signature",
]


def generate_signature(app_key: str, app_secret: str) -> str:
    """Generate the request signature for an app key.

    The signature is HMAC-SHA256 over the UTF-8 app key, keyed with the
    UTF-8 app secret, rendered as lowercase hex. The same value is sent as
    the ``X-Chat-Signature`` header and as the ``sig`` query parameter.

    Args:
        app_key: Chat app key from the dashboard
        app_secret: Chat app secret from the dashboard

    Returns:
        64-character hexadecimal signature
    """
    digest = hmac.new(
        app_secret.encode("utf-8"),
        app_key.encode("utf-8"),
        hashlib.sha256,
    )
    return digest.hexdigest()


def verify_signature(app_key: str, app_secret: str, signature: str) -> bool:
    """Check a signature in constant time."""
    return hmac.compare_digest(generate_signature(app_key, app_secret), signature)
