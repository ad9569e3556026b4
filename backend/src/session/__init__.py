"""
Session management.

Provides:
- SessionCaptureManager for authentication state and bulk capture
- LoginFlow and authentication detection heuristics
- Detail-view title extraction
"""

from designscout.session.auth import (
    AuthDetection,
    AuthenticationError,
    LoginFailedError,
    LoginFlow,
    detect_authentication,
)
from designscout.session.manager import (
    CaptureError,
    OpenItem,
    SessionCaptureManager,
)
from designscout.session.titles import default_title, extract_title

__all__ = [
    "AuthDetection",
    "AuthenticationError",
    "CaptureError",
    "LoginFailedError",
    "LoginFlow",
    "OpenItem",
    "SessionCaptureManager",
    "default_title",
    "detect_authentication",
    "extract_title",
]
