"""Security helpers — redirect URL sanitization and audit events."""

from rewrite_rules.security.audit import SecurityEvent, emit_security_event, set_security_event_sink
from rewrite_rules.security.urls import build_login_url, is_safe_url, sanitize_redirect_url

__all__ = [
    "SecurityEvent",
    "build_login_url",
    "emit_security_event",
    "is_safe_url",
    "sanitize_redirect_url",
    "set_security_event_sink",
]
