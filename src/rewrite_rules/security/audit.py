"""Security audit events.

Opt-in event channel for access-control telemetry. The dispatcher emits
``rewrite.access.denied`` and ``rewrite.access.login_required``; the auth
helpers emit ``auth.login`` and ``auth.logout``. Register a sink to
forward them to logs, metrics, or a SIEM.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from time import time
from typing import Any

_log = logging.getLogger("rewrite_rules.security")


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """A structured security event."""

    name: str
    timestamp: float = field(default_factory=time)
    path: str | None = None
    rule: str | None = None
    user_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


type SecurityEventSink = Callable[[SecurityEvent], None]

_sink_lock = threading.Lock()
_sink: SecurityEventSink | None = None


def set_security_event_sink(sink: SecurityEventSink | None) -> None:
    """Set the process-wide sink. ``None`` disables delivery."""
    global _sink
    with _sink_lock:
        _sink = sink


def emit_security_event(
    name: str,
    *,
    request: Any | None = None,
    user_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Log *name* at debug level and hand it to the sink, if one is set."""
    path = getattr(request, "path", None)
    rule = getattr(request, "matched_rule", None)
    _log.debug("security event %s path=%s rule=%s", name, path, rule)

    with _sink_lock:
        sink = _sink
    if sink is None:
        return
    sink(
        SecurityEvent(
            name=name,
            path=path,
            rule=rule,
            user_id=user_id,
            details=details or {},
        )
    )
