"""Content negotiation — maps handler return values to Response objects.

isinstance-based dispatch, no magic:

1. ``Response``          -> pass through
2. ``Redirect``          -> status + Location header
3. ``Template``          -> render via kida
4. ``str``               -> 200, text/html
5. ``bytes``             -> 200, application/octet-stream
6. ``dict`` / ``list``   -> 200, application/json
7. ``None``              -> 204, empty body
8. ``(value, int)``      -> negotiate value, override status
"""

import json as json_module
from typing import Any

from kida import Environment

from rewrite_rules.errors import ConfigurationError
from rewrite_rules.http.response import Redirect, Response
from rewrite_rules.templating.integration import render_template
from rewrite_rules.templating.returns import Template


def negotiate(value: Any, *, kida_env: Environment | None = None) -> Response:
    """Convert a route handler's (or controller's) return value to a Response."""
    match value:
        case Response():
            return value
        case Redirect():
            return value.to_response()
        case Template():
            if kida_env is None:
                msg = "Template return type requires a kida environment."
                raise ConfigurationError(msg)
            return Response(body=render_template(kida_env, value))
        case str():
            return Response(body=value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return Response(
                body=json_module.dumps(value, default=str),
                content_type="application/json",
            )
        case None:
            return Response(body="", status=204)
        case (inner, int(status)):
            return negotiate(inner, kida_env=kida_env).with_status(status)
        case _:
            msg = f"Cannot convert {type(value).__name__} to a response."
            raise TypeError(msg)
