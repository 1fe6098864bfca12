"""Cookies on both sides of the exchange.

``Request`` reads the ``Cookie`` header with ``parse_cookies``; the session
middleware writes its cookie as a ``SetCookie`` attached to the Response.
"""

from dataclasses import dataclass


def parse_cookies(header: str) -> dict[str, str]:
    """``"a=1; b=2"`` -> ``{"a": "1", "b": "2"}``. Pairs without ``=`` are skipped."""
    pairs = (item.partition("=") for item in header.split(";") if "=" in item)
    return {name.strip(): value.strip() for name, _, value in pairs}


@dataclass(frozen=True, slots=True)
class SetCookie:
    """One ``Set-Cookie`` header. Empty or false attributes are omitted."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"

    def to_header_value(self) -> str:
        attributes = [
            f"Max-Age={self.max_age}" if self.max_age is not None else "",
            f"Path={self.path}" if self.path else "",
            "Secure" if self.secure else "",
            "HttpOnly" if self.httponly else "",
            f"SameSite={self.samesite}" if self.samesite else "",
        ]
        return "; ".join([f"{self.name}={self.value}", *filter(None, attributes)])
