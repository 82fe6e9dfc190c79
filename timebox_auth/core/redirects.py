"""Return-URL allow-listing and query helpers for browser redirects."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

_LAN_NETWORK = ipaddress.ip_network("192.168.0.0/16")
_LAN_DEV_PORT = 5173


def _origin_of(url: str) -> Optional[str]:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def _is_lan_dev_origin(origin: str) -> bool:
    """Plain-http Vite dev server on a 192.168.0.0/16 address."""
    parsed = urlparse(origin)
    try:
        port = parsed.port
        address = ipaddress.ip_address(parsed.hostname or "")
    except ValueError:
        return False
    return parsed.scheme == "http" and port == _LAN_DEV_PORT and address in _LAN_NETWORK


@dataclass(frozen=True)
class RedirectPolicy:
    """Decides where the browser may be sent after the OAuth dance."""

    frontend_url: str
    allowed_origins: frozenset[str] = field(default_factory=frozenset)
    allow_lan_origins: bool = False

    @classmethod
    def build(
        cls,
        frontend_url: str,
        extra_origins: Iterable[str] = (),
        *,
        allow_lan_origins: bool = False,
    ) -> "RedirectPolicy":
        origins = {origin for origin in map(_origin_of, [frontend_url, *extra_origins]) if origin}
        return cls(
            frontend_url=frontend_url,
            allowed_origins=frozenset(origins),
            allow_lan_origins=allow_lan_origins,
        )

    def is_allowed_origin(self, origin: str) -> bool:
        if origin in self.allowed_origins:
            return True
        return self.allow_lan_origins and _is_lan_dev_origin(origin)

    def sanitize(self, candidate: Optional[str]) -> str:
        """Return ``candidate`` when its origin is allow-listed, else the frontend URL."""
        if not candidate:
            return self.frontend_url
        origin = _origin_of(candidate)
        if origin is None or not self.is_allowed_origin(origin):
            return self.frontend_url
        return candidate


def with_query(url: str, extra: dict[str, str]) -> str:
    """Merge ``extra`` into the query string of ``url``."""
    parsed = urlparse(url)
    params = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if key not in extra
    ]
    params.extend(extra.items())
    return urlunparse(parsed._replace(query=urlencode(params)))


__all__ = ["RedirectPolicy", "with_query"]
