"""Health checking of the Ray Serve HTTP proxy running on a node."""

from __future__ import annotations

import requests

__all__ = [
    "DEFAULT_HTTP_PROXY_PORT",
    "HEALTH_CHECK_PATH",
    "HttpProxyError",
    "RayHttpProxyClient",
    "FakeRayHttpProxyClient",
]

DEFAULT_HTTP_PROXY_PORT = 8000
HEALTH_CHECK_PATH = "/-/healthz"

_TIMEOUT_SECONDS = 0.02


class HttpProxyError(Exception):
    """Raised when the HTTP proxy reports itself unhealthy."""


class RayHttpProxyClient:
    """Client for the health endpoint of the Serve HTTP proxy on one host."""

    def __init__(self, host_ip: str) -> None:
        self.http_proxy_url = f"http://{host_ip}:{DEFAULT_HTTP_PROXY_PORT}"
        self.timeout = _TIMEOUT_SECONDS
        self._session = requests.Session()

    def check_health(self) -> None:
        """Raise HttpProxyError unless the proxy answers its health check with 2xx."""
        response = self._session.get(self.http_proxy_url + HEALTH_CHECK_PATH, timeout=self.timeout)
        if not 200 <= response.status_code <= 299:
            raise HttpProxyError(
                "RayHttpProxyClient CheckHealth fail: "
                f"{response.status_code} {response.reason} {response.text}"
            )


class FakeRayHttpProxyClient:
    """Stand-in proxy client whose health check always succeeds.

    Each check is recorded in ``checked_urls`` so callers can see which
    health endpoints would have been contacted.
    """

    def __init__(self, host_ip: str) -> None:
        self.http_proxy_url = f"http://{host_ip}:{DEFAULT_HTTP_PROXY_PORT}"
        self.timeout = _TIMEOUT_SECONDS
        self.checked_urls: list[str] = []

    def check_health(self) -> None:
        """Record the health endpoint and report the proxy as healthy."""
        self.checked_urls.append(self.http_proxy_url + HEALTH_CHECK_PATH)