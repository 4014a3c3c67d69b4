"""Typed clients for the ray.io/v1alpha1 API group."""

from __future__ import annotations

import os
import platform
import sys
import threading
import time
from dataclasses import dataclass, replace
from typing import Any

import requests

from .rest import ResourceClient, RestClient

__all__ = [
    "GROUP_VERSION",
    "API_PATH",
    "Config",
    "RayV1alpha1Client",
    "Clientset",
    "set_config_defaults",
]

GROUP_VERSION = "ray.io/v1alpha1"
API_PATH = "/apis"


class _TokenBucket:
    """Blocking token-bucket rate limiter: `qps` tokens per second, up to `burst` saved."""

    def __init__(self, qps: float, burst: int) -> None:
        self.qps = float(qps)
        self.burst = int(burst)
        self._tokens = float(burst)
        self._last = time.monotonic()
        self._lock = threading.Lock()

    def _reserve(self) -> float:
        with self._lock:
            now = time.monotonic()
            self._tokens = min(self.burst, self._tokens + (now - self._last) * self.qps)
            self._last = now
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.qps

    def accept(self) -> None:
        """Block until a token is available, then take it."""
        delay = self._reserve()
        if delay > 0:
            time.sleep(delay)


class _RateLimitedSession(requests.Session):
    """Session that takes a token from a rate limiter before every request."""

    def __init__(self, rate_limiter: Any) -> None:
        super().__init__()
        self.rate_limiter = rate_limiter

    def request(self, method, url, *args, **kwargs):  # type: ignore[override]
        self.rate_limiter.accept()
        return super().request(method, url, *args, **kwargs)


@dataclass
class Config:
    """Connection settings for a Kubernetes API server."""

    host: str = ""
    api_path: str = ""
    group_version: str = ""
    user_agent: str = ""
    qps: float = 0.0
    burst: int = 0
    rate_limiter: Any = None
    session: requests.Session | None = None


def _default_user_agent() -> str:
    command = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "unknown"
    system = platform.system().lower() or "unknown"
    machine = platform.machine().lower() or "unknown"
    return f"{command}/v0.0.0 ({system}/{machine}) kubernetes/unknown"


def set_config_defaults(config: Config) -> Config:
    """Return a copy of the config aimed at the ray.io/v1alpha1 group."""
    return replace(
        config,
        group_version=GROUP_VERSION,
        api_path=API_PATH,
        user_agent=config.user_agent or _default_user_agent(),
    )


def _session_for(config: Config) -> requests.Session:
    if config.session is not None:
        return config.session
    if config.rate_limiter is not None:
        return _RateLimitedSession(config.rate_limiter)
    return requests.Session()


class RayV1alpha1Client:
    """Client for the resources of the ray.io/v1alpha1 group."""

    def __init__(self, rest: RestClient) -> None:
        self.rest = rest

    def ray_clusters(self, namespace: str) -> ResourceClient:
        return ResourceClient(self.rest, "rayclusters", namespace)

    def ray_jobs(self, namespace: str) -> ResourceClient:
        return ResourceClient(self.rest, "rayjobs", namespace)

    def ray_services(self, namespace: str) -> ResourceClient:
        return ResourceClient(self.rest, "rayservices", namespace)

    @classmethod
    def for_config(cls, config: Config) -> RayV1alpha1Client:
        """Build a client from connection settings."""
        config = set_config_defaults(config)
        if not config.host:
            raise ValueError("host must be set in the config")
        rest = RestClient(
            config.host,
            config.api_path,
            config.group_version,
            config.user_agent,
            _session_for(config),
        )
        return cls(rest)


class Clientset:
    """The clients for every API group this package knows."""

    def __init__(self, ray_v1alpha1: RayV1alpha1Client) -> None:
        self.ray_v1alpha1 = ray_v1alpha1

    @classmethod
    def for_config(cls, config: Config) -> Clientset:
        """Build a clientset, adding a rate limiter when qps is set without one."""
        config = replace(config)
        if config.rate_limiter is None and config.qps > 0:
            if config.burst <= 0:
                raise ValueError(
                    "burst is required to be greater than 0 when RateLimiter is not set "
                    "and QPS is set to greater than 0"
                )
            config.rate_limiter = _TokenBucket(config.qps, config.burst)
        if config.session is None:
            config.session = _session_for(config)
        return cls(RayV1alpha1Client.for_config(config))