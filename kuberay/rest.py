"""REST access to the Ray custom resources served by the Kubernetes API."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any
from urllib.parse import quote

import requests

__all__ = [
    "JSON_PATCH",
    "MERGE_PATCH",
    "STRATEGIC_MERGE_PATCH",
    "APPLY_PATCH",
    "ApiError",
    "RestClient",
    "ResourceClient",
]

JSON_PATCH = "application/json-patch+json"
MERGE_PATCH = "application/merge-patch+json"
STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"
APPLY_PATCH = "application/apply-patch+yaml"

_JSON = "application/json"

LabelSelector = str | Mapping[str, str] | None


class ApiError(Exception):
    """Raised when the API server answers with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, message: str) -> None:
        super().__init__(f"{status_code} {reason}: {message}")
        self.status_code = status_code
        self.reason = reason
        self.message = message


def _raise_for_status(response: requests.Response) -> None:
    if 200 <= response.status_code <= 299:
        return
    reason = response.reason or ""
    message = response.text
    try:
        status = json.loads(response.content)
    except ValueError:
        status = None
    if isinstance(status, dict):
        reason = status.get("reason") or reason
        message = status.get("message") or message
    raise ApiError(response.status_code, reason, message)


def _encode_body(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode()
    return json.dumps(body).encode()


def _duration(seconds: int) -> str:
    """Format whole seconds the way the API server's duration parameter expects."""
    sign = "-" if seconds < 0 else ""
    hours, rest = divmod(abs(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def _selector_param(label_selector: LabelSelector) -> str | None:
    if label_selector is None:
        return None
    if isinstance(label_selector, str):
        return label_selector or None
    return ",".join(f"{k}={v}" for k, v in label_selector.items()) or None


def _list_params(
    label_selector: LabelSelector, timeout_seconds: int | None
) -> tuple[dict[str, str], float | None]:
    params: dict[str, str] = {}
    selector = _selector_param(label_selector)
    if selector:
        params["labelSelector"] = selector
    timeout: float | None = None
    if timeout_seconds is not None:
        params["timeoutSeconds"] = str(timeout_seconds)
        if timeout_seconds:
            params["timeout"] = _duration(timeout_seconds)
            timeout = float(timeout_seconds)
    return params, timeout


class RestClient:
    """Sends requests to one API group version of a Kubernetes API server."""

    def __init__(
        self,
        host: str,
        api_path: str = "/apis",
        group_version: str = "ray.io/v1alpha1",
        user_agent: str = "",
        session: requests.Session | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        stripped = api_path.strip("/")
        self.api_path = f"/{stripped}" if stripped else ""
        self.group_version = group_version.strip("/")
        self.user_agent = user_agent
        self.session = session if session is not None else requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.host}{self.api_path}/{self.group_version}/{path.lstrip('/')}"

    def _open(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        timeout: float | None = None,
        content_type: str = _JSON,
        stream: bool = False,
    ) -> requests.Response:
        headers = {"Accept": _JSON}
        data = _encode_body(body)
        if data is not None:
            headers["Content-Type"] = content_type
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        response = self.session.request(
            method,
            self._url(path),
            params=dict(params or {}),
            data=data,
            headers=headers,
            timeout=timeout,
            stream=stream,
        )
        _raise_for_status(response)
        return response

    def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: Any = None,
        timeout: float | None = None,
        content_type: str = _JSON,
    ) -> Any:
        """Send a request and return the decoded JSON answer, or None if it is empty."""
        response = self._open(method, path, params, body, timeout, content_type)
        if not response.content:
            return None
        try:
            return json.loads(response.content)
        except ValueError as exc:
            raise ApiError(response.status_code, "InvalidResponse", str(exc)) from exc


def _events(response: requests.Response) -> Iterator[dict[str, Any]]:
    with response:
        for line in response.iter_lines():
            if line:
                yield json.loads(line)


class ResourceClient:
    """Create, read, update, delete, patch and watch one resource kind in a namespace."""

    def __init__(self, rest: RestClient, resource: str, namespace: str = "") -> None:
        self.rest = rest
        self.resource = resource
        self.namespace = namespace

    def _path(self, name: str | None = None, *subresources: str) -> str:
        segments = []
        if self.namespace:
            segments += ["namespaces", self.namespace]
        segments.append(self.resource)
        if name is not None:
            if not name:
                raise ValueError("resource name may not be empty")
            segments.append(name)
        segments.extend(s for s in subresources if s)
        return "/".join(quote(s, safe="") for s in segments)

    @staticmethod
    def _name_of(obj: Mapping[str, Any]) -> str:
        return (obj.get("metadata") or {}).get("name", "")

    def get(self, name: str) -> Any:
        """Return the named object."""
        return self.rest.request("GET", self._path(name))

    def list(
        self, label_selector: LabelSelector = None, timeout_seconds: int | None = None
    ) -> Any:
        """Return the list of objects matching the label selector."""
        params, timeout = _list_params(label_selector, timeout_seconds)
        return self.rest.request("GET", self._path(), params=params, timeout=timeout)

    def watch(
        self, label_selector: LabelSelector = None, timeout_seconds: int | None = None
    ) -> Iterator[dict[str, Any]]:
        """Start a watch and return an iterator over its events."""
        params, timeout = _list_params(label_selector, timeout_seconds)
        params["watch"] = "true"
        response = self.rest._open("GET", self._path(), params, timeout=timeout, stream=True)
        return _events(response)

    def create(self, obj: Mapping[str, Any]) -> Any:
        """Create the object and return the server's copy of it."""
        return self.rest.request("POST", self._path(), body=obj)

    def update(self, obj: Mapping[str, Any]) -> Any:
        """Replace the object and return the server's copy of it."""
        return self.rest.request("PUT", self._path(self._name_of(obj)), body=obj)

    def update_status(self, obj: Mapping[str, Any]) -> Any:
        """Replace the object's status and return the server's copy of it."""
        return self.rest.request("PUT", self._path(self._name_of(obj), "status"), body=obj)

    def delete(self, name: str, options: Mapping[str, Any] | None = None) -> None:
        """Delete the named object."""
        self.rest.request("DELETE", self._path(name), body=dict(options or {}))

    def delete_collection(
        self,
        options: Mapping[str, Any] | None = None,
        label_selector: LabelSelector = None,
        timeout_seconds: int | None = None,
    ) -> None:
        """Delete every object matching the label selector."""
        params, timeout = _list_params(label_selector, timeout_seconds)
        self.rest.request(
            "DELETE", self._path(), params=params, body=dict(options or {}), timeout=timeout
        )

    def patch(self, name: str, patch_type: str, data: Any, *args: str) -> Any:
        """Apply a patch of the given content type, optionally to subresources."""
        return self.rest.request(
            "PATCH", self._path(name, *args), body=data, content_type=patch_type
        )