"""Client for the Ray dashboard's Serve and job submission APIs."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests
import yaml

from .models import RayJob

__all__ = [
    "DEFAULT_DASHBOARD_NAME",
    "DEFAULT_DASHBOARD_AGENT_LISTEN_PORT_NAME",
    "DEPLOY_PATH",
    "STATUS_PATH",
    "JOB_PATH",
    "DashboardError",
    "ServeActorOptions",
    "ServeConfig",
    "ServeDeploymentGraphSpec",
    "RayActorOptionSpec",
    "ServeConfigSpec",
    "ServeDeploymentStatuses",
    "RayJobInfo",
    "RayJobRequest",
    "RayDashboardClient",
    "convert_serve_config",
    "convert_ray_job_to_request",
    "dashboard_url",
    "dashboard_agent_url",
]

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_NAME = "dashboard"
DEFAULT_DASHBOARD_AGENT_LISTEN_PORT_NAME = "dashboard-agent"

DEPLOY_PATH = "/api/serve/deployments/"
STATUS_PATH = "/api/serve/deployments/status"
JOB_PATH = "/api/jobs/"

_TIMEOUT_SECONDS = 2.0


class DashboardError(Exception):
    """Raised when the dashboard rejects a request or returns unusable data."""


@dataclass
class ServeActorOptions:
    """Actor options of a Serve deployment as written in a RayService spec."""

    runtime_env: str = ""
    num_cpus: float | None = None
    num_gpus: float | None = None
    memory: int | None = None
    object_store_memory: int | None = None
    resources: str = ""
    accelerator_type: str = ""


@dataclass
class ServeConfig:
    """One Serve deployment as written in a RayService spec."""

    name: str = ""
    num_replicas: int | None = None
    route_prefix: str = ""
    max_concurrent_queries: int | None = None
    user_config: str = ""
    autoscaling_config: str = ""
    graceful_shutdown_wait_loop_s: int | None = None
    graceful_shutdown_timeout_s: int | None = None
    health_check_period_s: int | None = None
    health_check_timeout_s: int | None = None
    ray_actor_options: ServeActorOptions = field(default_factory=ServeActorOptions)


@dataclass
class ServeDeploymentGraphSpec:
    """The deployment graph of a RayService."""

    import_path: str = ""
    runtime_env: str = ""
    serve_config_specs: list[ServeConfig] = field(default_factory=list)


def _set_if(out: dict[str, Any], key: str, value: Any) -> None:
    if value is not None and value != "" and value != {} and value != []:
        out[key] = value


@dataclass
class RayActorOptionSpec:
    """Actor options in the form the dashboard expects."""

    runtime_env: dict[str, Any] = field(default_factory=dict)
    num_cpus: float | None = None
    num_gpus: float | None = None
    memory: int | None = None
    object_store_memory: int | None = None
    resources: dict[str, Any] = field(default_factory=dict)
    accelerator_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _set_if(out, "runtime_env", self.runtime_env)
        _set_if(out, "num_cpus", self.num_cpus)
        _set_if(out, "num_gpus", self.num_gpus)
        _set_if(out, "memory", self.memory)
        _set_if(out, "object_store_memory", self.object_store_memory)
        _set_if(out, "resources", self.resources)
        _set_if(out, "accelerator_type", self.accelerator_type)
        return out


@dataclass
class ServeConfigSpec:
    """A Serve deployment in the form the dashboard expects."""

    name: str
    num_replicas: int | None = None
    route_prefix: str = ""
    max_concurrent_queries: int | None = None
    user_config: dict[str, Any] = field(default_factory=dict)
    autoscaling_config: dict[str, Any] = field(default_factory=dict)
    graceful_shutdown_wait_loop_s: int | None = None
    graceful_shutdown_timeout_s: int | None = None
    health_check_period_s: int | None = None
    health_check_timeout_s: int | None = None
    ray_actor_options: RayActorOptionSpec = field(default_factory=RayActorOptionSpec)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object sent to the dashboard, leaving out unset fields."""
        out: dict[str, Any] = {"name": self.name}
        _set_if(out, "num_replicas", self.num_replicas)
        _set_if(out, "route_prefix", self.route_prefix)
        _set_if(out, "max_concurrent_queries", self.max_concurrent_queries)
        _set_if(out, "user_config", self.user_config)
        _set_if(out, "autoscaling_config", self.autoscaling_config)
        _set_if(out, "graceful_shutdown_wait_loop_s", self.graceful_shutdown_wait_loop_s)
        _set_if(out, "graceful_shutdown_timeout_s", self.graceful_shutdown_timeout_s)
        _set_if(out, "health_check_period_s", self.health_check_period_s)
        _set_if(out, "health_check_timeout_s", self.health_check_timeout_s)
        out["ray_actor_options"] = self.ray_actor_options.to_dict()
        return out


@dataclass
class ServeDeploymentStatuses:
    """Current status of the Serve application and its deployments."""

    app_status: dict[str, Any] = field(default_factory=dict)
    deployment_statuses: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ServeDeploymentStatuses:
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise DashboardError("deployment statuses must be a JSON object")
        return cls(
            app_status=dict(data.get("app_status") or {}),
            deployment_statuses=list(data.get("deployment_statuses") or []),
        )


@dataclass
class RayJobInfo:
    """Status of a submitted Ray job as reported by the dashboard."""

    job_status: str = ""
    entrypoint: str = ""
    message: str = ""
    error_type: str | None = None
    start_time: int = 0
    end_time: int = 0
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> RayJobInfo:
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise DashboardError("job info must be a JSON object")
        return cls(
            job_status=data.get("status") or "",
            entrypoint=data.get("entrypoint") or "",
            message=data.get("message") or "",
            error_type=data.get("error_type"),
            start_time=int(data.get("start_time") or 0),
            end_time=int(data.get("end_time") or 0),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class RayJobRequest:
    """Body of a job submission request."""

    entrypoint: str
    job_id: str = ""
    runtime_env: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"entrypoint": self.entrypoint}
        _set_if(out, "job_id", self.job_id)
        _set_if(out, "runtime_env", self.runtime_env)
        _set_if(out, "metadata", self.metadata)
        return out


def _yaml_mapping(text: str) -> dict[str, Any]:
    """Parse YAML text into a mapping; anything unparsable yields an empty one."""
    try:
        value = yaml.safe_load(text) if text else None
    except yaml.YAMLError:
        return {}
    return dict(value) if isinstance(value, dict) else {}


def convert_serve_config(specs: Iterable[ServeConfig]) -> list[ServeConfigSpec]:
    """Turn RayService deployment specs into the dashboard's deployment form."""
    converted = []
    for config in specs:
        options = config.ray_actor_options
        converted.append(
            ServeConfigSpec(
                name=config.name,
                num_replicas=config.num_replicas,
                route_prefix=config.route_prefix,
                max_concurrent_queries=config.max_concurrent_queries,
                user_config=_yaml_mapping(config.user_config),
                autoscaling_config=_yaml_mapping(config.autoscaling_config),
                graceful_shutdown_wait_loop_s=config.graceful_shutdown_wait_loop_s,
                graceful_shutdown_timeout_s=config.graceful_shutdown_timeout_s,
                health_check_period_s=config.health_check_period_s,
                # The health check timeout is sent with the graceful shutdown timeout.
                health_check_timeout_s=config.graceful_shutdown_timeout_s,
                ray_actor_options=RayActorOptionSpec(
                    runtime_env=_yaml_mapping(options.runtime_env),
                    num_cpus=options.num_cpus,
                    num_gpus=options.num_gpus,
                    memory=options.memory,
                    object_store_memory=options.object_store_memory,
                    resources=_yaml_mapping(options.resources),
                    accelerator_type=options.accelerator_type,
                ),
            )
        )
    return converted


def convert_ray_job_to_request(ray_job: RayJob) -> RayJobRequest:
    """Build a submission request from a RayJob; its runtime env is base64 JSON."""
    request = RayJobRequest(
        entrypoint=ray_job.spec.entrypoint,
        metadata=dict(ray_job.spec.metadata),
        job_id=ray_job.status.job_id,
    )
    encoded = ray_job.spec.runtime_env
    if not encoded:
        return request
    try:
        decoded = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DashboardError(f"Failed to decode runtimeEnv: {encoded}: {exc}") from exc
    try:
        runtime_env = json.loads(decoded)
    except ValueError as exc:
        raise DashboardError(f"failed to unmarshal runtimeEnv: {decoded!r}: {exc}") from exc
    if runtime_env is not None and not isinstance(runtime_env, dict):
        raise DashboardError(f"failed to unmarshal runtimeEnv: {decoded!r}: not an object")
    request.runtime_env = runtime_env or {}
    return request


def _service_url(
    service_name: str,
    namespace: str,
    ports: Mapping[str, int] | Iterable[tuple[str, int]],
    port_name: str,
) -> str:
    pairs = ports.items() if isinstance(ports, Mapping) else ports
    port = next((number for name, number in pairs if name == port_name), None)
    if port is None:
        raise DashboardError("dashboard port not found")
    url = f"{service_name}.{namespace}.svc.cluster.local:{port}"
    logger.debug("dashboard url: %s", url)
    return url


def dashboard_url(
    service_name: str, namespace: str, ports: Mapping[str, int] | Iterable[tuple[str, int]]
) -> str:
    """Return the in-cluster address of the dashboard port of a head service."""
    return _service_url(service_name, namespace, ports, DEFAULT_DASHBOARD_NAME)


def dashboard_agent_url(
    service_name: str, namespace: str, ports: Mapping[str, int] | Iterable[tuple[str, int]]
) -> str:
    """Return the in-cluster address of the dashboard agent port of a service."""
    return _service_url(service_name, namespace, ports, DEFAULT_DASHBOARD_AGENT_LISTEN_PORT_NAME)


def _check_status(response: requests.Response, operation: str) -> None:
    if not 200 <= response.status_code <= 299:
        raise DashboardError(
            f"{operation} fail: {response.status_code} {response.reason} {response.text}"
        )


def _json_body(response: requests.Response) -> Any:
    try:
        return json.loads(response.content)
    except ValueError as exc:
        raise DashboardError(f"invalid JSON from dashboard: {exc}") from exc


class RayDashboardClient:
    """HTTP client for a Ray cluster's dashboard."""

    def __init__(self, url: str) -> None:
        self.dashboard_url = "http://" + url
        self.timeout = _TIMEOUT_SECONDS
        self._session = requests.Session()

    def get_deployments(self) -> str:
        """Return the raw description of the current Serve deployments."""
        response = self._session.get(self.dashboard_url + DEPLOY_PATH, timeout=self.timeout)
        _check_status(response, "GetDeployments")
        return response.text

    def update_deployments(self, specs: ServeDeploymentGraphSpec) -> None:
        """Send the desired deployment graph to the dashboard."""
        payload: dict[str, Any] = {"import_path": specs.import_path}
        _set_if(payload, "runtime_env", _yaml_mapping(specs.runtime_env))
        _set_if(
            payload,
            "deployments",
            [spec.to_dict() for spec in self.convert_serve_config(specs.serve_config_specs)],
        )
        response = self._session.put(
            self.dashboard_url + DEPLOY_PATH,
            data=json.dumps(payload),
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        _check_status(response, "UpdateDeployments")

    def get_deployments_status(self) -> ServeDeploymentStatuses:
        """Return the current status of the Serve deployments."""
        response = self._session.get(self.dashboard_url + STATUS_PATH, timeout=self.timeout)
        _check_status(response, "GetDeploymentsStatus")
        return ServeDeploymentStatuses.from_dict(_json_body(response))

    def convert_serve_config(self, specs: Iterable[ServeConfig]) -> list[ServeConfigSpec]:
        return convert_serve_config(specs)

    def get_job_info(self, job_id: str) -> RayJobInfo | None:
        """Return a job's info, or None if the dashboard does not know the job."""
        response = self._session.get(self.dashboard_url + JOB_PATH + job_id, timeout=self.timeout)
        if response.status_code == 404:
            return None
        return RayJobInfo.from_dict(_json_body(response))

    def submit_job(self, ray_job: RayJob) -> str:
        """Submit a job and return the id the dashboard assigned to it."""
        request = convert_ray_job_to_request(ray_job)
        body = json.dumps(request.to_dict())
        logger.info("Submit a ray job: rayJob=%s jobInfo=%s", ray_job.metadata.name, body)
        response = self._session.post(
            self.dashboard_url + JOB_PATH,
            data=body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        data = _json_body(response)
        if data is None:
            return ""
        if not isinstance(data, dict):
            raise DashboardError("job submission response must be a JSON object")
        return data.get("job_id") or ""