"""Helpers for naming, counting and comparing cluster resources."""

from __future__ import annotations

import json
import logging
import random
import unicodedata
from dataclasses import asdict, is_dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from .models import (
    Container,
    ObjectMeta,
    Pod,
    PodPhase,
    PodSpec,
    PodTemplateSpec,
    RayCluster,
    RayNodeType,
    parse_quantity,
)

logger = logging.getLogger(__name__)

RAY_CLUSTER_SUFFIX = "-raycluster-"
DASHBOARD_NAME = "dashboard"
SERVE_NAME = "serve"

_RANDOM_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
_MAX_NAME_LENGTH = 50
_MAX_LABEL_LENGTH = 63


def is_created(pod: Pod) -> bool:
    """Return True if the pod has been created and is tracked by the API server."""
    return bool(pod.status.phase)


def is_running_and_ready(pod: Pod) -> bool:
    """Return True if the pod is running and has a true Ready condition."""
    if pod.status.phase != PodPhase.RUNNING:
        return False
    return any(c.type == "Ready" and c.status == "True" for c in pod.status.conditions)


def _is_punct(ch: str) -> bool:
    return unicodedata.category(ch).startswith("P")


def _shorten(s: str, max_length: int, what: str) -> str:
    if len(s) > max_length:
        offset = len(s) - max_length
        logger.info("%s is too long: len = %d, shortening by offset = %d", what, len(s), offset)
        s = s[offset:]
    if not s:
        raise ValueError(f"{what} must not be empty")
    return s


def check_name(s: str) -> str:
    """Make a name safe: at most 50 characters, not starting with a digit or punctuation."""
    s = _shorten(s, _MAX_NAME_LENGTH, "pod name")
    if s[0].isdigit():
        s = "r" + s[1:]
    if _is_punct(s[0]):
        s = "r" + s[1:]
    return s


def check_label(s: str) -> str:
    """Make a label value safe: at most 63 characters, not starting with punctuation."""
    s = _shorten(s, _MAX_LABEL_LENGTH, "label value")
    if _is_punct(s[0]):
        s = "r" + s[1:]
    return s


def before(value: str, a: str) -> str:
    """Return the part of value before the first occurrence of a, or "" if absent."""
    pos = value.find(a)
    return "" if pos == -1 else value[:pos]


def format_int32(n: int) -> str:
    """Return the decimal string form of n."""
    return str(int(n))


def get_namespace(metadata: ObjectMeta) -> str:
    """Return the object's namespace, or "default" if it has none."""
    return metadata.namespace or "default"


def generate_service_name(cluster_name: str) -> str:
    return f"{cluster_name}-{RayNodeType.HEAD.value}-svc"


def generate_dashboard_service_name(cluster_name: str) -> str:
    return f"{cluster_name}-{DASHBOARD_NAME}-svc"


def generate_dashboard_agent_label(cluster_name: str) -> str:
    return f"{cluster_name}-{DASHBOARD_NAME}"


def generate_serve_service_name(service_name: str) -> str:
    return f"{service_name}-{SERVE_NAME}-svc"


def generate_serve_service_label(service_name: str) -> str:
    return f"{service_name}-{SERVE_NAME}"


def generate_ingress_name(cluster_name: str) -> str:
    return f"{cluster_name}-{RayNodeType.HEAD.value}-ingress"


def _random_string(length: int) -> str:
    return "".join(random.choice(_RANDOM_ALPHABET) for _ in range(length))


def generate_ray_cluster_name(service_name: str) -> str:
    """Generate a Ray cluster name for a Ray service, with a random suffix."""
    return f"{service_name}{RAY_CLUSTER_SUFFIX}{_random_string(5)}"


def generate_ray_job_id(rayjob: str) -> str:
    """Generate a job id for submission, with a random suffix."""
    return f"{rayjob}-{_random_string(5)}"


def generate_identifier(cluster_name: str, node_type: RayNodeType | str) -> str:
    """Generate the identifier shared by pods of the same group."""
    return f"{cluster_name}-{RayNodeType(node_type).value}"


def find_ray_container_index(spec: PodSpec) -> int:
    """Return the index of the Ray container in the pod; always the first one."""
    if len(spec.containers) > 1:
        logger.warning("Pod has multiple containers, we choose index=0 as Ray container")
    return 0


def _sum_replicas(cluster: RayCluster, attribute: str) -> int:
    total = 0
    for group in cluster.spec.worker_group_specs:
        value = getattr(group, attribute)
        if value is None:
            raise ValueError(f"worker group {group.group_name!r} has no {attribute}")
        total += value
    return total


def calculate_desired_replicas(cluster: RayCluster) -> int:
    """Sum the desired worker replicas over all worker groups."""
    return _sum_replicas(cluster, "replicas")


def calculate_min_replicas(cluster: RayCluster) -> int:
    """Sum the minimum worker replicas over all worker groups."""
    return _sum_replicas(cluster, "min_replicas")


def calculate_max_replicas(cluster: RayCluster) -> int:
    """Sum the maximum worker replicas over all worker groups."""
    return _sum_replicas(cluster, "max_replicas")


def calculate_available_replicas(pods: Iterable[Pod]) -> int:
    """Count the pods that are pending or running."""
    return sum(
        1 for pod in pods if pod.status.phase in (PodPhase.PENDING, PodPhase.RUNNING)
    )


def contains(elems: Iterable[str], search_term: str) -> bool:
    return search_term in elems


def filter_container_by_name(containers: Iterable[Container], name: str) -> Container:
    """Return the container with the given name; raise LookupError if there is none."""
    for container in containers:
        if container.name == name:
            return container
    raise LookupError(f"can not find container {name}")


def get_head_group_service_account_name(cluster: RayCluster) -> str:
    """Return the head group's service account, or the cluster name if unset."""
    account = cluster.spec.head_group_spec.template.spec.service_account_name
    return account or cluster.metadata.name


def check_all_pods_running(pods: Iterable[Pod]) -> bool:
    """Return True if there is at least one pod and every pod is running."""
    pods = list(pods)
    return bool(pods) and all(pod.status.phase == PodPhase.RUNNING for pod in pods)


def _as_quantity(value: Any) -> Decimal:
    if isinstance(value, str):
        return parse_quantity(value)
    return Decimal(value)


def _resources_differ(wanted: dict, actual: dict) -> bool:
    if len(wanted) != len(actual):
        return True
    for name, quantity in wanted.items():
        if name not in actual:
            return True
        if _as_quantity(quantity) != _as_quantity(actual[name]):
            return True
    return False


def pod_not_matching_template(pod: Pod, template: PodTemplateSpec) -> bool:
    """Return True if a running pod's containers differ from the template's."""
    if pod.status.phase != PodPhase.RUNNING or pod.metadata.deletion_timestamp is not None:
        return False
    if len(template.spec.containers) != len(pod.spec.containers):
        return True
    remaining = {c.name: c for c in pod.spec.containers}
    for wanted in template.spec.containers:
        actual = remaining.pop(wanted.name, None)
        if actual is None:
            return True
        if wanted.image != actual.image:
            return True
        if _resources_differ(wanted.resources.requests, actual.resources.requests):
            return True
        if _resources_differ(wanted.resources.limits, actual.resources.limits):
            return True
    return bool(remaining)


def _json_default(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"cannot serialise {type(obj).__name__}")


def compare_json_struct(obj_a: Any, obj_b: Any) -> bool:
    """Compare two objects by their JSON form; False if either cannot be serialised."""
    try:
        a = json.loads(json.dumps(obj_a, default=_json_default))
        b = json.loads(json.dumps(obj_b, default=_json_default))
    except (TypeError, ValueError):
        return False
    return a == b


def convert_unix_time_to_datetime(unix_time: int) -> datetime:
    """Convert a Unix timestamp in milliseconds to an aware UTC datetime."""
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=unix_time)