"""Data types describing pods, Ray clusters and Ray jobs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

__all__ = [
    "PodPhase",
    "RayNodeType",
    "ObjectMeta",
    "ResourceRequirements",
    "Container",
    "PodCondition",
    "PodSpec",
    "PodStatus",
    "Pod",
    "PodTemplateSpec",
    "HeadGroupSpec",
    "WorkerGroupSpec",
    "RayClusterSpec",
    "RayCluster",
    "RayJobSpec",
    "RayJobStatus",
    "RayJob",
    "parse_quantity",
]


class PodPhase(str, Enum):
    """Lifecycle phase of a pod."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class RayNodeType(str, Enum):
    """Role of a node inside a Ray cluster."""

    HEAD = "head"
    WORKER = "worker"


Quantity = str | Decimal | int


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: datetime | None = None


@dataclass
class ResourceRequirements:
    requests: dict[str, Quantity] = field(default_factory=dict)
    limits: dict[str, Quantity] = field(default_factory=dict)


@dataclass
class Container:
    name: str = ""
    image: str = ""
    command: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    env: list[dict] = field(default_factory=list)
    resources: ResourceRequirements = field(default_factory=ResourceRequirements)


@dataclass
class PodCondition:
    type: str = ""
    status: str = ""


@dataclass
class PodSpec:
    containers: list[Container] = field(default_factory=list)
    service_account_name: str = ""


@dataclass
class PodStatus:
    phase: PodPhase | None = None
    conditions: list[PodCondition] = field(default_factory=list)
    reason: str = ""


@dataclass
class Pod:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PodSpec = field(default_factory=PodSpec)
    status: PodStatus = field(default_factory=PodStatus)


@dataclass
class PodTemplateSpec:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: PodSpec = field(default_factory=PodSpec)


@dataclass
class HeadGroupSpec:
    template: PodTemplateSpec = field(default_factory=PodTemplateSpec)
    service_type: str = ""
    replicas: int | None = None
    ray_start_params: dict[str, str] = field(default_factory=dict)


@dataclass
class WorkerGroupSpec:
    group_name: str = ""
    replicas: int | None = None
    min_replicas: int | None = None
    max_replicas: int | None = None
    ray_start_params: dict[str, str] = field(default_factory=dict)
    template: PodTemplateSpec = field(default_factory=PodTemplateSpec)
    workers_to_delete: list[str] = field(default_factory=list)


@dataclass
class RayClusterSpec:
    head_group_spec: HeadGroupSpec = field(default_factory=HeadGroupSpec)
    worker_group_specs: list[WorkerGroupSpec] = field(default_factory=list)
    ray_version: str = ""
    enable_in_tree_autoscaling: bool | None = None


@dataclass
class RayCluster:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RayClusterSpec = field(default_factory=RayClusterSpec)


@dataclass
class RayJobSpec:
    entrypoint: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    runtime_env: str = ""


@dataclass
class RayJobStatus:
    job_id: str = ""
    job_status: str = ""


@dataclass
class RayJob:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: RayJobSpec = field(default_factory=RayJobSpec)
    status: RayJobStatus = field(default_factory=RayJobStatus)


_BINARY_SUFFIXES = {
    "Ki": Decimal(1024),
    "Mi": Decimal(1024) ** 2,
    "Gi": Decimal(1024) ** 3,
    "Ti": Decimal(1024) ** 4,
    "Pi": Decimal(1024) ** 5,
    "Ei": Decimal(1024) ** 6,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

_QUANTITY_RE = re.compile(
    r"^(?P<number>[+-]?(?:\d+\.?\d*|\.\d+))"
    r"(?:(?P<binary>Ki|Mi|Gi|Ti|Pi|Ei)"
    r"|[eE](?P<exponent>[+-]?\d+)"
    r"|(?P<decimal>[numkMGTPE]?))$"
)


def parse_quantity(text: str) -> Decimal:
    """Parse a resource quantity such as ``500m`` or ``512Mi`` into a Decimal."""
    match = _QUANTITY_RE.match(text.strip())
    if match is None:
        raise ValueError(f"invalid quantity: {text!r}")
    try:
        number = Decimal(match.group("number"))
    except InvalidOperation as exc:
        raise ValueError(f"invalid quantity: {text!r}") from exc
    if match.group("binary"):
        return number * _BINARY_SUFFIXES[match.group("binary")]
    if match.group("exponent") is not None:
        return number.scaleb(int(match.group("exponent")))
    return number * _DECIMAL_SUFFIXES[match.group("decimal") or ""]