# kuberay

Python building blocks for running Ray on Kubernetes: resource models,
naming and bookkeeping helpers, a Ray dashboard client, an HTTP proxy health
checker, in-memory listers and a REST client for the `ray.io/v1alpha1` API group.

## Installation

```
pip install kuberay
```

To run the tests as well:

```
pip install "kuberay[test]"
pytest
```

## Modules

- `kuberay.models` – dataclasses for pods, containers, pod templates,
  `RayCluster` and `RayJob` objects, the `PodPhase` and `RayNodeType` enums,
  and `parse_quantity`, which turns resource quantities such as `"500m"` or
  `"512Mi"` into a `Decimal` (and raises `ValueError` on malformed text).
- `kuberay.util` – naming and bookkeeping helpers: `check_name` (at most 50
  characters, no leading digit or punctuation), `check_label` (at most 63
  characters, no leading punctuation), `generate_service_name`,
  `generate_ray_cluster_name`, `generate_ray_job_id`,
  `calculate_desired_replicas`, `calculate_available_replicas`,
  `check_all_pods_running`, `filter_container_by_name` (raises `LookupError`),
  `pod_not_matching_template`, `compare_json_struct`,
  `convert_unix_time_to_datetime` and others.
- `kuberay.dashboard` – `RayDashboardClient` for the Ray dashboard's Serve and
  Jobs endpoints (`get_deployments`, `update_deployments`,
  `get_deployments_status`, `get_job_info`, `submit_job`), together with
  `convert_ray_job_to_request`, `convert_serve_config`, `dashboard_url` and
  `dashboard_agent_url`. Failed requests and bad data raise `DashboardError`.
- `kuberay.httpproxy` – `RayHttpProxyClient.check_health` raises
  `HttpProxyError` unless the Serve HTTP proxy on port 8000 answers `/-/healthz`
  with a 2xx status; `FakeRayHttpProxyClient` always reports healthy and
  records each URL it was asked to check in `checked_urls`.
- `kuberay.listers` – a thread-safe in-memory `Indexer` keyed by
  `"namespace/name"`, with `Lister` and `NamespaceLister` views that filter by a
  label mapping or a predicate; `NamespaceLister.get` raises `NotFoundError`.
  `ray_cluster_lister`, `ray_job_lister` and `ray_service_lister` build listers.
- `kuberay.rest` – `RestClient` and `ResourceClient` with `get`, `list`,
  `watch` (an iterator over watch events), `create`, `update`, `update_status`,
  `delete`, `delete_collection` and `patch`. Non-2xx answers raise `ApiError`.
- `kuberay.clientset` – `Config`, `set_config_defaults`, `RayV1alpha1Client`
  (`ray_clusters`, `ray_jobs`, `ray_services`) and `Clientset`. When `qps` is
  set without a rate limiter, `Clientset.for_config` adds a token-bucket limiter
  and requires `burst` to be greater than 0.

## Examples

Naming helpers:

```python
from kuberay.util import check_name, generate_service_name

check_name("acceptable-name-head-12345")   # 'acceptable-name-head-12345'
generate_service_name("raycluster-sample")  # 'raycluster-sample-head-svc'
```

Submitting a job through the dashboard:

```python
from kuberay.dashboard import RayDashboardClient
from kuberay.models import ObjectMeta, RayJob, RayJobSpec

client = RayDashboardClient("127.0.0.1:8265")
job = RayJob(
    metadata=ObjectMeta(name="rayjob-sample", namespace="default"),
    spec=RayJobSpec(entrypoint="python sample.py"),
)
job_id = client.submit_job(job)
info = client.get_job_info(job_id)
print(info.job_status if info else "not found")
```

Talking to the API server:

```python
from kuberay.clientset import Clientset, Config

clientset = Clientset.for_config(Config(host="https://localhost:6443"))
clusters = clientset.ray_v1alpha1.ray_clusters("default").list()
```

## What this package does not do

It is a library only. It has no command-line program and runs no controller:
nothing here watches the cluster and reconciles `RayCluster`, `RayService` or
`RayJob` objects on its own. It does not read kubeconfig files or handle
authentication; pass a host (and, if needed, a prepared `requests.Session`)
in `Config`. There is no offline stand-in for the dashboard client.