from dataclasses import dataclass, field

import pytest

from kuberay.listers import (
    Indexer,
    NotFoundError,
    ray_cluster_lister,
    ray_job_lister,
    ray_service_lister,
)
from kuberay.models import ObjectMeta, RayCluster, RayJob


@dataclass
class _Service:
    metadata: ObjectMeta = field(default_factory=ObjectMeta)


def _cluster(name, namespace="default", labels=None):
    return RayCluster(metadata=ObjectMeta(name=name, namespace=namespace, labels=labels or {}))


@pytest.fixture
def indexer():
    idx = Indexer()
    idx.add(_cluster("a", labels={"team": "x"}))
    idx.add(_cluster("b", labels={"team": "y"}))
    idx.add(_cluster("c", namespace="other", labels={"team": "x"}))
    return idx


def test_get_by_key_uses_namespace_slash_name(indexer):
    assert indexer.get_by_key("default/a").metadata.name == "a"
    assert indexer.get_by_key("a") is None


def test_list_all_without_selector(indexer):
    names = {c.metadata.name for c in ray_cluster_lister(indexer).list()}
    assert names == {"a", "b", "c"}


def test_list_with_mapping_selector(indexer):
    names = {c.metadata.name for c in ray_cluster_lister(indexer).list({"team": "x"})}
    assert names == {"a", "c"}


def test_list_with_callable_selector(indexer):
    lister = ray_cluster_lister(indexer)
    result = lister.list(lambda labels: labels.get("team") == "y")
    assert [c.metadata.name for c in result] == ["b"]


def test_namespaced_list_filters_namespace(indexer):
    ns = ray_cluster_lister(indexer).namespaced("default")
    assert {c.metadata.name for c in ns.list()} == {"a", "b"}
    assert [c.metadata.name for c in ns.list({"team": "x"})] == ["a"]


def test_empty_namespace_lists_everything(indexer):
    ns = ray_cluster_lister(indexer).namespaced("")
    assert len(ns.list()) == 3


def test_namespaced_get(indexer):
    ns = ray_cluster_lister(indexer).namespaced("other")
    assert ns.get("c").metadata.labels == {"team": "x"}


def test_get_missing_raises_not_found(indexer):
    ns = ray_cluster_lister(indexer).namespaced("other")
    with pytest.raises(NotFoundError) as excinfo:
        ns.get("a")
    assert excinfo.value.resource == "raycluster"
    assert excinfo.value.name == "a"
    assert str(excinfo.value) == 'raycluster.ray.io "a" not found'


def test_add_replaces_and_delete_removes(indexer):
    replacement = _cluster("a", labels={"team": "z"})
    indexer.add(replacement)
    assert len(indexer.list()) == 3
    assert indexer.get_by_key("default/a") is replacement
    indexer.delete(replacement)
    assert indexer.get_by_key("default/a") is None
    assert len(indexer.list()) == 2


def test_job_and_service_listers():
    idx = Indexer()
    idx.add(RayJob(metadata=ObjectMeta(name="job", namespace="default")))
    idx.add(_Service(metadata=ObjectMeta(name="svc", namespace="default")))
    assert ray_job_lister(idx).namespaced("default").get("job").metadata.name == "job"
    svc_ns = ray_service_lister(idx).namespaced("default")
    assert svc_ns.get("svc").metadata.name == "svc"
    with pytest.raises(NotFoundError) as excinfo:
        svc_ns.get("missing")
    assert excinfo.value.resource == "rayservice"