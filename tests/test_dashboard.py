import base64
import json

import pytest
import responses

from kuberay.dashboard import (
    DashboardError,
    RayDashboardClient,
    RayJobInfo,
    RayJobRequest,
    ServeActorOptions,
    ServeConfig,
    ServeConfigSpec,
    ServeDeploymentGraphSpec,
    ServeDeploymentStatuses,
    convert_ray_job_to_request,
    convert_serve_config,
    dashboard_agent_url,
    dashboard_url,
)
from kuberay.models import ObjectMeta, RayJob, RayJobSpec

RUNTIME_ENV_STR = (
    '{\n    "working_dir": "./",\n    "pip": [\n        "requests==2.26.0",\n'
    '        "pendulum==2.1.2"\n    ],\n    "conda": {\n        "dependencies": [\n'
    '            "pytorch",\n            "torchvision",\n            "pip",\n'
    '            {\n                "pip": [\n                    "pendulum"\n'
    "                ]\n            }\n        ]\n    },\n"
    '    "eager_install": false\n}'
)

BASE = "http://127.0.0.1:8090"
EXPECT_JOB_ID = "raysubmit_test001"


@pytest.fixture
def ray_job():
    encoded = base64.b64encode(RUNTIME_ENV_STR.encode()).decode()
    return RayJob(
        metadata=ObjectMeta(name="rayjob-sample", namespace="default"),
        spec=RayJobSpec(
            entrypoint="python samply.py",
            metadata={"owner": "test1"},
            runtime_env=encoded,
        ),
    )


@pytest.fixture
def client():
    return RayDashboardClient("127.0.0.1:8090")


def test_convert_ray_job_to_request(ray_job):
    request = convert_ray_job_to_request(ray_job)
    assert len(request.runtime_env) == 4
    assert request.runtime_env["working_dir"] == "./"
    assert request.entrypoint == "python samply.py"
    assert request.metadata == {"owner": "test1"}


def test_convert_ray_job_without_runtime_env():
    job = RayJob(spec=RayJobSpec(entrypoint="echo hi"))
    request = convert_ray_job_to_request(job)
    assert request.to_dict() == {"entrypoint": "echo hi"}


def test_convert_ray_job_bad_base64():
    job = RayJob(spec=RayJobSpec(entrypoint="x", runtime_env="!!!not-base64"))
    with pytest.raises(DashboardError, match="decode"):
        convert_ray_job_to_request(job)


def test_convert_ray_job_bad_json():
    encoded = base64.b64encode(b"not json").decode()
    job = RayJob(spec=RayJobSpec(entrypoint="x", runtime_env=encoded))
    with pytest.raises(DashboardError, match="unmarshal"):
        convert_ray_job_to_request(job)


def test_submit_and_get_job(client, ray_job):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/api/jobs/", json={"job_id": EXPECT_JOB_ID})
        rsps.add(
            responses.GET,
            BASE + "/api/jobs/" + EXPECT_JOB_ID,
            json={
                "status": "RUNNING",
                "entrypoint": ray_job.spec.entrypoint,
                "metadata": ray_job.spec.metadata,
            },
        )
        job_id = client.submit_job(ray_job)
        info = client.get_job_info(job_id)
        sent = json.loads(rsps.calls[0].request.body)
    assert job_id == EXPECT_JOB_ID
    assert info.entrypoint == ray_job.spec.entrypoint
    assert info.job_status == "RUNNING"
    assert info.metadata == {"owner": "test1"}
    assert sent["entrypoint"] == "python samply.py"
    assert sent["runtime_env"]["working_dir"] == "./"


def test_get_job_info_not_found(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, BASE + "/api/jobs/missing", status=404)
        assert client.get_job_info("missing") is None


def test_get_deployments_ok_and_error(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, BASE + "/api/serve/deployments/", body="deployments")
        assert client.get_deployments() == "deployments"
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, BASE + "/api/serve/deployments/", status=500, body="boom")
        with pytest.raises(DashboardError, match="GetDeployments fail: 500"):
            client.get_deployments()


def test_get_deployments_status(client):
    payload = {
        "app_status": {"status": "RUNNING"},
        "deployment_statuses": [{"name": "shallow", "status": "HEALTHY"}],
    }
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, BASE + "/api/serve/deployments/status", json=payload)
        statuses = client.get_deployments_status()
    assert statuses.app_status == {"status": "RUNNING"}
    assert statuses.deployment_statuses[0]["name"] == "shallow"


def test_update_deployments_sends_body(client):
    spec = ServeDeploymentGraphSpec(
        import_path="fruit.deployment_graph",
        runtime_env="working_dir: ./",
        serve_config_specs=[ServeConfig(name="MangoStand", num_replicas=1, user_config="price: 3")],
    )
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, BASE + "/api/serve/deployments/")
        result = client.update_deployments(spec)
        request = rsps.calls[0].request
        call_count = len(rsps.calls)
    assert result is None
    assert call_count == 1
    body = json.loads(request.body)
    assert request.headers["Content-Type"] == "application/json"
    assert body["import_path"] == "fruit.deployment_graph"
    assert body["runtime_env"] == {"working_dir": "./"}
    assert body["deployments"] == [
        {"name": "MangoStand", "num_replicas": 1, "user_config": {"price": 3}, "ray_actor_options": {}}
    ]


def test_update_deployments_error(client):
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, BASE + "/api/serve/deployments/", status=400, body="bad")
        with pytest.raises(DashboardError, match="UpdateDeployments fail"):
            client.update_deployments(ServeDeploymentGraphSpec(import_path="a.b"))


def test_convert_serve_config_fields():
    config = ServeConfig(
        name="d",
        route_prefix="/d",
        autoscaling_config="min_replicas: 1",
        graceful_shutdown_timeout_s=5,
        health_check_timeout_s=99,
        ray_actor_options=ServeActorOptions(
            num_cpus=0.5, resources="custom: 2", runtime_env="bad: [yaml", accelerator_type="T4"
        ),
    )
    (spec,) = convert_serve_config([config])
    assert spec.autoscaling_config == {"min_replicas": 1}
    assert spec.health_check_timeout_s == 5
    assert spec.ray_actor_options.runtime_env == {}
    assert spec.ray_actor_options.to_dict() == {
        "num_cpus": 0.5,
        "resources": {"custom": 2},
        "accelerator_type": "T4",
    }


def test_client_convert_serve_config_matches_function(client):
    configs = [ServeConfig(name="a"), ServeConfig(name="b", num_replicas=2)]
    assert client.convert_serve_config(configs) == convert_serve_config(configs)


def test_serve_config_spec_to_dict_minimal():
    assert ServeConfigSpec(name="x").to_dict() == {"name": "x", "ray_actor_options": {}}


def test_ray_job_request_to_dict():
    request = RayJobRequest(entrypoint="e", job_id="j", metadata={"k": "v"})
    assert request.to_dict() == {"entrypoint": "e", "job_id": "j", "metadata": {"k": "v"}}


def test_ray_job_info_from_dict():
    info = RayJobInfo.from_dict({"status": "SUCCEEDED", "start_time": 10, "error_type": "x"})
    assert (info.job_status, info.start_time, info.end_time, info.error_type) == (
        "SUCCEEDED",
        10,
        0,
        "x",
    )


def test_statuses_from_dict_rejects_non_object():
    with pytest.raises(DashboardError):
        ServeDeploymentStatuses.from_dict([1, 2])


def test_dashboard_url():
    url = dashboard_url("c-head-svc", "default", {"client": 10001, "dashboard": 8265})
    assert url == "c-head-svc.default.svc.cluster.local:8265"


def test_dashboard_agent_url_from_pairs():
    url = dashboard_agent_url("c-dashboard-svc", "ns", [("dashboard-agent", 52365)])
    assert url == "c-dashboard-svc.ns.svc.cluster.local:52365"


def test_dashboard_url_missing_port():
    with pytest.raises(DashboardError, match="dashboard port not found"):
        dashboard_url("svc", "default", {"client": 10001})