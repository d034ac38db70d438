# /*
# Copyright 2026 The nvkind Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Tests for the orchestration workflows."""

import io
from unittest.mock import patch

import pytest
from kubernetes.config.config_exception import ConfigException

from conftest import FakeExec, FakeLifecycle, FakeOracle, FakeStore, make_topology
from nvkind.config import ClusterSettings
from nvkind.constants import INSTALL_TOOLKIT_SCRIPT
from nvkind.errors import ConflictError, ContextError, ScriptError, UnknownClusterError
from nvkind.orchestrator import (
    run_cluster_create,
    run_cluster_delete,
    run_cluster_list,
    run_print_gpus,
)
from nvkind.topology import Topology

NODES = {"demo": ["demo-control-plane", "demo-worker", "demo-worker2"]}
GPU_OUTPUT = "0, NVIDIA H100 80GB HBM3, GPU-aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee\n"


@pytest.fixture
def values_file(tmp_path):
    path = tmp_path / "values.yaml"
    path.write_text("workers:\n- devices: [0]\n- devices: [1]\n")
    return path


def current_context(name):
    return patch(
        "nvkind.orchestrator.kube_config.list_kube_config_contexts",
        return_value=([], {"name": name}),
    )


class TestCreate:
    """Tests for run_cluster_create."""

    def test_creates_and_enables_gpu_nodes(self, values_file):
        lifecycle, store, executor = FakeLifecycle(nodes=NODES), FakeStore(), FakeExec()
        settings = ClusterSettings(name="demo", config_values=str(values_file), wait="30s")
        cluster = run_cluster_create(
            settings,
            lifecycle=lifecycle,
            store=store,
            oracle=FakeOracle(count=2),
            executor=executor,
            check_prerequisites=False,
        )
        assert cluster.name == "demo"
        name, config, options = lifecycle.created[0]
        assert name == "demo"
        assert options.wait == "30s"
        assert Topology.from_yaml(config).equivalent(cluster.topology)
        assert store.writes == [("demo", config)]

        assert executor.scripts("demo-control-plane") == []
        assert "rm -rf /dev/nvidia1" in executor.scripts("demo-worker")[-1]
        assert "rm -rf /dev/nvidia0" in executor.scripts("demo-worker2")[-1]
        assert [container for container, _ in executor.calls][:1] == ["demo-worker"]

    def test_existing_cluster_skips_create(self):
        persisted = make_topology(workers=[[0], [1]])
        lifecycle = FakeLifecycle({"demo"}, nodes=NODES)
        executor = FakeExec()
        run_cluster_create(
            ClusterSettings(name="demo"),
            lifecycle=lifecycle,
            store=FakeStore({"demo": persisted.to_yaml()}),
            oracle=FakeOracle(count=2),
            executor=executor,
            check_prerequisites=False,
        )
        assert lifecycle.created == []
        assert INSTALL_TOOLKIT_SCRIPT in executor.scripts("demo-worker")
        assert INSTALL_TOOLKIT_SCRIPT in executor.scripts("demo-worker2")

    def test_conflicting_config(self, values_file):
        persisted = make_topology(workers=[["all"]])
        with pytest.raises(ConflictError):
            run_cluster_create(
                ClusterSettings(name="demo", config_values=str(values_file)),
                lifecycle=FakeLifecycle({"demo"}, nodes=NODES),
                store=FakeStore({"demo": persisted.to_yaml()}),
                oracle=FakeOracle(count=2),
                executor=FakeExec(),
                check_prerequisites=False,
            )

    def test_node_failure_is_annotated(self, values_file):
        executor = FakeExec([(1, "apt failed")])
        with pytest.raises(ScriptError) as exc_info:
            run_cluster_create(
                ClusterSettings(name="demo", config_values=str(values_file)),
                lifecycle=FakeLifecycle(nodes=NODES),
                store=FakeStore(),
                oracle=FakeOracle(count=2),
                executor=executor,
                check_prerequisites=False,
            )
        assert exc_info.value.__notes__ == ["installing container toolkit on node 'demo-worker'"]
        assert {container for container, _ in executor.calls} == {"demo-worker"}

    def test_values_from_stdin(self):
        lifecycle = FakeLifecycle(nodes={"piped": ["piped-control-plane", "piped-worker"]})
        cluster = run_cluster_create(
            ClusterSettings(name="piped", config_values="-"),
            stdin=io.BytesIO(b"workers:\n- devices: all\n"),
            lifecycle=lifecycle,
            store=FakeStore(),
            oracle=FakeOracle(count=4),
            executor=FakeExec(),
            check_prerequisites=False,
        )
        assert cluster.get_nodes()[1].visible_devices() == ["all"]

    def test_image_override(self, values_file):
        cluster = run_cluster_create(
            ClusterSettings(name="demo", config_values=str(values_file), image="kindest/node:v1.30.0"),
            lifecycle=FakeLifecycle(nodes=NODES),
            store=FakeStore(),
            oracle=FakeOracle(count=2),
            executor=FakeExec(),
            check_prerequisites=False,
        )
        assert {node.image for node in cluster.topology.node_list()} == {"kindest/node:v1.30.0"}


def test_list():
    assert run_cluster_list(lifecycle=FakeLifecycle({"b", "a"})) == ["a", "b"]


class TestDelete:
    """Tests for run_cluster_delete."""

    def test_by_name(self):
        lifecycle = FakeLifecycle({"demo"})
        run_cluster_delete("demo", lifecycle=lifecycle)
        assert lifecycle.deleted == ["demo"]

    def test_from_context(self):
        lifecycle = FakeLifecycle({"demo"})
        with current_context("kind-demo"):
            run_cluster_delete(None, lifecycle=lifecycle)
        assert lifecycle.deleted == ["demo"]

    def test_unknown_cluster(self):
        with pytest.raises(UnknownClusterError, match="ghost"):
            run_cluster_delete("ghost", lifecycle=FakeLifecycle({"demo"}))


class TestPrintGpus:
    """Tests for run_print_gpus."""

    def test_gpu_nodes_only(self):
        persisted = make_topology(workers=[[0], []])
        lifecycle = FakeLifecycle({"demo"}, nodes=NODES)
        executor = FakeExec([(0, GPU_OUTPUT)])
        with current_context("kind-demo"):
            result = run_print_gpus(
                None,
                lifecycle=lifecycle,
                store=FakeStore({"demo": persisted.to_yaml()}),
                oracle=FakeOracle(count=2),
                executor=executor,
            )
        assert result == [
            {
                "node": "demo-worker",
                "gpus": [{
                    "index": "0",
                    "name": "NVIDIA H100 80GB HBM3",
                    "uuid": "GPU-aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee",
                }],
            },
        ]
        assert [container for container, _ in executor.calls] == ["demo-worker"]

    def test_unknown_cluster(self):
        with pytest.raises(UnknownClusterError):
            run_print_gpus("ghost", lifecycle=FakeLifecycle(), store=FakeStore(),
                           oracle=FakeOracle(), executor=FakeExec())

    def test_context_not_kind(self):
        with current_context("gke_project_zone_prod"), pytest.raises(ContextError, match="not a kind cluster"):
            run_print_gpus(None, lifecycle=FakeLifecycle())

    def test_no_current_context(self):
        with current_context(None), pytest.raises(ContextError, match="no current kubecontext"):
            run_print_gpus(None, lifecycle=FakeLifecycle())

    def test_kubeconfig_unreadable(self):
        with patch(
            "nvkind.orchestrator.kube_config.list_kube_config_contexts",
            side_effect=ConfigException("Invalid kube-config file."),
        ), pytest.raises(ContextError, match="Invalid kube-config"):
            run_print_gpus(None, lifecycle=FakeLifecycle())


class TestDockerClientLifetime:
    """The docker client created for a workflow is closed when it ends."""

    def test_closed_after_print_gpus(self):
        persisted = make_topology(workers=[[0], []])
        with patch("nvkind.orchestrator.DockerExec") as docker_exec_cls:
            docker_exec = docker_exec_cls.return_value
            docker_exec.run.return_value = (0, GPU_OUTPUT)
            result = run_print_gpus(
                "demo",
                lifecycle=FakeLifecycle({"demo"}, nodes=NODES),
                store=FakeStore({"demo": persisted.to_yaml()}),
                oracle=FakeOracle(count=2),
            )
        assert result[0]["node"] == "demo-worker"
        docker_exec.close.assert_called_once_with()

    def test_closed_when_enablement_fails(self, values_file):
        with patch("nvkind.orchestrator.DockerExec") as docker_exec_cls:
            docker_exec = docker_exec_cls.return_value
            docker_exec.run.return_value = (1, "apt failed")
            with pytest.raises(ScriptError):
                run_cluster_create(
                    ClusterSettings(name="demo", config_values=str(values_file)),
                    lifecycle=FakeLifecycle(nodes=NODES),
                    store=FakeStore(),
                    oracle=FakeOracle(count=2),
                    check_prerequisites=False,
                )
        docker_exec.close.assert_called_once_with()
