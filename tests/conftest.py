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

"""Shared fakes for nvkind's external collaborators."""

from __future__ import annotations

import os

import pytest

from nvkind.config import CreateOptions
from nvkind.errors import LifecycleError, MetadataError, OracleError, PersistError
from nvkind.topology import Mount, NodeConfig, Topology


class FakeOracle:
    """GPU oracle reporting a fixed count and recording every call."""

    def __init__(self, count: int = 0, fail_on: str | None = None) -> None:
        self.count = count
        self.fail_on = fail_on
        self.calls: list[str] = []

    def init(self) -> None:
        self.calls.append("init")
        if self.fail_on == "init":
            raise OracleError("nvmlInit", 9)

    def shutdown(self) -> None:
        self.calls.append("shutdown")

    def device_get_count(self) -> int:
        self.calls.append("count")
        if self.fail_on == "count":
            raise OracleError("nvmlDeviceGetCount", 3)
        return self.count


class FakeExec:
    """Container exec returning queued results, (0, "") once the queue is empty."""

    def __init__(self, results: list[tuple[int, str]] | None = None) -> None:
        self.results = list(results or [])
        self.calls: list[tuple[str, list[str]]] = []

    def run(self, container: str, command: list[str]) -> tuple[int, str]:
        self.calls.append((container, command))
        if self.results:
            return self.results.pop(0)
        return 0, ""

    def scripts(self, container: str | None = None) -> list[str]:
        return [
            command[2]
            for name, command in self.calls
            if command[:2] == ["bash", "-c"] and (container is None or name == container)
        ]


class FakeLifecycle:
    """In-memory kind."""

    def __init__(self, names=(), nodes: dict[str, list[str]] | None = None, fail_create: bool = False) -> None:
        self.names = set(names)
        self.nodes = dict(nodes or {})
        self.fail_create = fail_create
        self.created: list[tuple[str, str, CreateOptions | None]] = []
        self.deleted: list[str] = []

    def list_names(self) -> set[str]:
        return set(self.names)

    def get_node_names(self, name: str) -> list[str]:
        return list(self.nodes.get(name, []))

    def create(self, name: str, config: str, options: CreateOptions | None = None) -> None:
        if self.fail_create:
            raise LifecycleError(f"kind create cluster --name {name}", "boom")
        self.created.append((name, config, options))
        self.names.add(name)

    def delete(self, name: str) -> None:
        self.deleted.append(name)
        self.names.discard(name)


class FakeStore:
    """In-memory cluster config store."""

    def __init__(self, data: dict[str, str] | None = None, fail_write: bool = False) -> None:
        self.data = dict(data or {})
        self.fail_write = fail_write
        self.writes: list[tuple[str, str]] = []

    def read(self, cluster_name: str) -> str:
        if cluster_name not in self.data:
            raise MetadataError(f"no config stored for {cluster_name}")
        return self.data[cluster_name]

    def write(self, cluster_name: str, data: str) -> None:
        if self.fail_write:
            raise PersistError(f"writing config to {cluster_name}")
        self.writes.append((cluster_name, data))
        self.data[cluster_name] = data


def gpu_mount(device: str | int) -> Mount:
    return Mount(host_path="/dev/null", container_path=f"/var/run/nvidia-container-devices/{device}")


def make_topology(name: str | None = "demo", workers: list[list[str | int]] | None = None) -> Topology:
    """A control-plane node plus one worker per entry of ``workers`` (its GPU devices)."""
    nodes = [NodeConfig(role="control-plane")]
    for devices in workers or []:
        mounts = [gpu_mount(device) for device in devices] or None
        nodes.append(NodeConfig(role="worker", extra_mounts=mounts))
    return Topology(name=name, nodes=nodes)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the caller's KIND_CLUSTER_* and KUBECONFIG settings out of tests."""
    monkeypatch.delenv("KUBECONFIG", raising=False)
    for key in list(os.environ):
        if key.startswith("KIND_CLUSTER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def oracle():
    return FakeOracle(count=2)


@pytest.fixture
def executor():
    return FakeExec()
