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

"""Cluster handle: create, delete, and enumerate the nodes of a kind cluster."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from nvkind import logger
from nvkind.config import ClusterOptions, ConfigOptions, CreateOptions, resolve_config
from nvkind.gpu import GPUOracle, Nvml
from nvkind.inventory import build_inventory
from nvkind.kind import KindCli
from nvkind.metadata import ConfigMapStore, MetadataStore
from nvkind.node import ContainerExec, DockerExec, Node
from nvkind.reconcile import LifecycleDriver, reconcile
from nvkind.topology import Topology


@dataclass
class Cluster:
    """A named kind cluster and the config that governs it.

    Built per invocation from live kind state; never cached.

    Attributes:
        name: Cluster name.
        topology: The cluster's config.
        lifecycle: kind driver.
        store: Where the config is persisted inside the cluster.
        oracle: GPU oracle handed to nodes.
        executor: Container exec handed to nodes.
    """

    name: str
    topology: Topology
    lifecycle: LifecycleDriver = field(default_factory=KindCli)
    store: MetadataStore = field(default_factory=ConfigMapStore)
    oracle: GPUOracle = field(default_factory=Nvml)
    executor: ContainerExec = field(default_factory=DockerExec)

    def exists(self) -> bool:
        return self.name in self.lifecycle.list_names()

    def create(self, options: CreateOptions | None = None) -> None:
        """Create the cluster with kind, then record its config inside it.

        The config is written only once kind reports success.

        Raises:
            LifecycleError: If kind fails; nothing is persisted.
            PersistError: If the cluster was created but its config could not be stored.
        """
        config = self.topology.to_yaml()
        self.lifecycle.create(self.name, config, options)
        logger.info("Cluster %s created; storing its config", self.name)
        self.store.write(self.name, config)

    def delete(self) -> None:
        self.lifecycle.delete(self.name)

    def get_nodes(self) -> list[Node]:
        """Return the cluster's nodes, control-plane first, paired with their declarations."""
        return build_inventory(
            self.lifecycle.get_node_names(self.name),
            self.topology,
            oracle=self.oracle,
            executor=self.executor,
        )


def new_cluster(
    options: ClusterOptions | None = None,
    *,
    lifecycle: LifecycleDriver | None = None,
    store: MetadataStore | None = None,
    oracle: GPUOracle | None = None,
    executor: ContainerExec | None = None,
    render_default: Callable[[], Topology] | None = None,
) -> Cluster:
    """Build a Cluster handle, reconciling the requested config with live state.

    Args:
        options: Name, requested topology, and kubeconfig.
        lifecycle: kind driver, or None for the ``kind`` CLI.
        store: Config store, or None for the in-cluster ConfigMap.
        oracle: GPU oracle, or None for NVML.
        executor: Container exec, or None for docker.
        render_default: Produces the default config, or None to render the
            built-in template.

    Returns:
        The cluster handle.

    Raises:
        ConflictError: If a different config is requested for an existing cluster.
    """
    if options is None:
        options = ClusterOptions()
    lifecycle = lifecycle or KindCli()
    store = store or ConfigMapStore(options.kubeconfig)
    oracle = oracle or Nvml()
    executor = executor or DockerExec()
    if render_default is None:
        render_default = lambda: resolve_config(ConfigOptions(oracle=oracle))  # noqa: E731

    topology = reconcile(
        options.name,
        options.topology,
        lifecycle=lifecycle,
        store=store,
        render_default=render_default,
    )
    return Cluster(
        name=topology.name,
        topology=topology,
        lifecycle=lifecycle,
        store=store,
        oracle=oracle,
        executor=executor,
    )
