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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import BinaryIO

from kubernetes import config as kube_config
from kubernetes.config.config_exception import ConfigException
from rich.panel import Panel

from nvkind import console
from nvkind.cluster import Cluster, new_cluster
from nvkind.config import (
    ClusterOptions,
    ClusterSettings,
    ConfigOptions,
    CreateOptions,
    PathSource,
    display_topology,
    pick_source,
    resolve_config,
)
from nvkind.errors import ContextError, NvkindError, UnknownClusterError
from nvkind.gpu import GPUOracle, Nvml
from nvkind.kind import KindCli
from nvkind.metadata import MetadataStore
from nvkind.node import ContainerExec, DockerExec, Node
from nvkind.reconcile import LifecycleDriver
from nvkind.utils import cluster_name_from_context, require_command

# ============================================================================
# Internal helpers
# ============================================================================


def _check_prerequisites() -> None:
    """Check that the kind and docker CLIs are installed."""
    for cmd in ("kind", "docker"):
        require_command(cmd)


def _requested_topology(settings: ClusterSettings, oracle: GPUOracle, stdin: BinaryIO | None):
    """Render a config only when the caller asked for a template, values, or image.

    Without any of them the existing cluster's config (or the default) applies.
    """
    if not (settings.config_template or settings.config_values or settings.image):
        return None
    options = ConfigOptions(
        template=PathSource(settings.config_template) if settings.config_template else None,
        values=pick_source(path=settings.config_values),
        image=settings.image,
        oracle=oracle,
        stdin=stdin,
    )
    return resolve_config(options)


@contextmanager
def _container_exec(executor: ContainerExec | None) -> Iterator[ContainerExec]:
    """Yield the given executor, or a docker client that is closed on exit."""
    if executor is not None:
        yield executor
        return
    docker_exec = DockerExec()
    try:
        yield docker_exec
    finally:
        docker_exec.close()


def _enable_node(node: Node) -> None:
    """Run the GPU enablement steps on one node, noting the node on failure."""
    steps = (
        ("installing container toolkit", node.install_container_toolkit),
        ("configuring container runtime", node.configure_container_runtime),
        ("patching /proc/driver/nvidia", node.patch_proc_driver_nvidia),
    )
    for description, step in steps:
        console.print(f"[yellow]\u2139\ufe0f  {node.name}: {description}...[/yellow]")
        try:
            step()
        except NvkindError as err:
            err.add_note(f"{description} on node '{node.name}'")
            raise
    console.print(f"[green]\u2705 {node.name}: GPUs enabled[/green]")


def _resolve_cluster_name(name: str | None, kubeconfig: str | None) -> str:
    """Return the cluster name, inferring it from the current kube context if unset."""
    if name:
        return name
    try:
        _, current = kube_config.list_kube_config_contexts(config_file=kubeconfig)
    except ConfigException as err:
        raise ContextError(f"loading kubeconfig: {err}") from err
    if not current or not current.get("name"):
        raise ContextError("no current kubecontext set")
    inferred = cluster_name_from_context(current["name"])
    if inferred is None:
        raise ContextError(f"current kubecontext is not a kind cluster: {current['name']}")
    return inferred


# ============================================================================
# Public API
# ============================================================================


def run_cluster_list(*, lifecycle: LifecycleDriver | None = None) -> list[str]:
    """Return all kind clusters, sorted, whether or not they have GPUs."""
    lifecycle = lifecycle or KindCli()
    return sorted(lifecycle.list_names())


def run_cluster_create(
    settings: ClusterSettings,
    *,
    stdin: BinaryIO | None = None,
    lifecycle: LifecycleDriver | None = None,
    store: MetadataStore | None = None,
    oracle: GPUOracle | None = None,
    executor: ContainerExec | None = None,
    check_prerequisites: bool = True,
) -> Cluster:
    """Create a kind cluster and enable GPUs on every node that was granted some.

    If the cluster already exists with the same config, creation is skipped
    and only the (idempotent) node enablement runs again. Nodes are processed
    one at a time; a failure stops the run without undoing earlier nodes.

    Args:
        settings: Resolved CLI/env settings.
        stdin: Stream read for ``--config-values -``.
        lifecycle: kind driver override.
        store: Config store override.
        oracle: GPU oracle override.
        executor: Container exec override.
        check_prerequisites: Whether to verify kind and docker are installed.

    Returns:
        The cluster handle.

    Raises:
        NvkindError: If any step fails.
    """
    if check_prerequisites:
        console.print(Panel.fit("Checking prerequisites", style="bold blue"))
        _check_prerequisites()
    oracle = oracle or Nvml()
    candidate = _requested_topology(settings, oracle, stdin)
    with _container_exec(executor) as executor:
        cluster = new_cluster(
            ClusterOptions(name=settings.name, topology=candidate, kubeconfig=settings.kubeconfig),
            lifecycle=lifecycle,
            store=store,
            oracle=oracle,
            executor=executor,
        )
        display_topology(cluster.topology)

        if cluster.exists():
            console.print(f"[yellow]\u2139\ufe0f  Cluster '{cluster.name}' already exists with this config[/yellow]")
        else:
            console.print(Panel.fit(f"Creating kind cluster '{cluster.name}'", style="bold blue"))
            cluster.create(CreateOptions(retain=settings.retain, wait=settings.wait))
            console.print("[green]\u2705 Cluster created successfully[/green]")

        gpu_nodes = [node for node in cluster.get_nodes() if node.has_gpus()]
        if gpu_nodes:
            console.print(Panel.fit("Enabling GPUs on nodes", style="bold blue"))
        for node in gpu_nodes:
            _enable_node(node)
    return cluster


def run_cluster_delete(
    name: str | None,
    kubeconfig: str | None = None,
    *,
    lifecycle: LifecycleDriver | None = None,
) -> None:
    """Delete a kind cluster.

    Args:
        name: Cluster name, or None to infer it from the current kube context.
        kubeconfig: Kubeconfig path, or None for the client default.

    Raises:
        ContextError: If no name is given and none can be inferred.
        UnknownClusterError: If no cluster has that name.
    """
    lifecycle = lifecycle or KindCli()
    name = _resolve_cluster_name(name, kubeconfig)
    if name not in lifecycle.list_names():
        raise UnknownClusterError(f"unknown cluster: {name}")
    console.print(f"[yellow]\u2139\ufe0f  Deleting kind cluster '{name}'...[/yellow]")
    lifecycle.delete(name)
    console.print(f"[green]\u2705 Cluster '{name}' deleted[/green]")


def run_print_gpus(
    name: str | None,
    kubeconfig: str | None = None,
    *,
    lifecycle: LifecycleDriver | None = None,
    store: MetadataStore | None = None,
    oracle: GPUOracle | None = None,
    executor: ContainerExec | None = None,
) -> list[dict]:
    """Collect the GPUs visible on each GPU node of a cluster.

    Args:
        name: Cluster name, or None to infer it from the current kube context.
        kubeconfig: Kubeconfig path, or None for the client default.

    Returns:
        ``[{"node": <name>, "gpus": [{"index", "name", "uuid"}, ...]}, ...]``

    Raises:
        ContextError: If no name is given and none can be inferred.
        UnknownClusterError: If the cluster does not exist.
    """
    lifecycle = lifecycle or KindCli()
    name = _resolve_cluster_name(name, kubeconfig)
    if name not in lifecycle.list_names():
        raise UnknownClusterError(f"unknown cluster: {name}")

    result = []
    with _container_exec(executor) as executor:
        cluster = new_cluster(
            ClusterOptions(name=name, kubeconfig=kubeconfig),
            lifecycle=lifecycle,
            store=store,
            oracle=oracle,
            executor=executor,
        )
        for node in cluster.get_nodes():
            if not node.has_gpus():
                continue
            try:
                gpus = node.get_gpu_info()
            except NvkindError as err:
                err.add_note(f"getting GPU info on node '{node.name}'")
                raise
            result.append({"node": node.name, "gpus": [asdict(gpu) for gpu in gpus]})
    return result
