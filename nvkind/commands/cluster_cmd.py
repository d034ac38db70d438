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

"""Cluster subcommands (list, create, delete, print-gpus)."""

from __future__ import annotations

import json

import typer

from nvkind.config import ClusterSettings
from nvkind.orchestrator import (
    run_cluster_create,
    run_cluster_delete,
    run_cluster_list,
    run_print_gpus,
)

app = typer.Typer(help="Perform operations on clusters with NVIDIA GPUs.", no_args_is_help=True)

KUBECONFIG_HELP = (
    "Absolute path to the kubeconfig file. "
    "Either this flag or the KUBECONFIG env variable need to be set."
)


@app.command("list")
def list_clusters() -> None:
    """List all kind clusters (whether they have GPUs on them or not)."""
    names = run_cluster_list()
    if not names:
        typer.echo("No kind clusters found.")
    for name in names:
        typer.echo(name)


@app.command()
def create(
    name: str | None = typer.Option(
        None, "--name", help="Name of the cluster to create (default nvkind-<random>)"),
    image: str | None = typer.Option(
        None, "--image", help="Node docker image to use for booting the cluster"),
    retain: bool = typer.Option(
        False, "--retain", help="Retain nodes for debugging when cluster creation fails"),
    wait: str | None = typer.Option(
        None, "--wait", help="Wait for control plane node to be ready (e.g. 60s, 5m)"),
    config_template: str | None = typer.Option(
        None, "--config-template", help="Path to a custom kind config template"),
    config_values: str | None = typer.Option(
        None, "--config-values", help="Path to a values file for the config template ('-' for stdin)"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help=KUBECONFIG_HELP),
) -> None:
    """Create a cluster with support for NVIDIA GPUs."""
    settings = ClusterSettings().with_overrides(
        name=name,
        image=image,
        retain=retain or None,
        wait=wait,
        config_template=config_template,
        config_values=config_values,
        kubeconfig=kubeconfig,
    )
    run_cluster_create(settings)


@app.command()
def delete(
    name: str | None = typer.Option(None, "--name", help="Name of the cluster to delete"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help=KUBECONFIG_HELP),
) -> None:
    """Delete a cluster."""
    settings = ClusterSettings().with_overrides(name=name, kubeconfig=kubeconfig)
    run_cluster_delete(settings.name, settings.kubeconfig)


@app.command("print-gpus")
def print_gpus(
    name: str | None = typer.Option(None, "--name", help="Name of the cluster to print GPUs for"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help=KUBECONFIG_HELP),
) -> None:
    """Print all NVIDIA GPUs available in a cluster."""
    settings = ClusterSettings().with_overrides(name=name, kubeconfig=kubeconfig)
    node_gpus = run_print_gpus(settings.name, settings.kubeconfig)
    typer.echo(json.dumps(node_gpus, indent=4))
