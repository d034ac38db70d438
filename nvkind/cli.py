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

"""
cli.py - kind for use with NVIDIA GPUs.

Subcommands:
    cluster list        List all kind clusters
    cluster create      Create a cluster and enable GPUs on its nodes
    cluster delete      Delete a cluster
    cluster print-gpus  Print the GPUs visible on each GPU node

Environment Variables:
    Flags default from KIND_CLUSTER_* environment variables:
    - KIND_CLUSTER_NAME, KIND_CLUSTER_IMAGE, KIND_CLUSTER_RETAIN, KIND_CLUSTER_WAIT
    - KIND_CLUSTER_CONFIG_TEMPLATE, KIND_CLUSTER_CONFIG_VALUES
    - KUBECONFIG

Examples:
    # One worker per GPU on the host
    nvkind cluster create

    # Custom values, read from stdin
    cat values.yaml | nvkind cluster create --name gpus --config-values -

    # Show which GPUs each node sees
    nvkind cluster print-gpus --name gpus
"""

from __future__ import annotations

import logging
import sys
from importlib.metadata import PackageNotFoundError, version

import typer
from rich.markup import escape

from nvkind import console
from nvkind.commands import cluster_cmd

app = typer.Typer(
    help="kind for use with NVIDIA GPUs.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if not value:
        return
    try:
        typer.echo(version("nvkind"))
    except PackageNotFoundError:
        typer.echo("devel")
    raise typer.Exit()


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    show_version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print the version and exit"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(cluster_cmd.app, name="cluster")


def format_error(err: BaseException) -> str:
    """Render an error with any context notes added while it propagated."""
    return "\n".join([str(err), *(f"  while {note}" for note in getattr(err, "__notes__", []))])


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {escape(format_error(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
