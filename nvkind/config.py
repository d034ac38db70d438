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

"""Settings, option records, and config resolution."""

from __future__ import annotations

import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from nvkind import console, logger
from nvkind.constants import STDIN_PATH, load_default_template, load_default_values
from nvkind.errors import ReadError
from nvkind.gpu import GPUOracle, Nvml
from nvkind.template import render
from nvkind.topology import Topology

# Go duration syntax as accepted by ``kind create cluster --wait``.
WAIT_PATTERN = r"^(\d+(\.\d+)?(ns|us|µs|ms|s|m|h))+$"


# ============================================================================
# Settings
# ============================================================================

class ClusterSettings(BaseSettings):
    """CLI defaults, auto-loaded from KIND_CLUSTER_* env vars.

    Attributes:
        name: Cluster name, or None for the config's name or a generated one.
        image: kindest/node image forced onto every node, or None.
        retain: Keep node containers when creation fails.
        wait: How long kind waits for the control plane, in Go duration syntax.
        config_template: Path to a kind config template, or None for the built-in one.
        config_values: Path to a values file (``-`` for stdin), or None for the built-in one.
        kubeconfig: Kubeconfig path (from KUBECONFIG), or None for the client default.
    """

    model_config = SettingsConfigDict(env_prefix="KIND_CLUSTER_", extra="ignore", populate_by_name=True)

    name: str | None = None
    image: str | None = None
    retain: bool = False
    wait: str | None = Field(default=None, pattern=WAIT_PATTERN)
    config_template: str | None = None
    config_values: str | None = None
    kubeconfig: str | None = Field(default=None, validation_alias="KUBECONFIG")

    def with_overrides(self, **overrides) -> ClusterSettings:
        """Apply CLI overrides, skipping any left at None (CLI > env > default).

        Overrides are validated like values read from the environment.

        Raises:
            pydantic.ValidationError: If an override is invalid (e.g. a malformed ``wait``).
        """
        update = {key: value for key, value in overrides.items() if value is not None}
        if not update:
            return self
        return self.model_validate({**self.model_dump(), **update})


# ============================================================================
# Document sources
# ============================================================================

@dataclass(frozen=True)
class PathSource:
    """Read a document from a file, or from stdin when path is ``-``."""

    path: str


@dataclass(frozen=True)
class BytesSource:
    """Use literal document content."""

    data: bytes


Source = PathSource | BytesSource


def pick_source(data: bytes | None = None, path: str | None = None) -> Source | None:
    """Choose a document source: literal bytes win over a path."""
    if data is not None:
        return BytesSource(data)
    if path:
        return PathSource(path)
    return None


def read_source(source: Source | None, default: Callable[[], bytes], stdin: BinaryIO | None = None) -> bytes:
    """Return the content of a document source.

    Args:
        source: Where to read from, or None for the built-in default.
        default: Loader for the built-in default document.
        stdin: Stream read for ``-``; the process's stdin when None.

    Returns:
        Raw document bytes.

    Raises:
        ReadError: If the file or stream cannot be read.
    """
    if source is None:
        return default()
    if isinstance(source, BytesSource):
        return source.data
    if source.path == STDIN_PATH:
        stream = stdin if stdin is not None else sys.stdin.buffer
        try:
            return stream.read()
        except OSError as err:
            raise ReadError(f"reading stdin: {err}") from err
    try:
        return Path(source.path).read_bytes()
    except OSError as err:
        raise ReadError(f"reading file {source.path}: {err}") from err


# ============================================================================
# Option records
# ============================================================================

@dataclass(frozen=True)
class ConfigOptions:
    """Inputs for resolving a Topology.

    Attributes:
        template: Template source; None uses ``default_template``.
        values: Values source; None uses ``default_values``.
        image: Node image forced onto every node, or None.
        default_name: Name used when the rendered config has none, or None for ``nvkind-<random>``.
        funcs: Extra template functions.
        oracle: GPU oracle behind ``numGPUs()``.
        default_template: Loader for the built-in template.
        default_values: Loader for the built-in values document.
        stdin: Stream used for the ``-`` path, or None for the process's stdin.
    """

    template: Source | None = None
    values: Source | None = None
    image: str | None = None
    default_name: str | None = None
    funcs: Mapping[str, Callable] = field(default_factory=dict)
    oracle: GPUOracle = field(default_factory=Nvml)
    default_template: Callable[[], bytes] = load_default_template
    default_values: Callable[[], bytes] = load_default_values
    stdin: BinaryIO | None = None


@dataclass(frozen=True)
class ClusterOptions:
    """Inputs for building a Cluster handle.

    Attributes:
        name: Cluster name; overrides the topology's name when both are given.
        topology: Requested topology, or None to use the persisted or default one.
        kubeconfig: Kubeconfig path, or None for the client default.
    """

    name: str | None = None
    topology: Topology | None = None
    kubeconfig: str | None = None


@dataclass(frozen=True)
class CreateOptions:
    """Flags passed through to ``kind create cluster``.

    Attributes:
        retain: Pass ``--retain`` to keep nodes on failure.
        wait: Pass ``--wait <duration>``, or None to not wait.
    """

    retain: bool = False
    wait: str | None = None


# ============================================================================
# Config resolution
# ============================================================================

def resolve_config(options: ConfigOptions | None = None) -> Topology:
    """Read the template and values documents and render them into a Topology.

    Args:
        options: Resolution inputs, or None for all defaults.

    Returns:
        The rendered topology.

    Raises:
        ReadError: If a source cannot be read.
        DecodeError: If the values document is invalid.
        ConfigError: If rendering or parsing the config fails.
        OracleError: If the template asks for the GPU count and NVML fails.
    """
    if options is None:
        options = ConfigOptions()
    template = read_source(options.template, options.default_template, options.stdin)
    values = read_source(options.values, options.default_values, options.stdin)
    logger.debug("Resolving config (template=%s, values=%s)", options.template, options.values)
    return render(
        template,
        values,
        oracle=options.oracle,
        funcs=options.funcs,
        default_name=options.default_name,
        image=options.image,
    )


# ============================================================================
# Display
# ============================================================================

def display_topology(topology: Topology) -> None:
    """Print the cluster config about to be used."""
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print(f"  name            : {topology.name}")
    for index, node in enumerate(topology.node_list()):
        devices = [
            Path(mount.container_path).name
            for mount in node.extra_mounts or []
            if mount.container_path
        ]
        console.print(
            f"  node {index:<11}: {node.role} image={node.image or '(kind default)'}"
            f" mounts={','.join(devices) or '-'}"
        )
