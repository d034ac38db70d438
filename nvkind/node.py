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

"""Node handles and the per-node GPU enablement steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Protocol

import docker

from nvkind import logger
from nvkind.constants import (
    ALL_DEVICES,
    CONFIGURE_RUNTIME_SCRIPT,
    GPU_DEVICE_MOUNT_DIR,
    GPU_QUERY_FIELDS,
    GPU_QUERY_SEPARATOR,
    INSTALL_TOOLKIT_SCRIPT,
    NULL_DEVICE,
    PATCH_DRIVER_PARAMS_SCRIPT,
    REMOVE_DEVICE_NODE_SCRIPT,
    UNMASK_PROC_DRIVER_SCRIPT,
)
from nvkind.errors import ParseError, ScriptError
from nvkind.gpu import GPUOracle, Nvml, count_gpus
from nvkind.topology import NodeConfig


# ============================================================================
# Container exec
# ============================================================================

class ContainerExec(Protocol):
    """Runs commands inside a running container."""

    def run(self, container: str, command: list[str]) -> tuple[int, str]: ...


class DockerExec:
    """ContainerExec backed by the docker SDK. The client is created on first use."""

    def __init__(self, docker_client: docker.DockerClient | None = None) -> None:
        self._client = docker_client

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    def run(self, container: str, command: list[str]) -> tuple[int, str]:
        """Run a command in a container and return (exit_code, combined_output).

        Raises:
            ScriptError: If docker cannot reach the container.
        """
        try:
            result = self.client.containers.get(container).exec_run(command)
        except docker.errors.DockerException as err:
            raise ScriptError(container, message=f"exec in {container}: {err}") from err
        output = (result.output or b"").decode(errors="replace")
        return result.exit_code, output

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


# ============================================================================
# Node
# ============================================================================

@dataclass(frozen=True)
class GPUInfo:
    """One GPU as seen from inside a node."""

    index: str
    name: str
    uuid: str


@dataclass
class Node:
    """A running cluster node paired with its declaration from the cluster config.

    Attributes:
        name: Node container name (e.g. ``nvkind-abcde-worker2``).
        config: The node's declaration, including its GPU device mounts.
        oracle: GPU oracle used to count devices on the host.
        executor: Runs commands inside the node container.
    """

    name: str
    config: NodeConfig
    oracle: GPUOracle = field(default_factory=Nvml)
    executor: ContainerExec = field(default_factory=DockerExec)

    @property
    def role(self) -> str:
        return self.config.role

    def visible_devices(self) -> list[str]:
        """Return the GPU devices granted to this node through its extra mounts.

        A grant is a mount of ``/dev/null`` onto
        ``/var/run/nvidia-container-devices/<device>``; the device is the last path
        segment, a GPU index or ``all``.
        """
        root = PurePosixPath(GPU_DEVICE_MOUNT_DIR)
        devices = []
        for mount in self.config.extra_mounts or []:
            if mount.host_path != NULL_DEVICE:
                continue
            path = PurePosixPath(mount.container_path)
            if path == root or not path.is_relative_to(root):
                continue
            devices.append(path.name)
        return devices

    def has_gpus(self) -> bool:
        return bool(self.visible_devices())

    def run_script(self, script: str) -> str:
        """Run a bash script inside the node and return its output.

        Raises:
            ScriptError: If the script exits non-zero.
        """
        exit_code, output = self.executor.run(self.name, ["bash", "-c", script])
        if output:
            logger.debug("[%s] %s", self.name, output.rstrip())
        if exit_code != 0:
            raise ScriptError(self.name, output, f"running script on {self.name} failed (exit code {exit_code})")
        return output

    def install_container_toolkit(self) -> None:
        self.run_script(INSTALL_TOOLKIT_SCRIPT)

    def configure_container_runtime(self) -> None:
        """Make the NVIDIA runtime containerd's default and restart containerd."""
        self.run_script(CONFIGURE_RUNTIME_SCRIPT)

    def patch_proc_driver_nvidia(self) -> None:
        """Unmask /proc/driver/nvidia, pin its params, then prune device nodes.

        The params copy has ``ModifyDeviceFiles`` switched off so the driver
        shim does not recreate the device nodes that pruning removes.
        """
        self.run_script(UNMASK_PROC_DRIVER_SCRIPT)
        self.run_script(PATCH_DRIVER_PARAMS_SCRIPT)
        self.prune_device_nodes()

    def prune_device_nodes(self) -> list[int]:
        """Remove ``/dev/nvidia<i>`` for every host GPU this node was not granted.

        Returns:
            Indices of the removed device nodes.

        Raises:
            OracleError: If NVML cannot report the GPU count.
            ScriptError: If a removal script fails.
        """
        # TODO: handle MIG devices and CDI-style grants once kind supports CDI.
        visible = set(self.visible_devices())
        if ALL_DEVICES in visible:
            return []
        removed = []
        for index in range(count_gpus(self.oracle)):
            if str(index) in visible:
                continue
            self.run_script(REMOVE_DEVICE_NODE_SCRIPT.format(index=index))
            removed.append(index)
        return removed

    def enable_gpus(self) -> None:
        """Install and wire up the NVIDIA container stack on this node.

        Steps run in a fixed order and stop at the first failure.
        """
        self.install_container_toolkit()
        self.configure_container_runtime()
        self.patch_proc_driver_nvidia()

    def get_gpu_info(self) -> list[GPUInfo]:
        """Query the GPUs visible inside the node with nvidia-smi.

        Raises:
            ScriptError: If nvidia-smi fails.
            ParseError: If any output line does not have exactly three fields.
        """
        command = [
            "nvidia-smi",
            f"--query-gpu={','.join(GPU_QUERY_FIELDS)}",
            "--format=csv,noheader",
        ]
        exit_code, output = self.executor.run(self.name, command)
        if exit_code != 0:
            raise ScriptError(self.name, output, f"running nvidia-smi on {self.name} failed (exit code {exit_code})")
        return parse_gpu_info(output)


def parse_gpu_info(output: str) -> list[GPUInfo]:
    """Parse ``nvidia-smi --query-gpu=index,name,uuid --format=csv,noheader`` output."""
    gpus = []
    for line in output.strip().splitlines():
        fields = line.strip().split(GPU_QUERY_SEPARATOR)
        if len(fields) != len(GPU_QUERY_FIELDS):
            raise ParseError(f"unexpected nvidia-smi output line: {line!r}")
        gpus.append(GPUInfo(*fields))
    return gpus
