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

"""Error taxonomy for config resolution, cluster reconciliation, and node setup."""

from __future__ import annotations


class NvkindError(RuntimeError):
    """Base class for every error raised by nvkind."""


class ReadError(NvkindError, OSError):
    """A template or values source could not be read."""


class DecodeError(NvkindError):
    """The values document is not valid YAML."""


class ConfigError(NvkindError):
    """The template could not be rendered into a valid kind cluster config."""


class OracleError(NvkindError):
    """The GPU management library reported a non-success status.

    Attributes:
        operation: NVML call that failed (e.g. ``nvmlInit``).
        status: NVML status code, or None when unavailable.
    """

    def __init__(self, operation: str, status: int | None, message: str = "") -> None:
        self.operation = operation
        self.status = status
        detail = f": {message}" if message else ""
        super().__init__(f"running {operation} (status {status}){detail}")


class ConflictError(NvkindError):
    """A new config was passed for an existing cluster with a different config."""


class LifecycleError(NvkindError):
    """The kind command exited non-zero.

    Attributes:
        command: The command line that was run.
        output: Captured output of the command, possibly empty.
    """

    def __init__(self, command: str, output: str = "") -> None:
        self.command = command
        self.output = output
        detail = f"\n{output.strip()}" if output.strip() else ""
        super().__init__(f"executing command '{command}' failed{detail}")


class MetadataError(NvkindError):
    """The persisted cluster config could not be read."""


class PersistError(MetadataError):
    """The cluster exists but its config could not be written to it."""


class UnknownRoleError(NvkindError):
    """A live node name does not end in a known role suffix."""


class NodeCountMismatchError(NvkindError):
    """Live node count for a role differs from the configured node count."""


class ScriptError(NvkindError):
    """A command run inside a node container failed.

    Attributes:
        node: Name of the node container.
        output: Combined output of the command.
    """

    def __init__(self, node: str, output: str = "", message: str = "") -> None:
        self.node = node
        self.output = output
        text = message or f"running script on {node} failed"
        detail = f"\n{output.strip()}" if output.strip() else ""
        super().__init__(f"{text}{detail}")


class ParseError(NvkindError):
    """Output of an external command could not be parsed."""


class UnknownClusterError(NvkindError):
    """The named cluster does not exist."""


class ContextError(NvkindError):
    """The cluster name could not be inferred from the kubeconfig."""
