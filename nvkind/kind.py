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

"""Thin wrapper over the ``kind`` program for cluster lifecycle operations."""

from __future__ import annotations

import sys
from typing import IO

import sh

from nvkind import logger
from nvkind.config import CreateOptions
from nvkind.errors import LifecycleError


def _decode(data: bytes | str | None) -> str:
    if not data:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def _run_kind(*args: str, **kwargs):
    """Run ``kind`` with the given arguments.

    Raises:
        LifecycleError: If kind is missing or exits non-zero; carries the captured output.
    """
    command = " ".join(("kind", *args))
    logger.debug("Running: %s", command)
    try:
        return sh.kind(*args, **kwargs)
    except sh.ErrorReturnCode as err:
        raise LifecycleError(command, _decode(err.stdout) + _decode(err.stderr)) from err
    except sh.CommandNotFound as err:
        raise LifecycleError(command, "kind not found on PATH") from err


class KindCli:
    """Cluster lifecycle operations backed by the ``kind`` CLI.

    Create and delete stream kind's output to ``stdout``/``stderr``; queries
    capture it.
    """

    def __init__(self, stdout: IO[str] | None = None, stderr: IO[str] | None = None) -> None:
        self.stdout = stdout
        self.stderr = stderr

    def list_names(self) -> set[str]:
        """Return the names of all kind clusters."""
        output = _run_kind("get", "clusters", "-q", _err_to_out=True)
        return set(str(output).split())

    def get_node_names(self, name: str) -> list[str]:
        """Return the container names of a cluster's nodes, in kind's order."""
        output = _run_kind("get", "nodes", "--name", name, _err_to_out=True)
        return str(output).split()

    def create(self, name: str, config: str, options: CreateOptions | None = None) -> None:
        """Create a cluster from a serialized kind config fed on stdin.

        Args:
            name: Cluster name.
            config: kind ``Cluster`` YAML document.
            options: ``--retain`` / ``--wait`` pass-through flags.
        """
        if options is None:
            options = CreateOptions()
        args = ["create", "cluster", "--name", name, "--config", "-"]
        if options.retain:
            args.append("--retain")
        if options.wait:
            args.extend(["--wait", options.wait])
        _run_kind(*args, _in=config, _out=self.stdout or sys.stdout, _err=self.stderr or sys.stderr)

    def delete(self, name: str) -> None:
        _run_kind(
            "delete", "cluster", "--name", name,
            _out=self.stdout or sys.stdout, _err=self.stderr or sys.stderr,
        )
