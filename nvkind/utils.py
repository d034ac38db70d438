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

"""Utility functions for command checks and kube context names."""

from __future__ import annotations

import sh

from nvkind.constants import KUBE_CONTEXT_PREFIX


def kube_context(cluster_name: str) -> str:
    """Return the kubeconfig context kind creates for a cluster (``kind-<name>``)."""
    return f"{KUBE_CONTEXT_PREFIX}-{cluster_name}"


def cluster_name_from_context(context: str) -> str | None:
    """Return the cluster name of a kind kube context, or None for other contexts."""
    prefix = f"{KUBE_CONTEXT_PREFIX}-"
    if not context.startswith(prefix):
        return None
    return context[len(prefix):] or None


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        found = sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err
    if not found:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.")
