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

"""Decide which config applies to a cluster name, given what is already running."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from nvkind import logger
from nvkind.config import CreateOptions
from nvkind.errors import ConflictError
from nvkind.metadata import MetadataStore
from nvkind.topology import Topology


class LifecycleDriver(Protocol):
    """Cluster lifecycle operations the rest of nvkind relies on."""

    def list_names(self) -> set[str]: ...

    def get_node_names(self, name: str) -> list[str]: ...

    def create(self, name: str, config: str, options: CreateOptions | None = None) -> None: ...

    def delete(self, name: str) -> None: ...


def reconcile(
    name: str | None,
    candidate: Topology | None,
    *,
    lifecycle: LifecycleDriver,
    store: MetadataStore,
    render_default: Callable[[], Topology],
) -> Topology:
    """Return the config that governs cluster ``name``.

    ============  ==============  ==========================================
    cluster       candidate       result
    ============  ==============  ==========================================
    absent        given           candidate
    absent        none            freshly rendered default config
    present       none            config persisted in the cluster
    present       given           candidate if equal to persisted, else error
    ============  ==============  ==========================================

    A given ``name`` overrides the candidate's own name before any of the above.

    Args:
        name: Cluster name, or None to use the candidate's (or default) name.
        candidate: Requested config, or None.
        lifecycle: Source of the live cluster names.
        store: Where running clusters keep their config.
        render_default: Produces the default config for a new cluster.

    Returns:
        The effective topology, always carrying the cluster's name.

    Raises:
        ConflictError: If the cluster exists with a different config than the candidate.
        MetadataError: If the persisted config cannot be read.
        ConfigError: If the persisted config cannot be parsed.
    """
    if candidate is not None:
        if name:
            candidate = candidate.with_name(name)
        name = candidate.name

    existing = lifecycle.list_names()
    if not name or name not in existing:
        if candidate is not None:
            logger.debug("Cluster %s does not exist; using requested config", name)
            return candidate
        topology = render_default()
        return topology.with_name(name) if name else topology

    persisted = Topology.from_yaml(store.read(name))
    if candidate is None:
        logger.debug("Cluster %s exists; using its stored config", name)
        return persisted
    if not persisted.equivalent(candidate):
        raise ConflictError(f"cannot pass a new config to existing cluster '{name}'")
    return candidate
