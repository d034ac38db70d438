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

"""Match live node containers to the node declarations of a cluster config."""

from __future__ import annotations

from nvkind.constants import NODE_ROLES
from nvkind.errors import NodeCountMismatchError, UnknownRoleError
from nvkind.gpu import GPUOracle
from nvkind.node import ContainerExec, Node
from nvkind.topology import NodeConfig, Topology


def node_role(name: str) -> str:
    """Infer a node's role from its container name.

    Trailing digits are stripped first, so ``foo-worker2`` is a worker.

    Raises:
        UnknownRoleError: If the name ends in neither known role.
    """
    trimmed = name.rstrip("0123456789")
    for role in NODE_ROLES:
        if trimmed.endswith(role):
            return role
    raise UnknownRoleError(f"unable to determine node role from name: {name}")


def build_inventory(
    live_names: list[str],
    topology: Topology,
    *,
    oracle: GPUOracle | None = None,
    executor: ContainerExec | None = None,
) -> list[Node]:
    """Pair each live node with its declaration in the topology.

    Names are sorted lexically within each role and paired positionally with
    that role's declarations in config order. This assumes kind numbers nodes
    in creation order, which sorted names recover only while a role has fewer
    than ten nodes (``worker10`` sorts before ``worker2``).

    Args:
        live_names: Node container names reported by kind.
        topology: The cluster's config.
        oracle: GPU oracle handed to every node, or None for NVML.
        executor: Container exec handed to every node, or None for docker.

    Returns:
        Control-plane nodes first, then workers.

    Raises:
        UnknownRoleError: If a live name has no recognizable role.
        NodeCountMismatchError: If a role's live count differs from its declared count.
    """
    names_by_role: dict[str, list[str]] = {role: [] for role in NODE_ROLES}
    for name in sorted(live_names):
        names_by_role[node_role(name)].append(name)

    configs_by_role: dict[str, list[NodeConfig]] = {role: [] for role in NODE_ROLES}
    for node_config in topology.node_list():
        configs_by_role[node_config.role].append(node_config)

    extras = {}
    if oracle is not None:
        extras["oracle"] = oracle
    if executor is not None:
        extras["executor"] = executor

    nodes: list[Node] = []
    for role in NODE_ROLES:
        names, configs = names_by_role[role], configs_by_role[role]
        if len(names) != len(configs):
            raise NodeCountMismatchError(
                f"node names and configs mismatch for {role} role: "
                f"{len(names)} running, {len(configs)} configured"
            )
        nodes.extend(Node(name=name, config=cfg, **extras) for name, cfg in zip(names, configs))
    return nodes
