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

"""Kind cluster config model and its YAML wire format.

The models mirror the ``kind.x-k8s.io/v1alpha4`` ``Cluster`` schema. Only the
fields nvkind reads are named; everything else is carried through untouched so
a config survives a write/read cycle through the cluster's ConfigMap unchanged.
"""

from __future__ import annotations

from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from nvkind.constants import KIND_API_VERSION, KIND_KIND, ROLE_CONTROL_PLANE
from nvkind.errors import ConfigError

NodeRole = Literal["control-plane", "worker"]


class _KindModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


class Mount(_KindModel):
    """A host path mounted into a node container.

    Attributes:
        host_path: Path on the host.
        container_path: Path inside the node container.
        read_only: Mount read-only, or None to leave kind's default.
        selinux_relabel: Relabel for SELinux, or None.
        propagation: Mount propagation mode, or None.
    """

    host_path: str = ""
    container_path: str = ""
    read_only: bool | None = None
    selinux_relabel: bool | None = None
    propagation: str | None = None


class NodeConfig(_KindModel):
    """One node declaration of a kind cluster config."""

    role: NodeRole = ROLE_CONTROL_PLANE
    image: str | None = None
    extra_mounts: list[Mount] | None = None
    labels: dict[str, str] | None = None
    extra_port_mappings: list[dict[str, Any]] | None = None
    kubeadm_config_patches: list[str] | None = None


class Topology(_KindModel):
    """A kind cluster config: the cluster name and its ordered node declarations.

    Node order is significant: it defines node ordinals within each role.
    """

    kind: str = KIND_KIND
    api_version: str = KIND_API_VERSION
    name: str | None = None
    nodes: list[NodeConfig] | None = None
    networking: dict[str, Any] | None = None
    feature_gates: dict[str, Any] | None = None
    runtime_config: dict[str, Any] | None = None
    containerd_config_patches: list[str] | None = None

    @classmethod
    def from_yaml(cls, data: str | bytes) -> Topology:
        """Parse a kind cluster config document.

        Args:
            data: YAML text of the document.

        Returns:
            The parsed topology.

        Raises:
            ConfigError: If the text is not YAML or does not match the schema.
        """
        try:
            doc = yaml.safe_load(data)
        except yaml.YAMLError as err:
            raise ConfigError(f"unmarshaling cluster config YAML: {err}") from err
        return cls.from_dict(doc or {})

    @classmethod
    def from_dict(cls, doc: Any) -> Topology:
        if not isinstance(doc, dict):
            raise ConfigError(f"cluster config must be a mapping, got {type(doc).__name__}")
        try:
            return cls.model_validate(doc)
        except ValidationError as err:
            raise ConfigError(f"invalid cluster config: {err}") from err

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)

    def node_list(self) -> list[NodeConfig]:
        return list(self.nodes or [])

    def with_name(self, name: str) -> Topology:
        return self.model_copy(update={"name": name})

    def with_image(self, image: str) -> Topology:
        """Return a copy with every node's image replaced."""
        if not self.nodes:
            return self
        nodes = [node.model_copy(update={"image": image}) for node in self.node_list()]
        return self.model_copy(update={"nodes": nodes})

    def equivalent(self, other: Topology) -> bool:
        """Compare two topologies by their wire representation."""
        return self.to_dict() == other.to_dict()
