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

"""Persist a cluster's kind config inside the cluster as a ConfigMap.

The config a cluster was created with is stored in its own API server so a
later invocation can recover it without any local file.
"""

from __future__ import annotations

import json
from typing import Protocol

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential
from urllib3.exceptions import HTTPError

from nvkind import logger
from nvkind.constants import (
    CLUSTER_CONFIG_MAP_KEY,
    CLUSTER_CONFIG_MAP_NAME,
    CLUSTER_CONFIG_MAP_NAMESPACE,
    PERSIST_MAX_RETRIES,
    PERSIST_RETRY_MAX_SECONDS,
    PERSIST_RETRY_MIN_SECONDS,
)
from nvkind.errors import MetadataError, PersistError
from nvkind.utils import kube_context


class MetadataStore(Protocol):
    """Where a cluster's serialized config is kept."""

    def read(self, cluster_name: str) -> str: ...

    def write(self, cluster_name: str, data: str) -> None: ...


def is_conflict(exc: BaseException) -> bool:
    """True for an API 409 whose reason is ``Conflict`` (not ``AlreadyExists``)."""
    if not isinstance(exc, ApiException) or exc.status != 409:
        return False
    try:
        body = json.loads(exc.body or "{}")
    except (TypeError, ValueError):
        return False
    return isinstance(body, dict) and body.get("reason") == "Conflict"


@retry(
    stop=stop_after_attempt(PERSIST_MAX_RETRIES),
    wait=wait_exponential(multiplier=PERSIST_RETRY_MIN_SECONDS, max=PERSIST_RETRY_MAX_SECONDS),
    retry=retry_if_exception(is_conflict),
    reraise=True,
)
def _create_config_map(api: client.CoreV1Api, body: client.V1ConfigMap) -> None:
    """Create the config ConfigMap, retrying only on write conflicts."""
    api.create_namespaced_config_map(CLUSTER_CONFIG_MAP_NAMESPACE, body)


class ConfigMapStore:
    """MetadataStore backed by a ConfigMap in the cluster's ``default`` namespace.

    Attributes:
        kubeconfig: Kubeconfig path, or None for the client default.
    """

    def __init__(self, kubeconfig: str | None = None) -> None:
        self.kubeconfig = kubeconfig

    def _core_api(self, cluster_name: str) -> client.CoreV1Api:
        api_client = config.new_client_from_config(
            config_file=self.kubeconfig, context=kube_context(cluster_name)
        )
        return client.CoreV1Api(api_client)

    def read(self, cluster_name: str) -> str:
        """Return the serialized config stored in a cluster.

        Raises:
            MetadataError: If the client cannot be built, the API server is unreachable,
                or the ConfigMap is missing or empty.
        """
        try:
            config_map = self._core_api(cluster_name).read_namespaced_config_map(
                CLUSTER_CONFIG_MAP_NAME, CLUSTER_CONFIG_MAP_NAMESPACE
            )
        except ConfigException as err:
            raise MetadataError(f"loading client config for cluster {cluster_name}: {err}") from err
        except ApiException as err:
            raise MetadataError(
                f"getting configmap {CLUSTER_CONFIG_MAP_NAME} from cluster {cluster_name}: {err.reason}"
            ) from err
        except HTTPError as err:
            raise MetadataError(f"reaching the API server of cluster {cluster_name}: {err}") from err
        data = (config_map.data or {}).get(CLUSTER_CONFIG_MAP_KEY)
        if not data:
            raise MetadataError(
                f"configmap {CLUSTER_CONFIG_MAP_NAME} in cluster {cluster_name} has no '{CLUSTER_CONFIG_MAP_KEY}' key"
            )
        return data

    def write(self, cluster_name: str, data: str) -> None:
        """Store the serialized config in a cluster.

        Raises:
            PersistError: If the client cannot be built, the API server is unreachable,
                the API rejects the write, or conflicts persist after all retries.
        """
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=CLUSTER_CONFIG_MAP_NAME),
            data={CLUSTER_CONFIG_MAP_KEY: data},
        )
        try:
            _create_config_map(self._core_api(cluster_name), body)
        except ConfigException as err:
            raise PersistError(f"loading client config for cluster {cluster_name}: {err}") from err
        except ApiException as err:
            raise PersistError(
                f"writing configmap {CLUSTER_CONFIG_MAP_NAME} to cluster {cluster_name}: {err.reason}"
            ) from err
        except HTTPError as err:
            raise PersistError(f"reaching the API server of cluster {cluster_name}: {err}") from err
        logger.info("Stored cluster config in configmap %s/%s",
                    CLUSTER_CONFIG_MAP_NAMESPACE, CLUSTER_CONFIG_MAP_NAME)
