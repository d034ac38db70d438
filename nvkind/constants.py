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

"""Constants, in-node scripts, and default config document loading."""

from __future__ import annotations

from pathlib import Path

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_TEMPLATE_FILE = PACKAGE_DIR / "default-config-template.yaml"
DEFAULT_CONFIG_VALUES_FILE = PACKAGE_DIR / "default-config-values.yaml"


def load_default_template() -> bytes:
    """Read the built-in kind config template shipped with the package."""
    return DEFAULT_CONFIG_TEMPLATE_FILE.read_bytes()


def load_default_values() -> bytes:
    """Read the built-in values document shipped with the package."""
    return DEFAULT_CONFIG_VALUES_FILE.read_bytes()


# -- Naming --
DEFAULT_NAME_PREFIX = "nvkind"
DEFAULT_NAME_SUFFIX_LENGTH = 5
# Same alphabet as k8s.io/apimachinery rand.String: no vowels, no confusable digits.
DEFAULT_NAME_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
KUBE_CONTEXT_PREFIX = "kind"
STDIN_PATH = "-"

# -- Kind config schema --
KIND_API_VERSION = "kind.x-k8s.io/v1alpha4"
KIND_KIND = "Cluster"
ROLE_CONTROL_PLANE = "control-plane"
ROLE_WORKER = "worker"
NODE_ROLES = (ROLE_CONTROL_PLANE, ROLE_WORKER)

# -- Persisted cluster metadata --
CLUSTER_CONFIG_MAP_NAME = "nvkind-cluster-config"
CLUSTER_CONFIG_MAP_NAMESPACE = "default"
CLUSTER_CONFIG_MAP_KEY = "config"
PERSIST_MAX_RETRIES = 5
PERSIST_RETRY_MIN_SECONDS = 0.01
PERSIST_RETRY_MAX_SECONDS = 1.0

# -- GPU device mounts --
NULL_DEVICE = "/dev/null"
GPU_DEVICE_MOUNT_DIR = "/var/run/nvidia-container-devices"
ALL_DEVICES = "all"
GPU_QUERY_FIELDS = ("index", "name", "uuid")
GPU_QUERY_SEPARATOR = ", "

# -- In-node scripts --
INSTALL_TOOLKIT_SCRIPT = """
apt-get update
apt-get install -y gpg
curl -fsSL https://nvidia.github.io/libnvidia-container/gpgkey | gpg --dearmor -o /usr/share/keyrings/nvidia-container-toolkit-keyring.gpg
curl -s -L https://nvidia.github.io/libnvidia-container/experimental/deb/nvidia-container-toolkit.list | \\
    sed 's#deb https://#deb [signed-by=/usr/share/keyrings/nvidia-container-toolkit-keyring.gpg] https://#g' | \\
        tee /etc/apt/sources.list.d/nvidia-container-toolkit.list
apt-get update
apt-get install -y nvidia-container-toolkit
"""

CONFIGURE_RUNTIME_SCRIPT = """
nvidia-ctk runtime configure --runtime=containerd --set-as-default
systemctl restart containerd
"""

# Unmount the masked /proc/driver/nvidia so dynamically created MIG devices are discoverable.
UNMASK_PROC_DRIVER_SCRIPT = """
umount -R /proc/driver/nvidia || true
"""

# Stop nvidia-smi / libnvidia-ml from recreating device nodes we remove.
PATCH_DRIVER_PARAMS_SCRIPT = """
cp /proc/driver/nvidia/params root/gpu-params
sed -i 's/^ModifyDeviceFiles: 1$/ModifyDeviceFiles: 0/' root/gpu-params
mount --bind root/gpu-params /proc/driver/nvidia/params
"""

REMOVE_DEVICE_NODE_SCRIPT = """
while umount /dev/nvidia{index}; do :; done || true
rm -rf /dev/nvidia{index}
"""
