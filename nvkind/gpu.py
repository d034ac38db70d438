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

"""NVML binding used to count the GPUs on the host."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import pynvml

from nvkind import logger
from nvkind.errors import OracleError


class GPUOracle(Protocol):
    """Device-count oracle. Every method raises OracleError on failure."""

    def init(self) -> None: ...

    def shutdown(self) -> None: ...

    def device_get_count(self) -> int: ...


class Nvml:
    """GPUOracle backed by the NVIDIA Management Library."""

    def init(self) -> None:
        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as err:
            raise OracleError("nvmlInit", err.value) from err

    def shutdown(self) -> None:
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as err:
            raise OracleError("nvmlShutdown", err.value) from err

    def device_get_count(self) -> int:
        try:
            return pynvml.nvmlDeviceGetCount()
        except pynvml.NVMLError as err:
            raise OracleError("nvmlDeviceGetCount", err.value) from err


@contextmanager
def nvml_session(oracle: GPUOracle) -> Iterator[GPUOracle]:
    """Initialize the oracle for the duration of the block, then shut it down.

    A failing shutdown is reported only when the block itself succeeded.
    """
    oracle.init()
    try:
        yield oracle
    except BaseException:
        try:
            oracle.shutdown()
        except OracleError as err:
            logger.debug("Ignoring NVML shutdown failure after error: %s", err)
        raise
    oracle.shutdown()


def count_gpus(oracle: GPUOracle) -> int:
    """Return the number of GPUs on the host, holding NVML open only for the query."""
    with nvml_session(oracle) as session:
        return session.device_get_count()
