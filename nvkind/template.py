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

"""Render a kind config template with a values document into a Topology."""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from typing import Any

import jinja2
import yaml
from jinja2.nativetypes import NativeEnvironment

from nvkind import logger
from nvkind.constants import DEFAULT_NAME_ALPHABET, DEFAULT_NAME_PREFIX, DEFAULT_NAME_SUFFIX_LENGTH
from nvkind.errors import ConfigError, DecodeError
from nvkind.gpu import GPUOracle, count_gpus
from nvkind.topology import Topology


def generate_default_name(prefix: str = DEFAULT_NAME_PREFIX) -> str:
    """Return ``<prefix>-<5 random characters>``."""
    suffix = "".join(random.choices(DEFAULT_NAME_ALPHABET, k=DEFAULT_NAME_SUFFIX_LENGTH))
    return f"{prefix}-{suffix}"


def stringify_keys(data: Any) -> Any:
    """Recursively rewrite mapping keys as strings, descending into sequences too.

    YAML allows ``1: foo`` or ``true: bar``; templates look values up by name,
    so every key is normalized before the document is used as template data.
    """
    if isinstance(data, Mapping):
        return {str(key): stringify_keys(value) for key, value in data.items()}
    if isinstance(data, list | tuple):
        return [stringify_keys(item) for item in data]
    return data


def _to_yaml(value: Any) -> str:
    return yaml.safe_dump(value, default_flow_style=False, sort_keys=False).rstrip("\n")


def _quote(value: Any) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def _has_key(mapping: Mapping, key: Any) -> bool:
    return isinstance(mapping, Mapping) and key in mapping


def build_environment(
    oracle: GPUOracle,
    funcs: Mapping[str, Callable] | None = None,
    *,
    native: bool = False,
) -> jinja2.Environment:
    """Create the template environment.

    Jinja's built-in filters and tests serve as the text library; ``toYaml``
    and ``quote`` filters, the ``hasKey(map, key)`` test function and the
    ``numGPUs()`` global are added, then any caller-supplied functions.

    Args:
        oracle: GPU oracle queried by ``numGPUs()``.
        funcs: Extra global functions, overriding the built-in ones by name.
        native: Build a NativeEnvironment, whose renders keep Python types
            (``{{ numGPUs() }}`` yields an int rather than text).

    Returns:
        A configured Jinja environment.
    """
    env_class = NativeEnvironment if native else jinja2.Environment
    env = env_class(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["toYaml"] = _to_yaml
    env.filters["quote"] = _quote
    env.globals["hasKey"] = _has_key
    env.globals["numGPUs"] = lambda: count_gpus(oracle)
    env.globals.update(funcs or {})
    return env


def _decode(data: bytes, what: str, error: type[Exception]) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise error(f"{what} is not valid UTF-8: {err}") from err


def _has_template_syntax(text: str) -> bool:
    return "{{" in text or "{%" in text


def _render_strings(env: jinja2.Environment, data: Any) -> Any:
    if isinstance(data, dict):
        return {key: _render_strings(env, value) for key, value in data.items()}
    if isinstance(data, list):
        return [_render_strings(env, item) for item in data]
    if isinstance(data, str) and _has_template_syntax(data):
        return env.from_string(data).render()
    return data


def load_values(env: jinja2.Environment, values: bytes) -> dict[str, Any]:
    """Parse the values document into template data.

    The document is plain YAML. String values holding template syntax
    (e.g. ``count: "{{ numGPUs() }}"``) are then rendered with ``env``;
    comments and all other values are left alone.

    Raises:
        DecodeError: If the document is not YAML or not a mapping.
        ConfigError: If a templated value fails to render.
    """
    text = _decode(values, "values document", DecodeError)
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise DecodeError(f"unmarshaling values YAML: {err}") from err
    if doc is None:
        return {}
    if not isinstance(doc, Mapping):
        raise DecodeError(f"values document must be a mapping, got {type(doc).__name__}")
    try:
        return _render_strings(env, stringify_keys(doc))
    except jinja2.TemplateError as err:
        raise ConfigError(f"rendering values document: {err}") from err


def render(
    template: bytes,
    values: bytes,
    *,
    oracle: GPUOracle,
    funcs: Mapping[str, Callable] | None = None,
    default_name: str | None = None,
    image: str | None = None,
) -> Topology:
    """Render a kind config template into a Topology.

    Args:
        template: Jinja template producing a kind ``Cluster`` document.
        values: YAML values document used as template data.
        oracle: GPU oracle queried by ``numGPUs()``.
        funcs: Extra template functions.
        default_name: Name used when the rendered config has none; a random
            ``nvkind-xxxxx`` name when not given.
        image: Node image forced onto every node, or None to keep the template's.

    Returns:
        The rendered topology.

    Raises:
        DecodeError: If the values document is invalid.
        ConfigError: If the template fails to render or its output is not a valid config.
        OracleError: If ``numGPUs()`` is called and NVML fails.
    """
    env = build_environment(oracle, funcs)
    data = load_values(build_environment(oracle, funcs, native=True), values)
    source = _decode(template, "config template", ConfigError)
    try:
        rendered = env.from_string(source).render(data)
    except jinja2.TemplateError as err:
        raise ConfigError(f"executing config template: {err}") from err
    logger.debug("Rendered kind config:\n%s", rendered)

    topology = Topology.from_yaml(rendered)
    if not topology.name:
        topology = topology.with_name(default_name or generate_default_name())
    if image:
        topology = topology.with_image(image)
    return topology
