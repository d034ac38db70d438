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

"""Tests for the kind CLI wrapper."""

import io
from unittest.mock import MagicMock, patch

import pytest
import sh

from nvkind.config import CreateOptions
from nvkind.errors import LifecycleError
from nvkind.kind import KindCli


@pytest.fixture
def mock_sh():
    with patch("nvkind.kind.sh") as mocked:
        mocked.ErrorReturnCode = sh.ErrorReturnCode
        mocked.CommandNotFound = sh.CommandNotFound
        yield mocked


class TestQueries:
    """Tests for list_names and get_node_names."""

    def test_list_names(self, mock_sh):
        mock_sh.kind.return_value = "alpha\nbeta\n"
        assert KindCli().list_names() == {"alpha", "beta"}
        mock_sh.kind.assert_called_once_with("get", "clusters", "-q", _err_to_out=True)

    def test_list_names_empty(self, mock_sh):
        mock_sh.kind.return_value = ""
        assert KindCli().list_names() == set()

    def test_get_node_names(self, mock_sh):
        mock_sh.kind.return_value = "demo-control-plane\ndemo-worker\n"
        assert KindCli().get_node_names("demo") == ["demo-control-plane", "demo-worker"]
        mock_sh.kind.assert_called_once_with("get", "nodes", "--name", "demo", _err_to_out=True)


class TestCreate:
    """Tests for create."""

    def test_config_fed_on_stdin(self, mock_sh):
        out, err = io.StringIO(), io.StringIO()
        KindCli(stdout=out, stderr=err).create("demo", "kind: Cluster\n")
        mock_sh.kind.assert_called_once_with(
            "create", "cluster", "--name", "demo", "--config", "-",
            _in="kind: Cluster\n", _out=out, _err=err,
        )

    def test_retain_and_wait(self, mock_sh):
        KindCli().create("demo", "kind: Cluster\n", CreateOptions(retain=True, wait="2m"))
        args = mock_sh.kind.call_args.args
        assert args[-3:] == ("--retain", "--wait", "2m")

    def test_no_flags_by_default(self, mock_sh):
        KindCli().create("demo", "kind: Cluster\n")
        args = mock_sh.kind.call_args.args
        assert "--retain" not in args
        assert "--wait" not in args

    def test_failure_carries_output(self, mock_sh):
        mock_sh.kind.side_effect = sh.ErrorReturnCode_1("kind create cluster", b"", b"boom")
        with pytest.raises(LifecycleError) as exc_info:
            KindCli().create("demo", "kind: Cluster\n")
        assert "boom" in exc_info.value.output
        assert exc_info.value.command.startswith("kind create cluster --name demo")

    def test_kind_missing(self, mock_sh):
        mock_sh.kind.side_effect = sh.CommandNotFound("kind")
        with pytest.raises(LifecycleError, match="kind create cluster"):
            KindCli().create("demo", "kind: Cluster\n")


def test_delete(mock_sh):
    out = MagicMock()
    KindCli(stdout=out, stderr=out).delete("demo")
    mock_sh.kind.assert_called_once_with("delete", "cluster", "--name", "demo", _out=out, _err=out)
