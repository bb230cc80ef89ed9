"""Tests for provisioner dispatch kinds and the wire protocol."""

import json
import sys

import httpx
import pytest
import respx
from httpx import Response

from conftest import write_script
from scorekit.core.errors import ExitCode, ProvisionError
from scorekit.provisioners.dispatch import CommandDispatch, HttpDispatch, StaticDispatch
from scorekit.provisioners.protocol import ProvisionerInputs, ProvisionerOutputs, decode_outputs

URL = "http://provisioner.local/postgres"

# Writes the raw request and the trailing mode back as values
CAPTURE_SCRIPT = """
import json, os, sys
raw = sys.stdin.read()
json.dump({"values": {"request": json.loads(raw), "mode": sys.argv[-1], "env_mode": os.environ["SCOREKIT_PROVISIONER_MODE"], "args": sys.argv[1:-1]}}, sys.stdout)
"""

FAILING_SCRIPT = """
import sys
sys.stderr.write("database quota exceeded")
sys.exit(3)
"""

SILENT_SCRIPT = """
import sys
sys.stdin.read()
"""

SLOW_SCRIPT = """
import time
time.sleep(10)
"""

FORBIDDEN_DEPROVISION_SCRIPT = """
import json, sys
sys.stdin.read()
json.dump({"values": {"a": 1}}, sys.stdout)
"""


@pytest.fixture
def inputs():
    return ProvisionerInputs(
        resource_uid="postgres.default#api.db",
        resource_type="postgres",
        resource_class="default",
        resource_id="api.db",
        resource_params={"size": "small"},
        resource_metadata={"annotations": {"team": "core"}},
        state={"count": 1},
        shared={"app_prefix": "test-"},
    )


def script_dispatch(tmp_path, body, *args):
    script = write_script(tmp_path, "provisioner.py", body)
    return CommandDispatch(binary=sys.executable, args=(str(script), *args))


class TestProvisionerInputs:
    """Tests for the request envelope."""

    def test_to_dict_fields(self, inputs):
        assert inputs.to_dict() == {
            "resource_uid": "postgres.default#api.db",
            "resource_type": "postgres",
            "resource_class": "default",
            "resource_id": "api.db",
            "resource_params": {"size": "small"},
            "resource_metadata": {"annotations": {"team": "core"}},
            "state": {"count": 1},
            "shared": {"app_prefix": "test-"},
        }

    def test_params_omitted_when_none(self, inputs):
        data = ProvisionerInputs.from_dict({**inputs.to_dict(), "resource_params": None}).to_dict()

        assert "resource_params" not in data

    def test_to_json_is_sorted(self, inputs):
        assert json.loads(inputs.to_json()) == inputs.to_dict()
        assert inputs.to_json() == json.dumps(inputs.to_dict(), sort_keys=True).encode()


class TestDecodeOutputs:
    """Tests for response validation."""

    def test_all_fields(self):
        raw = b'{"state": {"s": 1}, "values": {"v": 2}, "secrets": {"p": "x"}, "shared": {"k": null}}'

        outputs = decode_outputs(raw, "provision")

        assert outputs.state == {"s": 1}
        assert outputs.values == {"v": 2}
        assert outputs.secrets == {"p": "x"}
        assert outputs.shared == {"k": None}

    def test_missing_fields_are_none(self):
        outputs = decode_outputs("{}", "provision")

        assert outputs == ProvisionerOutputs()
        assert outputs.to_dict() == {}

    def test_empty_provision_response_fails(self):
        with pytest.raises(ProvisionError, match="provision request returned no output"):
            decode_outputs(b"  \n", "provision")

    def test_empty_deprovision_response_allowed(self):
        assert decode_outputs(b"", "deprovision") == ProvisionerOutputs()

    def test_malformed_json(self):
        with pytest.raises(ProvisionError, match="failed to decode response"):
            decode_outputs("{not json", "provision")

    def test_unknown_field_rejected(self):
        with pytest.raises(ProvisionError) as exc_info:
            decode_outputs('{"values": {}, "extra": 1}', "provision")

        assert any("extra" in e for e in exc_info.value.details["errors"])

    def test_wrong_field_type_rejected(self):
        with pytest.raises(ProvisionError):
            decode_outputs('{"values": [1, 2]}', "provision")

    @pytest.mark.parametrize("field", ["state", "values", "secrets"])
    def test_deprovision_cannot_return_resource_fields(self, field):
        with pytest.raises(ProvisionError, match="deprovision output cannot include"):
            decode_outputs(json.dumps({field: {}}), "deprovision")

    def test_deprovision_shared_patch_allowed(self):
        assert decode_outputs('{"shared": {"k": 1}}', "deprovision").shared == {"k": 1}


class TestStaticDispatch:
    """Tests for static dispatch."""

    def test_provision_returns_values(self, inputs):
        dispatch = StaticDispatch(values={"host": "localhost", "port": 5432})

        outputs = dispatch.provision(inputs)

        assert outputs.values == {"host": "localhost", "port": 5432}
        assert outputs.state is None
        assert outputs.secrets is None
        assert outputs.shared is None

    def test_provision_returns_a_copy(self, inputs):
        dispatch = StaticDispatch(values={"nested": {"a": 1}})

        dispatch.provision(inputs).values["nested"]["a"] = 2

        assert dispatch.values == {"nested": {"a": 1}}

    def test_deprovision_is_noop(self, inputs):
        assert StaticDispatch(values={"a": 1}).deprovision(inputs) == ProvisionerOutputs()

    def test_describe(self):
        assert StaticDispatch(values={"a": 1, "b": 2}).describe() == "static #2"


class TestCommandDispatch:
    """Tests for command dispatch."""

    def test_provision_sends_envelope_on_stdin(self, tmp_path, inputs):
        dispatch = script_dispatch(tmp_path, CAPTURE_SCRIPT, "--verbose")

        outputs = dispatch.provision(inputs)

        assert outputs.values["request"] == inputs.to_dict()
        assert outputs.values["mode"] == "provision"
        assert outputs.values["env_mode"] == "provision"
        assert outputs.values["args"] == ["--verbose"]

    def test_non_zero_exit_carries_stderr(self, tmp_path, inputs):
        dispatch = script_dispatch(tmp_path, FAILING_SCRIPT)

        with pytest.raises(ProvisionError) as exc_info:
            dispatch.provision(inputs)

        assert exc_info.value.message == "cmd provisioner exited with status 3"
        assert exc_info.value.details["stderr"] == "database quota exceeded"
        assert exc_info.value.exit_code == ExitCode.PROVISION_ERROR

    def test_empty_stdout_fails_provision(self, tmp_path, inputs):
        dispatch = script_dispatch(tmp_path, SILENT_SCRIPT)

        with pytest.raises(ProvisionError, match="returned no output"):
            dispatch.provision(inputs)

    def test_empty_stdout_allowed_for_deprovision(self, tmp_path, inputs):
        dispatch = script_dispatch(tmp_path, SILENT_SCRIPT)

        assert dispatch.deprovision(inputs) == ProvisionerOutputs()

    def test_deprovision_with_values_fails(self, tmp_path, inputs):
        dispatch = script_dispatch(tmp_path, FORBIDDEN_DEPROVISION_SCRIPT)

        with pytest.raises(ProvisionError, match="deprovision output cannot include"):
            dispatch.deprovision(inputs)

    def test_timeout(self, tmp_path, inputs):
        dispatch = script_dispatch(tmp_path, SLOW_SCRIPT)

        with pytest.raises(ProvisionError, match="did not finish"):
            dispatch.provision(inputs, timeout=0.5)

    def test_binary_not_on_path(self, inputs):
        dispatch = CommandDispatch(binary="scorekit-no-such-provisioner")

        with pytest.raises(ProvisionError, match="failed to find 'scorekit-no-such-provisioner' on path"):
            dispatch.provision(inputs)

    def test_relative_binary_resolved_on_path(self, tmp_path, inputs, monkeypatch):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        exe = bin_dir / "capture-provisioner"
        exe.write_text(f"#!{sys.executable}\n{CAPTURE_SCRIPT}")
        exe.chmod(0o755)
        monkeypatch.setenv("PATH", str(bin_dir))

        outputs = CommandDispatch(binary="capture-provisioner").provision(inputs)

        assert outputs.values["mode"] == "provision"


class TestHttpDispatch:
    """Tests for HTTP dispatch."""

    @respx.mock
    def test_provision_posts_envelope(self, inputs):
        route = respx.post(URL).mock(return_value=Response(200, json={"values": {"host": "db"}}))

        outputs = HttpDispatch(url=URL).provision(inputs)

        assert outputs.values == {"host": "db"}
        request = route.calls.last.request
        assert json.loads(request.content) == inputs.to_dict()
        assert request.headers["content-type"] == "application/json"
        assert request.headers["accept"] == "application/json"

    @respx.mock
    def test_deprovision_uses_delete(self, inputs):
        route = respx.delete(URL).mock(return_value=Response(204))

        outputs = HttpDispatch(url=URL).deprovision(inputs)

        assert route.called
        assert outputs == ProvisionerOutputs()

    @respx.mock
    def test_non_success_status_carries_body(self, inputs):
        respx.post(URL).mock(return_value=Response(500, text="boom"))

        with pytest.raises(ProvisionError) as exc_info:
            HttpDispatch(url=URL).provision(inputs)

        assert exc_info.value.message == "http provision request failed with status 500"
        assert exc_info.value.details["body"] == "boom"

    @respx.mock
    def test_no_retry(self, inputs):
        route = respx.post(URL).mock(return_value=Response(503))

        with pytest.raises(ProvisionError):
            HttpDispatch(url=URL).provision(inputs)

        assert route.call_count == 1

    @respx.mock
    def test_connection_error(self, inputs):
        respx.post(URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ProvisionError, match="failed to send request"):
            HttpDispatch(url=URL).provision(inputs)

    @respx.mock
    def test_empty_body_fails_provision(self, inputs):
        respx.post(URL).mock(return_value=Response(200))

        with pytest.raises(ProvisionError, match="returned no output"):
            HttpDispatch(url=URL).provision(inputs)


class TestEnvelopeParity:
    """Every dispatch kind receives the same request document."""

    @respx.mock
    def test_cmd_and_http_receive_identical_envelopes(self, tmp_path, inputs):
        route = respx.post(URL).mock(return_value=Response(200, json={}))

        HttpDispatch(url=URL).provision(inputs)
        cmd_outputs = script_dispatch(tmp_path, CAPTURE_SCRIPT).provision(inputs)

        assert json.loads(route.calls.last.request.content) == cmd_outputs.values["request"]
