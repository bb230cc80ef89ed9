"""Root test configuration."""

import logging
import os
import sys
import textwrap
from pathlib import Path

import pytest
import structlog

from scorekit.config import get_settings
from scorekit.provisioners import CommandDispatch, Provisioner, StaticDispatch
from scorekit.state import init_state_directory


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep SCOREKIT_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("SCOREKIT_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def make_workload(name, resources=None, variables=None, metadata=None):
    """Build a minimal workload spec."""
    spec = {
        "apiVersion": "score.dev/v1b1",
        "metadata": {"name": name, **(metadata or {})},
        "containers": {"main": {"image": "busybox", "variables": dict(variables or {})}},
    }
    if resources is not None:
        spec["resources"] = resources
    return spec


def static_provisioner(provisioner_id, resource_type, values, **kwargs):
    return Provisioner(
        id=provisioner_id,
        resource_type=resource_type,
        dispatch=StaticDispatch(values=values),
        **kwargs,
    )


# Provisioner script built on the Python helper. It counts provisions in the
# resource state, echoes the request into the values, hands out a secret
# token and records the uid in the shared state.
ECHO_PROVISIONER = textwrap.dedent(
    """
    import os
    from scorekit.provisioners.builtin import run


    def provision(inputs):
        count = inputs.state.get("count", 0) + 1
        return {
            "state": {"count": count},
            "values": {
                "params": inputs.resource_params,
                "shared": inputs.shared,
                "mode_env": os.environ.get("SCOREKIT_PROVISIONER_MODE"),
                "host": inputs.resource_id + ".internal",
            },
            "secrets": {"token": "tok-" + inputs.resource_id},
            "shared": {"seen": {inputs.resource_id: True}},
        }


    def deprovision(inputs):
        return {"shared": {"seen": {inputs.resource_id: None}}}


    raise SystemExit(run(provision, deprovision))
    """
)


def write_script(directory: Path, name: str, body: str) -> Path:
    path = directory / name
    path.write_text(body)
    return path


@pytest.fixture
def echo_script(tmp_path):
    return write_script(tmp_path, "echo_provisioner.py", ECHO_PROVISIONER)


@pytest.fixture
def echo_dispatch(echo_script):
    return CommandDispatch(binary=sys.executable, args=(str(echo_script),))


@pytest.fixture
def state_dir(tmp_path):
    """An initialised state directory."""
    return init_state_directory(tmp_path / ".scorekit", "test-")
