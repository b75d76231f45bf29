"""
Test configuration and fixtures for the nitro supervisor tests.
"""
import json
import shutil
import socket
import stat
import sys
import tempfile
from pathlib import Path

import pytest

from src.frameworks_drivers.config import Config, SupervisorConfig

# Stand-in for the nitro binary: loads the config named on the command line,
# records what it saw in its working directory and listens on FAKE_NITRO_PORT.
FAKE_NITRO_SCRIPT = """#!{python}
import json
import os
import socket
import sys

with open(sys.argv[1]) as f:
    config = json.load(f)
with open("loaded.json", "w") as f:
    json.dump({{"argv": sys.argv[1:], "model": config["custom_config"]["llama_model_path"]}}, f)

print("loading model", config["custom_config"]["llama_model_path"], flush=True)
print("warming up", file=sys.stderr, flush=True)

port = int(os.environ.get("FAKE_NITRO_PORT", "0"))
if port == 0:
    sys.exit(int(os.environ.get("FAKE_NITRO_EXIT_CODE", "0")))

server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
server.bind(("127.0.0.1", port))
server.listen(16)
while True:
    conn, _ = server.accept()
    conn.close()
"""

FAKE_BINARY_NAME = "nitro_linux_amd64_cuda"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def free_port():
    """A local TCP port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def binary_dir(temp_dir):
    path = temp_dir / "nitro"
    (path / "config").mkdir(parents=True)
    return path


@pytest.fixture
def user_data_dir(temp_dir):
    path = temp_dir / "userdata"
    path.mkdir()
    return path


@pytest.fixture
def supervisor_config(binary_dir, user_data_dir, free_port):
    """Supervisor configuration with short timeouts pointing into the temp dir."""
    return SupervisorConfig(
        port=free_port,
        binary_dir=binary_dir,
        user_data_dir=user_data_dir,
        free_poll_interval_ms=50,
        free_grace_timeout_ms=3000,
        ready_poll_interval_ms=50,
        ready_timeout_ms=10000,
        terminate_timeout=5.0,
    )


@pytest.fixture
def fake_nitro(binary_dir, monkeypatch):
    """Install the fake server binary and pin the platform to Linux/x86_64."""
    if sys.platform == "win32":
        pytest.skip("fake server binary relies on a shebang script")

    binary = binary_dir / FAKE_BINARY_NAME
    binary.write_text(FAKE_NITRO_SCRIPT.format(python=sys.executable))
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    monkeypatch.setattr("src.frameworks_drivers.process_launcher.platform.system", lambda: "Linux")
    monkeypatch.setattr("src.frameworks_drivers.process_launcher.platform.machine", lambda: "x86_64")
    return binary


@pytest.fixture
def sample_config_data():
    """Sample supervisor configuration data for testing."""
    return {
        "supervisor": {
            "host": "127.0.0.1",
            "port": 3999,
            "binary_dir": "/opt/nitro",
            "user_data_dir": "/home/user/jan",
            "ready_timeout_ms": 60000
        },
        "server": {
            "host": "0.0.0.0",
            "port": 8100
        }
    }


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Create a temporary config file."""
    config_path = temp_dir / "config.json"
    with open(config_path, 'w') as f:
        json.dump(sample_config_data, f, indent=2)
    return str(config_path)


@pytest.fixture
def sample_config(sample_config_data):
    """Create a Config instance from sample data."""
    return Config(**sample_config_data)
