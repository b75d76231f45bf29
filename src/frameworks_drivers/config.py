import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_PORT = 3928


class SupervisorConfig(BaseModel):
    """Configuration for the inference server supervisor.

    Attributes:
        host: Host the inference server listens on.
        port: Well-known TCP port the inference server binds.
        binary_dir: Directory holding the platform server binaries.
        config_relpath: Server config file path, relative to binary_dir.
        user_data_dir: Directory model files are resolved against.
        free_poll_interval_ms: Poll cadence while waiting for the port to be released.
        free_grace_timeout_ms: Time to wait for the port before killing its holder.
        ready_poll_interval_ms: Poll cadence while waiting for the server to bind.
        ready_timeout_ms: Time to wait for the server to bind before giving up.
        terminate_timeout: Seconds to wait for a killed server to exit on dispose.
        kill_on_readiness_timeout: Whether to kill a server that never became ready.
    """

    host: str = Field("127.0.0.1", description="Host the inference server listens on")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="Well-known TCP port the inference server binds")
    binary_dir: Path = Field(Path("nitro"), description="Directory holding the platform server binaries")
    config_relpath: Path = Field(Path("config") / "config.json", description="Server config file path, relative to binary_dir")
    user_data_dir: Path = Field(Path.home() / ".nitro-supervisor", description="Directory model files are resolved against")
    free_poll_interval_ms: int = Field(200, gt=0, description="Poll cadence while waiting for the port to be released")
    free_grace_timeout_ms: int = Field(3000, ge=0, description="Time to wait for the port before killing its holder")
    ready_poll_interval_ms: int = Field(300, gt=0, description="Poll cadence while waiting for the server to bind")
    ready_timeout_ms: int = Field(30000, gt=0, description="Time to wait for the server to bind before giving up")
    terminate_timeout: float = Field(5.0, ge=0, description="Seconds to wait for a killed server to exit on dispose")
    kill_on_readiness_timeout: bool = Field(True, description="Whether to kill a server that never became ready")

    @property
    def config_path(self) -> Path:
        """Absolute path of the server config file."""
        return (self.binary_dir / self.config_relpath).resolve()


class ServerConfig(BaseModel):
    """Configuration for the HTTP control surface.

    Attributes:
        host: Host for the control server.
        port: Port for the control server.
    """

    host: str = Field("127.0.0.1", description="Host for the control server")
    port: int = Field(8000, description="Port for the control server")


class Config(BaseModel):
    """Main configuration class.

    Attributes:
        supervisor: Configuration for the inference server supervisor.
        server: Configuration for the HTTP control surface.
    """

    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def load(cls, config_path: str = "config.json") -> "Config":
        """Load and validate configuration from JSON file."""
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path) as f:
            data = json.load(f)

        return cls(**data)

    def apply_env_overrides(self, environ: dict | None = None) -> "Config":
        """Override supervisor paths and port from NITRO_* environment variables."""
        env = os.environ if environ is None else environ
        if "NITRO_BINARY_DIR" in env:
            self.supervisor.binary_dir = Path(env["NITRO_BINARY_DIR"])
        if "NITRO_USER_DATA_DIR" in env:
            self.supervisor.user_data_dir = Path(env["NITRO_USER_DATA_DIR"])
        if "NITRO_PORT" in env:
            self.supervisor.port = int(env["NITRO_PORT"])
        return self
